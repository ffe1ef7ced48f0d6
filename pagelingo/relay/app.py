# pagelingo/relay/app.py
"""
Single-provider translation relay.

POST /api/deepseek forwards an OpenAI-style chat request to the DeepSeek API
with the caller's key (x-api-key header) and returns the upstream JSON with
the upstream status. Upstream bodies that are not JSON objects, and
transport failures, are normalized into one error envelope with status 502.

Run with:
    pagelingo relay --port 8787
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pagelingo.services.exceptions import hint_for_status

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_URL = "https://api.deepseek.com/v1/chat/completions"
UPSTREAM_URL = os.getenv("PAGELINGO_RELAY_UPSTREAM_URL", DEFAULT_UPSTREAM_URL)
REQUEST_TIMEOUT = float(os.getenv("PAGELINGO_RELAY_TIMEOUT", "120"))
HTTP_TIMEOUT = httpx.Timeout(REQUEST_TIMEOUT, connect=30.0)

RAW_PREVIEW_CHARS = 500
GENERIC_HINT = "The upstream service returned an unexpected response."


def error_envelope(
    message: str,
    status: Optional[int],
    raw_preview: str = "",
) -> dict[str, Any]:
    """Normalized error body for malformed or unreachable upstream responses."""
    return {
        "error": "Invalid upstream response" if status is not None else "Upstream unreachable",
        "message": message,
        "status": status,
        "rawResponsePreview": raw_preview[:RAW_PREVIEW_CHARS],
        "hint": hint_for_status(status) or GENERIC_HINT,
    }


def _safe_json_from_response(response: httpx.Response) -> Optional[dict[str, Any]]:
    """JSON object body, or None when the body is not a JSON object."""
    try:
        parsed = response.json()
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def create_app(
    upstream_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        upstream_url: Chat completions endpoint to forward to
        transport: httpx transport for the shared client (tests use MockTransport)
    """
    target_url = upstream_url or UPSTREAM_URL

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport) as client:
            app.state.http_client = client
            yield

    app = FastAPI(title="PageLingo relay", lifespan=lifespan)

    @app.post("/api/deepseek")
    async def relay_deepseek(request: Request):
        api_key = request.headers.get("x-api-key", "").strip()
        if not api_key:
            return JSONResponse(status_code=401, content={"error": "API key missing"})

        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Request body must be JSON"})

        client: httpx.AsyncClient = request.app.state.http_client
        try:
            upstream = await client.post(
                target_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {api_key}",
                },
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.warning("Relay could not reach upstream: %s", e)
            return JSONResponse(
                status_code=502,
                content=error_envelope(f"Could not reach upstream: {e}", None),
            )

        body = _safe_json_from_response(upstream)
        if body is None:
            logger.warning("Upstream returned non-JSON body (HTTP %d)", upstream.status_code)
            return JSONResponse(
                status_code=502,
                content=error_envelope(
                    f"Upstream returned a non-JSON response (HTTP {upstream.status_code})",
                    upstream.status_code,
                    upstream.text,
                ),
            )

        if not upstream.is_success:
            logger.info("Upstream error HTTP %d forwarded", upstream.status_code)
        return JSONResponse(status_code=upstream.status_code, content=body)

    return app


app = create_app()
