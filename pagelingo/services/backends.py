# pagelingo/services/backends.py
"""
Translation backend adapters.

The set of providers is closed (Provider). Each adapter turns a page of text
into a translation with one `await translate(text)` call and reports every
failure, including malformed response bodies, as BackendError.

DeepSeek is reached through the relay in pagelingo.relay so the browser-side
deployment never holds the upstream key; its requests are size-limited and
pages are chunked before they reach it.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

import httpx

from pagelingo.config.settings import AppSettings, get_api_key, API_KEY_ENV_VARS
from pagelingo.services.exceptions import BackendError, ConfigurationError

# Module logger
logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = (
    "You are a professional translator. Translate the following English text "
    "into {language}. Preserve the line breaks of the source. Return only the "
    "translated text, without explanations, notes or quotation marks."
)

# Characters of a non-JSON body quoted in error messages
RESPONSE_PREVIEW_CHARS = 100


class Provider(Enum):
    """Supported translation providers"""
    GEMINI = "gemini"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"Unknown provider {value!r} (expected one of: {names})") from None


def build_system_prompt(target_language: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(language=target_language)


def parse_json_body(provider: str, response: httpx.Response) -> Any:
    """Decode a JSON body or raise BackendError with a preview of what came back."""
    try:
        return response.json()
    except ValueError:
        preview = response.text[:RESPONSE_PREVIEW_CHARS]
        raise BackendError(
            provider,
            f"Invalid response from server ({response.status_code}): {preview}",
            http_status=response.status_code,
        ) from None


def error_message_from_body(body: Any, default: str) -> str:
    """Best-effort error text from a JSON error body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return default


def relay_error_envelope(body: Any) -> Optional[dict]:
    """The relay's normalized error body, or None if body is not one."""
    if isinstance(body, dict) and "rawResponsePreview" in body and isinstance(body.get("message"), str):
        return body
    return None


def parse_chat_content(provider: str, body: Any) -> str:
    """Extract choices[0].message.content from an OpenAI-compatible body."""
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        raise BackendError(provider, "Malformed response: no choices")
    first = choices[0]
    if not isinstance(first, dict):
        raise BackendError(provider, "Malformed response: choices[0] is not an object")
    message = first.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
    raise BackendError(provider, "Malformed response: no message content")


def parse_gemini_content(body: Any) -> str:
    """Concatenate the text parts of the first Gemini candidate."""
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise BackendError(Provider.GEMINI.value, "Malformed response: no candidates")
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise BackendError(Provider.GEMINI.value, "Malformed response: no content parts")
    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    if not texts:
        raise BackendError(Provider.GEMINI.value, "Malformed response: empty content")
    return "".join(texts)


class TranslationBackend(ABC):
    """
    One translation provider.

    Subclasses implement _request(); translate() adds transport error
    mapping and result trimming. A backend owns its HTTP client unless one
    was passed in.
    """

    provider: Provider
    # Request size limit in characters; None means whole pages are sent
    max_chunk_chars: Optional[int] = None

    def __init__(
        self,
        api_key: str,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or AppSettings()
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(self.settings.request_timeout, connect=30.0))
        self.system_prompt = build_system_prompt(self.settings.target_language)

    @property
    def name(self) -> str:
        return self.provider.value

    async def translate(self, text: str) -> str:
        """
        Translate text.

        Raises:
            BackendError: transport failure, non-2xx status or malformed body
        """
        if not text.strip():
            return text
        try:
            result = await self._request(text)
        except BackendError:
            raise
        except httpx.TimeoutException as e:
            raise BackendError(self.name, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise BackendError(self.name, f"Connection failed: {e}") from e
        return result.strip()

    @abstractmethod
    async def _request(self, text: str) -> str:
        """Send one request and return the raw translated text."""

    def _raise_for_status(self, response: httpx.Response, body: Any) -> None:
        if response.is_success:
            return
        message = error_message_from_body(body, f"HTTP {response.status_code}")
        raise BackendError(self.name, message, http_status=response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TranslationBackend":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class GeminiBackend(TranslationBackend):
    """Google Gemini generateContent REST API"""

    provider = Provider.GEMINI

    async def _request(self, text: str) -> str:
        url = f"{self.settings.gemini_base_url.rstrip('/')}/models/{self.settings.gemini_model}:generateContent"
        payload = {
            "systemInstruction": {"parts": [{"text": self.system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": text}]}],
        }
        response = await self._client.post(
            url,
            headers={"x-goog-api-key": self._api_key},
            json=payload,
        )
        body = parse_json_body(self.name, response)
        self._raise_for_status(response, body)
        return parse_gemini_content(body)


class OpenAIBackend(TranslationBackend):
    """OpenAI chat completions API"""

    provider = Provider.OPENAI

    async def _request(self, text: str) -> str:
        url = f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self.settings.openai_model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ],
        }
        response = await self._client.post(
            url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json=payload,
        )
        body = parse_json_body(self.name, response)
        self._raise_for_status(response, body)
        return parse_chat_content(self.name, body)


class DeepSeekRelayBackend(TranslationBackend):
    """DeepSeek chat completions through the relay (/api/deepseek)"""

    provider = Provider.DEEPSEEK

    def __init__(self, api_key: str, settings: Optional[AppSettings] = None,
                 client: Optional[httpx.AsyncClient] = None):
        super().__init__(api_key, settings, client)
        self.max_chunk_chars = self.settings.max_chunk_chars

    def _raise_for_status(self, response: httpx.Response, body: Any) -> None:
        envelope = None if response.is_success else relay_error_envelope(body)
        if envelope is None:
            super()._raise_for_status(response, body)
            return
        # The envelope carries the upstream status behind the relay's 502
        status = envelope.get("status")
        hint = envelope.get("hint")
        raise BackendError(
            self.name,
            envelope["message"],
            http_status=status if isinstance(status, int) else response.status_code,
            hint=hint if isinstance(hint, str) and hint else None,
        )

    async def _request(self, text: str) -> str:
        payload = {
            "model": self.settings.deepseek_model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ],
        }
        response = await self._client.post(
            self.settings.relay_url,
            headers={"x-api-key": self._api_key},
            json=payload,
        )
        body = parse_json_body(self.name, response)
        self._raise_for_status(response, body)
        return parse_chat_content(self.name, body)


_BACKEND_CLASSES: dict[Provider, type[TranslationBackend]] = {
    Provider.GEMINI: GeminiBackend,
    Provider.OPENAI: OpenAIBackend,
    Provider.DEEPSEEK: DeepSeekRelayBackend,
}


def create_backend(
    provider: "str | Provider",
    settings: Optional[AppSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    api_key: Optional[str] = None,
) -> TranslationBackend:
    """
    Construct the adapter for a provider.

    Args:
        provider: Provider or its name
        settings: Models, endpoints and limits
        client: Shared HTTP client; the backend creates and owns one if omitted
        api_key: Explicit key; read from the provider's environment variable if omitted

    Raises:
        ConfigurationError: unknown provider or no API key configured
    """
    resolved = Provider.parse(provider)
    key = api_key or get_api_key(resolved.value)
    if not key:
        raise ConfigurationError(
            f"API key for {resolved.value} is not configured "
            f"(set {API_KEY_ENV_VARS[resolved.value]})"
        )
    backend = _BACKEND_CLASSES[resolved](key, settings=settings, client=client)
    logger.info("Using %s backend", resolved.value)
    return backend
