from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Optional

import pytest


# Ensure the project root is importable when running `pytest` via its entrypoint
# (e.g., `uv run --extra test pytest`), where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from pagelingo.services.exceptions import BackendError  # noqa: E402


def build_pdf(pages: list[list[str]], width: float = 595.0, height: float = 842.0) -> bytes:
    """Build a PDF whose page i holds the given lines, 20pt apart."""
    import pymupdf

    doc = pymupdf.open()
    try:
        for lines in pages:
            page = doc.new_page(width=width, height=height)
            for index, line in enumerate(lines):
                page.insert_text((72, 100 + index * 20), line, fontsize=11)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture
def three_page_pdf() -> bytes:
    return build_pdf([
        ["Hello world", "Second line"],
        ["Page two text"],
        ["Final page"],
    ])


class FakeBackend:
    """
    In-memory translation backend.

    Translates by prefixing "PT:" and records every call. Failures are
    scripted per input text: fail_times[text] = n fails the first n calls,
    always_fail makes a text fail forever.
    """

    def __init__(
        self,
        name: str = "fake",
        max_chunk_chars: Optional[int] = None,
        fail_times: Optional[dict[str, int]] = None,
        always_fail: Optional[set[str]] = None,
        status: int = 503,
    ):
        self.name = name
        self.max_chunk_chars = max_chunk_chars
        self.fail_times = dict(fail_times or {})
        self.always_fail = set(always_fail or ())
        self.status = status
        self.calls: list[str] = []

    async def translate(self, text: str) -> str:
        self.calls.append(text)
        if text in self.always_fail:
            raise BackendError(self.name, "scripted failure", http_status=self.status)
        remaining = self.fail_times.get(text, 0)
        if remaining > 0:
            self.fail_times[text] = remaining - 1
            raise BackendError(self.name, "transient failure", http_status=self.status)
        return f"PT:{text}"

    async def __aenter__(self) -> "FakeBackend":
        return self

    async def __aexit__(self, *exc) -> None:
        return None


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def no_sleep():
    """Retry sleep that records delays instead of waiting."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep
