# pagelingo/services/exceptions.py
"""
Exception types shared by the extraction, rendering, backend and pipeline layers.

This module has no third-party imports so every layer can depend on it.
"""

from typing import Optional


class PageLingoError(Exception):
    """Base class for all pipeline errors."""

    pass


class ConfigurationError(PageLingoError):
    """Raised for unknown providers or missing credentials."""

    pass


class ExtractionError(PageLingoError):
    """Raised when the source document cannot be parsed or a page cannot be read."""

    def __init__(self, message: str, page_number: Optional[int] = None):
        self.page_number = page_number
        if page_number is not None:
            message = f"Page {page_number}: {message}"
        super().__init__(message)


class DocumentRejectedError(ExtractionError):
    """Raised when an input is not an acceptable PDF (empty, too large, wrong signature)."""

    pass


class RenderError(PageLingoError):
    """Raised when a page cannot be rasterized."""

    def __init__(self, message: str, page_number: Optional[int] = None):
        self.page_number = page_number
        super().__init__(message)


class BackendError(PageLingoError):
    """
    Raised when a translation backend fails.

    Attributes:
        provider: Provider name ("gemini", "openai", "deepseek")
        http_status: HTTP status of the failing response, None for transport
            errors and malformed bodies
        message: Human-readable description
    """

    def __init__(
        self,
        provider: str,
        message: str,
        http_status: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.provider = provider
        self.http_status = http_status
        self.message = message
        self._hint = hint
        status = f" (HTTP {http_status})" if http_status is not None else ""
        super().__init__(f"{provider}{status}: {message}")

    @property
    def hint(self) -> Optional[str]:
        """Suggested user action, from the server if it sent one, else from the HTTP status"""
        return self._hint or hint_for_status(self.http_status)


class PipelineError(PageLingoError):
    """
    Raised when a run aborts. The committed prefix stays in the checkpoint.

    Attributes:
        page_number: Page whose translation failed (1-based)
        completed: Pages committed before the failure
        total: Pages in the document
    """

    def __init__(self, page_number: int, completed: int, total: int, message: str = ""):
        self.page_number = page_number
        self.completed = completed
        self.total = total
        detail = message or "translation failed"
        super().__init__(f"Page {page_number}: {detail} ({completed}/{total} pages completed)")

    @property
    def progress_display(self) -> str:
        return f"{self.completed}/{self.total}"


def hint_for_status(status: Optional[int]) -> Optional[str]:
    """Map an upstream HTTP status to a user-facing hint."""
    if status is None:
        return None
    if status in (401, 403):
        return "Check that the API key is valid and has access to the model."
    if status == 429:
        return "Rate limited by the provider. Wait a moment and resume."
    if status >= 500:
        return "The translation service reported a server error. Try again later."
    return None
