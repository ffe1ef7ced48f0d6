# tests/test_types.py
"""Tests for pagelingo.models.types and pagelingo.services.exceptions"""

import pytest

from pagelingo.models.types import (
    Checkpoint,
    CheckpointInfo,
    CheckpointPage,
    DocumentKey,
    PageRecord,
    PipelineResult,
    TranslatedPageRecord,
)
from pagelingo.services.exceptions import (
    BackendError,
    ExtractionError,
    PipelineError,
    hint_for_status,
)


class TestRecords:

    def test_page_numbers_start_at_one(self):
        with pytest.raises(ValueError):
            PageRecord(page_number=0, text="x")

    def test_translated_record_keeps_original(self):
        record = TranslatedPageRecord(page_number=1, text="Olá", original_text="Hello")
        page = CheckpointPage.from_record(record)
        assert page == CheckpointPage(1, "Hello", "Olá")
        assert page.to_record() == record

    def test_checkpoint_page_dict_layout(self):
        page = CheckpointPage(2, "Hello", "Olá")
        assert page.to_dict() == {"pageNumber": 2, "originalText": "Hello", "translatedText": "Olá"}
        assert CheckpointPage.from_dict(page.to_dict()) == page

    def test_document_key_requires_values(self):
        with pytest.raises(ValueError):
            DocumentKey(document_id="", provider="gemini")
        with pytest.raises(ValueError):
            DocumentKey(document_id="a.pdf", provider="")


class TestCheckpoint:

    def _checkpoint(self, *numbers):
        return Checkpoint(
            key=DocumentKey("a.pdf", "gemini"),
            file_name="a.pdf",
            created_at=0.0,
            pages=tuple(CheckpointPage(n, "o", "t") for n in numbers),
        )

    def test_contiguous_prefix(self):
        assert self._checkpoint(1, 2, 3).is_contiguous_prefix()
        assert self._checkpoint().is_contiguous_prefix()

    def test_gap_is_not_prefix(self):
        assert not self._checkpoint(1, 3).is_contiguous_prefix()
        assert not self._checkpoint(2, 3).is_contiguous_prefix()

    def test_to_dict(self):
        data = self._checkpoint(1).to_dict()
        assert data["fileName"] == "a.pdf"
        assert data["provider"] == "gemini"
        assert data["pages"][0]["pageNumber"] == 1


class TestCheckpointInfo:

    @pytest.mark.parametrize("seconds,expected", [
        (30, "just now"),
        (600, "10 min ago"),
        (7500, "2 h 5 min ago"),
    ])
    def test_age_display(self, seconds, expected):
        info = CheckpointInfo(file_name="a.pdf", provider="gemini", page_count=1, age_seconds=seconds)
        assert info.age_display == expected


class TestPipelineResult:

    def test_translated_pages(self):
        pages = [TranslatedPageRecord(n, "t", "o") for n in (1, 2, 3)]
        assert PipelineResult(pages=pages, resumed_pages=1, total_pages=3).translated_pages == 2

    def test_full_text_joins_pages(self):
        pages = [TranslatedPageRecord(1, "Olá\nmundo", "o"), TranslatedPageRecord(2, "Fim", "o")]
        assert PipelineResult(pages=pages, total_pages=2).full_text == "Olá\nmundo\n\nFim"

    def test_full_text_empty(self):
        assert PipelineResult().full_text == ""


class TestExceptions:

    def test_backend_error_fields(self):
        error = BackendError("openai", "quota exceeded", http_status=429)
        assert error.provider == "openai"
        assert error.http_status == 429
        assert error.message == "quota exceeded"
        assert "HTTP 429" in str(error)

    def test_backend_error_without_status(self):
        error = BackendError("gemini", "timed out")
        assert error.http_status is None
        assert error.hint is None

    def test_backend_error_explicit_hint(self):
        error = BackendError("deepseek", "bad gateway", http_status=502, hint="Check the relay logs.")
        assert error.hint == "Check the relay logs."

    def test_pipeline_error(self):
        error = PipelineError(page_number=4, completed=3, total=10, message="boom")
        assert error.progress_display == "3/10"
        assert "3/10" in str(error)
        assert "Page 4" in str(error)

    def test_extraction_error_page(self):
        assert "Page 2" in str(ExtractionError("unreadable", page_number=2))

    @pytest.mark.parametrize("status,has_hint", [
        (None, False), (400, False), (401, True), (403, True), (429, True), (500, True), (503, True),
    ])
    def test_hints(self, status, has_hint):
        assert (hint_for_status(status) is not None) == has_hint
