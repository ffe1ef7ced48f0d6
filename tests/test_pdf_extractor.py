# tests/test_pdf_extractor.py
"""Tests for pagelingo.processors.pdf_extractor"""

import pytest

from pagelingo.models.types import TranslationPhase
from pagelingo.processors.pdf_extractor import (
    TextFragment,
    assemble_page_text,
    extract_pages,
    get_page_count,
    iter_pages,
    validate_document,
)
from pagelingo.services.exceptions import DocumentRejectedError, ExtractionError
from pagelingo.services.progress import ProgressEvents


class TestAssemblePageText:
    """Line assembly from positioned fragments"""

    def test_same_baseline_joined_with_space(self):
        fragments = [TextFragment("Hello", 100.0), TextFragment("world", 100.0)]
        assert assemble_page_text(fragments) == "Hello world"

    def test_small_shift_stays_on_line(self):
        """Superscripts and baseline jitter below the threshold do not break lines"""
        fragments = [TextFragment("E = mc", 100.0), TextFragment("2", 96.0)]
        assert assemble_page_text(fragments) == "E = mc 2"

    def test_large_shift_starts_new_line(self):
        fragments = [TextFragment("Title", 100.0), TextFragment("Body", 130.0)]
        assert assemble_page_text(fragments) == "Title\nBody"

    def test_shift_exactly_at_threshold_stays_on_line(self):
        fragments = [TextFragment("a", 100.0), TextFragment("b", 110.0)]
        assert assemble_page_text(fragments, line_threshold=10.0) == "a b"

    def test_upward_shift_also_breaks(self):
        fragments = [TextFragment("bottom", 500.0), TextFragment("top", 100.0)]
        assert assemble_page_text(fragments) == "bottom\ntop"

    def test_whitespace_collapsed_and_trimmed(self):
        fragments = [
            TextFragment("  lots   of\tspace  ", 100.0),
            TextFragment("   ", 140.0),
            TextFragment("next", 180.0),
        ]
        assert assemble_page_text(fragments) == "lots of space\nnext"

    def test_no_empty_lines(self):
        fragments = [TextFragment("a", 100.0), TextFragment(" ", 200.0), TextFragment("b", 300.0)]
        text = assemble_page_text(fragments)
        assert all(line for line in text.split("\n"))

    def test_no_fragments(self):
        assert assemble_page_text([]) == ""

    def test_custom_threshold(self):
        fragments = [TextFragment("a", 100.0), TextFragment("b", 105.0)]
        assert assemble_page_text(fragments, line_threshold=2.0) == "a\nb"


class TestValidateDocument:
    """Input checks before parsing"""

    def test_accepts_pdf(self, make_pdf):
        validate_document(make_pdf([["x"]]))

    def test_rejects_empty(self):
        with pytest.raises(DocumentRejectedError):
            validate_document(b"")

    def test_rejects_non_pdf(self):
        with pytest.raises(DocumentRejectedError, match="PDF"):
            validate_document(b"PK\x03\x04 not a pdf")

    def test_rejects_oversized(self):
        data = b"%PDF-1.7\n" + b"0" * 2048
        with pytest.raises(DocumentRejectedError, match="limit"):
            validate_document(data, max_bytes=1024)

    def test_rejected_is_extraction_error(self):
        with pytest.raises(ExtractionError):
            validate_document(b"")


class TestExtractPages:
    """Extraction from real PDF bytes"""

    def test_one_record_per_page_in_order(self, three_page_pdf):
        pages = extract_pages(three_page_pdf)
        assert [p.page_number for p in pages] == [1, 2, 3]

    def test_lines_preserved(self, three_page_pdf):
        pages = extract_pages(three_page_pdf)
        assert pages[0].text == "Hello world\nSecond line"
        assert pages[1].text == "Page two text"
        assert pages[2].text == "Final page"

    def test_blank_page_has_empty_text(self, make_pdf):
        pages = extract_pages(make_pdf([["text"], []]))
        assert pages[1].text == ""

    def test_input_not_modified(self, three_page_pdf):
        before = bytes(three_page_pdf)
        extract_pages(three_page_pdf)
        assert three_page_pdf == before

    def test_page_count(self, three_page_pdf):
        assert get_page_count(three_page_pdf) == 3

    def test_corrupt_document_raises(self):
        with pytest.raises(ExtractionError):
            extract_pages(b"%PDF-1.7\nthis is not really a pdf")

    def test_iter_pages_is_lazy(self, three_page_pdf):
        iterator = iter_pages(three_page_pdf)
        first = next(iterator)
        assert first.page_number == 1
        iterator.close()

    def test_progress_events(self, three_page_pdf):
        events = ProgressEvents()
        received = []
        events.subscribe(received.append)

        extract_pages(three_page_pdf, events=events)

        assert [(p.current, p.total) for p in received] == [(1, 3), (2, 3), (3, 3)]
        assert all(p.phase == TranslationPhase.EXTRACTING for p in received)
