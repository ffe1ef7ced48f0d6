# pagelingo/processors/pdf_extractor.py
"""
Layout-aware text extraction from PDF bytes.

Text fragments (PyMuPDF spans) are walked in content-stream order. A jump of
the baseline by more than a threshold starts a new line; fragments on the
same baseline are joined with a single space. Lines are then trimmed,
whitespace runs collapsed, and empty lines dropped.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from pagelingo.models.types import PageRecord, TranslationPhase
from pagelingo.services.exceptions import DocumentRejectedError, ExtractionError
from pagelingo.services.progress import ProgressEvents, report

# Module logger
logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF-"
DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_LINE_THRESHOLD = 10.0

_WHITESPACE_RUN = re.compile(r"\s+")

_pymupdf = None


def _get_pymupdf():
    """Lazy import PyMuPDF"""
    global _pymupdf
    if _pymupdf is None:
        import pymupdf
        _pymupdf = pymupdf
    return _pymupdf


@dataclass(frozen=True)
class TextFragment:
    """A run of text and the baseline it sits on"""
    text: str
    baseline: float


def validate_document(data: bytes, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
    """
    Reject inputs that cannot be a translatable PDF before any parsing.

    Raises:
        DocumentRejectedError: empty, larger than max_bytes, or missing the %PDF- signature
    """
    if not data:
        raise DocumentRejectedError("Document is empty")
    if len(data) > max_bytes:
        raise DocumentRejectedError(
            f"Document is {len(data) / (1024 * 1024):.1f} MB, "
            f"limit is {max_bytes / (1024 * 1024):.0f} MB"
        )
    # Some producers emit a few junk bytes before the header
    if PDF_SIGNATURE not in data[:1024]:
        raise DocumentRejectedError("Not a PDF document (missing %PDF- header)")


def assemble_page_text(
    fragments: Iterable[TextFragment],
    line_threshold: float = DEFAULT_LINE_THRESHOLD,
) -> str:
    """
    Join fragments into newline-delimited, whitespace-normalized lines.

    Args:
        fragments: Fragments in content-stream order
        line_threshold: Baseline shift (PDF units) above which a new line starts

    Returns:
        Page text; empty string if the page has no visible text
    """
    raw = ""
    last_baseline: Optional[float] = None

    for fragment in fragments:
        if last_baseline is not None and abs(fragment.baseline - last_baseline) > line_threshold:
            raw += "\n"
        elif raw and not raw.endswith("\n"):
            raw += " "
        raw += fragment.text
        last_baseline = fragment.baseline

    lines = (_WHITESPACE_RUN.sub(" ", line).strip() for line in raw.split("\n"))
    return "\n".join(line for line in lines if line)


def _page_fragments(page) -> Iterator[TextFragment]:
    """Yield the page's spans in content-stream order."""
    text_dict = page.get_text("dict", sort=False)
    for block in text_dict.get("blocks", []):
        # type 1 = image block
        if block.get("type", 0) != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text:
                    continue
                origin = span.get("origin") or (0.0, span.get("bbox", (0, 0, 0, 0))[3])
                yield TextFragment(text=text, baseline=float(origin[1]))


@contextmanager
def open_pdf_bytes(data: bytes):
    """
    Open PDF bytes with PyMuPDF and always close the document.

    Raises:
        ExtractionError: the bytes cannot be parsed or are password protected
    """
    pymupdf = _get_pymupdf()
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except Exception as e:
        # FileDataError, EmptyFileError and mupdf internals share no useful base
        raise ExtractionError(f"Cannot open PDF: {e}") from e
    try:
        if doc.needs_pass:
            raise ExtractionError("PDF is password protected")
        if doc.page_count == 0:
            raise ExtractionError("Document has no pages")
        yield doc
    finally:
        doc.close()


def get_page_count(data: bytes) -> int:
    """Number of pages in the document."""
    with open_pdf_bytes(data) as doc:
        return doc.page_count


def iter_pages(
    data: bytes,
    line_threshold: float = DEFAULT_LINE_THRESHOLD,
    events: Optional[ProgressEvents] = None,
) -> Iterator[PageRecord]:
    """
    Lazily extract one PageRecord per page, in page order.

    A progress event (page, total) is emitted after each page.

    Raises:
        ExtractionError: the document cannot be parsed or a page cannot be read
    """
    with open_pdf_bytes(data) as doc:
        total = doc.page_count
        for index in range(total):
            page_number = index + 1
            try:
                page = doc.load_page(index)
                text = assemble_page_text(_page_fragments(page), line_threshold)
            except ExtractionError:
                raise
            except Exception as e:
                raise ExtractionError(f"Cannot read page text: {e}", page_number=page_number) from e

            if not text:
                logger.debug("Page %d has no extractable text", page_number)
            report(events, TranslationPhase.EXTRACTING, page_number, total,
                   f"Extracted page {page_number}")
            yield PageRecord(page_number=page_number, text=text)


def extract_pages(
    data: bytes,
    line_threshold: float = DEFAULT_LINE_THRESHOLD,
    events: Optional[ProgressEvents] = None,
) -> list[PageRecord]:
    """Extract every page eagerly."""
    pages = list(iter_pages(data, line_threshold=line_threshold, events=events))
    logger.info("Extracted %d pages", len(pages))
    return pages
