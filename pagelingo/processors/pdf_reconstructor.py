# pagelingo/processors/pdf_reconstructor.py
"""
Rebuilds translated pages on top of rasterized originals.

Each output page is the source page's raster placed full-bleed, a
semi-opaque white box inset by a fixed margin, and the translated text
flowed inside that box at a fixed font size. Text that does not fit is
dropped; the box never grows and the font never shrinks.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from pagelingo.config.settings import AppSettings
from pagelingo.models.types import TranslatedPageRecord, TranslationPhase
from pagelingo.processors.pdf_rasterizer import (
    RenderedPage,
    get_page_size,
    render_page_to_image,
)
from pagelingo.services.progress import ProgressEvents, report

# Module logger
logger = logging.getLogger(__name__)

MM_TO_PT = 72.0 / 25.4

# A4 in points, used when the source page size cannot be read
A4_SIZE = (595.28, 841.89)

# Text padding inside the overlay box
TEXT_PADDING_MM = 2.0
# First baseline sits this far below the top of the box
FIRST_BASELINE_MM = 10.0
# Lines whose baseline would fall within this distance of the box bottom are dropped
BOTTOM_GUARD_MM = 5.0
# Margin for the text-only fallback page
FALLBACK_MARGIN_MM = 10.0

BUILTIN_FONT = "helv"
CUSTOM_FONT_NAME = "F0"

_pymupdf = None


def _get_pymupdf():
    """Lazy import PyMuPDF"""
    global _pymupdf
    if _pymupdf is None:
        import pymupdf
        _pymupdf = pymupdf
    return _pymupdf


def mm_to_pt(value_mm: float) -> float:
    return value_mm * MM_TO_PT


def _break_long_word(word: str, width: float, measure: Callable[[str], float]) -> list[str]:
    """Split a word wider than the line into pieces that fit."""
    pieces = []
    current = ""
    for char in word:
        if current and measure(current + char) > width:
            pieces.append(current)
            current = char
        else:
            current += char
    if current:
        pieces.append(current)
    return pieces


def wrap_text(text: str, width: float, measure: Callable[[str], float]) -> list[str]:
    """
    Greedy word wrap.

    Args:
        text: Text whose newlines are hard line breaks
        width: Maximum line width in the unit measure() returns
        measure: Width of a string at the output font size

    Returns:
        Lines that each fit within width. Empty paragraphs become empty lines.
    """
    lines: list[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue

        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if measure(candidate) <= width:
                current = candidate
                continue
            if current:
                lines.append(current)
            if measure(word) <= width:
                current = word
            else:
                pieces = _break_long_word(word, width, measure)
                lines.extend(pieces[:-1])
                current = pieces[-1]
        lines.append(current)
    return lines


class PdfReconstructor:
    """
    Composes the output document from translated page records.

    Args:
        settings: Geometry, font and raster options
        events: Progress stream (one RECONSTRUCTING event per page)
        rasterize: Page rasterizer, render_page_to_image by default
        page_size: Native page size lookup, get_page_size by default
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        events: Optional[ProgressEvents] = None,
        rasterize: Callable[..., RenderedPage] = render_page_to_image,
        page_size: Callable[[bytes, int], tuple[float, float]] = get_page_size,
    ):
        self.settings = settings or AppSettings()
        self.events = events
        self._rasterize = rasterize
        self._page_size = page_size
        self._font = None
        self._builtin_font = None
        self._warned_missing_font = False

    def _get_font(self, builtin: bool = False):
        """Font object used for width measurement."""
        pymupdf = _get_pymupdf()
        if builtin or not self._uses_custom_font():
            if self._builtin_font is None:
                self._builtin_font = pymupdf.Font(BUILTIN_FONT)
            return self._builtin_font
        if self._font is None:
            self._font = pymupdf.Font(fontfile=self.settings.font_file)
        return self._font

    def _uses_custom_font(self) -> bool:
        font_file = self.settings.font_file
        if not font_file:
            return False
        if not Path(font_file).exists():
            if not self._warned_missing_font:
                logger.warning("Font file not found, using Helvetica: %s", font_file)
                self._warned_missing_font = True
            return False
        return True

    def _write_lines(
        self,
        page,
        text: str,
        left: float,
        top: float,
        right: float,
        bottom: float,
        builtin_font: bool = False,
    ) -> int:
        """
        Flow text between left/right starting at the first baseline below top.

        Returns:
            Number of lines dropped because they would cross bottom
        """
        pymupdf = _get_pymupdf()
        font = self._get_font(builtin=builtin_font)
        if builtin_font or not self._uses_custom_font():
            font_name = BUILTIN_FONT
        else:
            font_name = CUSTOM_FONT_NAME
            page.insert_font(fontname=CUSTOM_FONT_NAME, fontfile=self.settings.font_file)

        lines = wrap_text(
            text,
            right - left,
            lambda s: font.text_length(s, fontsize=self.settings.font_size),
        )
        line_height = mm_to_pt(self.settings.line_height_mm)
        limit = bottom - mm_to_pt(BOTTOM_GUARD_MM)
        y = top + mm_to_pt(FIRST_BASELINE_MM)

        for index, line in enumerate(lines):
            if y > limit:
                return len(lines) - index
            if line:
                page.insert_text(
                    pymupdf.Point(left, y),
                    line,
                    fontname=font_name,
                    fontsize=self.settings.font_size,
                    color=(0, 0, 0),
                )
            y += line_height
        return 0

    def _source_size(self, data: bytes, page_number: int) -> tuple[float, float]:
        try:
            return self._page_size(data, page_number)
        except Exception as e:
            logger.warning("Cannot read size of page %d, using A4: %s", page_number, e)
            return A4_SIZE

    def _compose_overlay_page(self, doc, data: bytes, page_number: int, size: tuple[float, float], text: str) -> int:
        pymupdf = _get_pymupdf()
        rendered = self._rasterize(
            data,
            page_number,
            scale=self.settings.render_scale,
            quality=self.settings.jpeg_quality,
        )

        width, height = size
        page = doc.new_page(width=width, height=height)
        page.insert_image(page.rect, stream=rendered.image, keep_proportion=False)

        margin = mm_to_pt(self.settings.overlay_margin_mm)
        box = pymupdf.Rect(margin, margin, width - margin, height - margin)
        page.draw_rect(
            box,
            color=None,
            fill=(1, 1, 1),
            fill_opacity=self.settings.overlay_opacity,
            overlay=True,
        )

        padding = mm_to_pt(TEXT_PADDING_MM)
        return self._write_lines(page, text, box.x0 + padding, box.y0, box.x1 - padding, box.y1)

    def _compose_text_page(self, doc, size: tuple[float, float], text: str) -> int:
        width, height = size
        page = doc.new_page(width=width, height=height)
        margin = mm_to_pt(FALLBACK_MARGIN_MM)
        return self._write_lines(page, text, margin, 0.0, width - margin, height - margin, builtin_font=True)

    def build(self, data: bytes, pages: Iterable[TranslatedPageRecord]) -> bytes:
        """
        Build the translated document.

        A page whose raster or overlay cannot be composed is replaced by a
        text-only page, so one bad page never costs the whole document.

        Args:
            data: Source PDF bytes (read-only)
            pages: Translated records; output follows ascending page number

        Returns:
            PDF bytes with exactly one page per record

        Raises:
            ValueError: pages is empty
        """
        records = sorted(pages, key=lambda r: r.page_number)
        if not records:
            raise ValueError("No pages to build")

        pymupdf = _get_pymupdf()
        total = len(records)
        doc = pymupdf.open()
        try:
            for index, record in enumerate(records):
                size = self._source_size(data, record.page_number)
                pages_before = doc.page_count
                try:
                    dropped = self._compose_overlay_page(doc, data, record.page_number, size, record.text)
                except Exception as e:
                    # Discard the half-built page before writing the fallback
                    if doc.page_count > pages_before:
                        doc.delete_page(-1)
                    logger.warning("Page %d: overlay failed, writing text only: %s", record.page_number, e)
                    dropped = self._compose_text_page(doc, size, record.text)

                if dropped:
                    logger.info("Page %d: %d line(s) did not fit and were dropped", record.page_number, dropped)
                report(self.events, TranslationPhase.RECONSTRUCTING, index + 1, total,
                       f"Composed page {record.page_number}")

            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()
