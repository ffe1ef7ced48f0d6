# pagelingo/processors/pdf_rasterizer.py
"""
Page rasterization with pypdfium2.

Every call opens its own document handle and closes it before returning, so
the functions keep no state between calls. PDFium itself is not thread-safe;
calls into it are serialized by a module lock, which makes the functions
safe to call from several threads at once.
"""

import io
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass

from pagelingo.services.exceptions import RenderError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_RENDER_SCALE = 1.5
DEFAULT_JPEG_QUALITY = 80

_pypdfium2 = None
_pdfium_lock = threading.RLock()


def _get_pypdfium2():
    """Lazy import pypdfium2 (for PDF to image conversion)."""
    global _pypdfium2
    if _pypdfium2 is None:
        try:
            import pypdfium2 as pdfium
            _pypdfium2 = pdfium
        except ImportError:
            raise ImportError(
                "pypdfium2 is required for page rendering. Install with: pip install pypdfium2"
            )
    return _pypdfium2


@dataclass(frozen=True)
class RenderedPage:
    """JPEG raster of one page"""
    page_number: int
    width: int                       # Pixels
    height: int                      # Pixels
    image: bytes                     # JPEG data


@contextmanager
def _open_pdf_document(data: bytes):
    """
    Open a pypdfium2 document while holding the PDFium lock.

    Raises:
        RenderError: the bytes cannot be opened by the renderer
    """
    pdfium = _get_pypdfium2()
    with _pdfium_lock:
        try:
            pdf = pdfium.PdfDocument(data)
        except Exception as e:
            raise RenderError(f"Cannot open PDF for rendering: {e}") from e
        try:
            yield pdf
        finally:
            pdf.close()


def _check_page_number(pdf, page_number: int) -> None:
    total = len(pdf)
    if not 1 <= page_number <= total:
        raise RenderError(
            f"Page {page_number} out of range (document has {total} pages)",
            page_number=page_number,
        )


def get_page_size(data: bytes, page_number: int) -> tuple[float, float]:
    """
    Native page size in PDF points.

    Raises:
        RenderError: page_number out of range or unreadable page
    """
    with _open_pdf_document(data) as pdf:
        _check_page_number(pdf, page_number)
        page = pdf[page_number - 1]
        try:
            width, height = page.get_size()
        finally:
            page.close()
        return float(width), float(height)


def render_page_to_image(
    data: bytes,
    page_number: int,
    scale: float = DEFAULT_RENDER_SCALE,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> RenderedPage:
    """
    Render one page to a JPEG image.

    Args:
        data: PDF bytes (never modified)
        page_number: 1-based page number
        scale: Output size relative to the native page size (1.0 = 72 dpi)
        quality: JPEG quality 1-100

    Returns:
        RenderedPage whose width/height equal the native size times scale

    Raises:
        RenderError: page_number out of range or renderer failure
    """
    if scale <= 0:
        raise RenderError(f"Invalid render scale: {scale}", page_number=page_number)

    with _open_pdf_document(data) as pdf:
        _check_page_number(pdf, page_number)
        page = pdf[page_number - 1]
        try:
            bitmap = page.render(scale=scale)
            # convert() copies the pixels out of the PDFium-owned buffer
            image = bitmap.to_pil().convert("RGB")
        except Exception as e:
            raise RenderError(f"Failed to render page {page_number}: {e}", page_number=page_number) from e
        finally:
            page.close()

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise RenderError(f"Failed to encode page {page_number}: {e}", page_number=page_number) from e

    logger.debug("Rendered page %d at scale %.2f (%dx%d)", page_number, scale, image.width, image.height)
    return RenderedPage(
        page_number=page_number,
        width=image.width,
        height=image.height,
        image=buffer.getvalue(),
    )
