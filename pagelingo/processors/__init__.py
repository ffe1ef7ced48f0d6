# pagelingo/processors/__init__.py
"""
PDF processors for PageLingo.

Processor modules import PyMuPDF / pypdfium2 lazily.
Use explicit imports like:
    from pagelingo.processors.pdf_extractor import extract_pages
"""

# Lazy-loaded processors via __getattr__
_LAZY_IMPORTS = {
    'extract_pages': 'pdf_extractor',
    'iter_pages': 'pdf_extractor',
    'validate_document': 'pdf_extractor',
    'render_page_to_image': 'pdf_rasterizer',
    'RenderedPage': 'pdf_rasterizer',
    'PdfReconstructor': 'pdf_reconstructor',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'pdf_extractor', 'pdf_rasterizer', 'pdf_reconstructor'}


def __getattr__(name: str):
    """Lazy-load processor modules on first access."""
    import importlib
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'extract_pages',
    'iter_pages',
    'validate_document',
    'render_page_to_image',
    'RenderedPage',
    'PdfReconstructor',
]
