# pagelingo/services/__init__.py
"""
Service layer for PageLingo.

Heavy service imports are lazy-loaded for faster startup.
Use explicit imports like:
    from pagelingo.services.translation_service import TranslationService
"""

# Fast imports - no third-party dependencies
from .exceptions import (
    PageLingoError,
    ConfigurationError,
    ExtractionError,
    DocumentRejectedError,
    RenderError,
    BackendError,
    PipelineError,
)
from .progress import ProgressEvents

# Lazy-loaded services via __getattr__
_LAZY_IMPORTS = {
    'TranslationService': 'translation_service',
    'TranslationBackend': 'backends',
    'Provider': 'backends',
    'create_backend': 'backends',
    'RetryPolicy': 'retry',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'translation_service', 'backends', 'retry', 'text_chunker'}


def __getattr__(name: str):
    """Lazy-load heavy service modules on first access."""
    import importlib
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'PageLingoError',
    'ConfigurationError',
    'ExtractionError',
    'DocumentRejectedError',
    'RenderError',
    'BackendError',
    'PipelineError',
    'ProgressEvents',
    'TranslationService',
    'TranslationBackend',
    'Provider',
    'create_backend',
    'RetryPolicy',
]
