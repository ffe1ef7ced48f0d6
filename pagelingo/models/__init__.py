# pagelingo/models/__init__.py
"""
Data models for PageLingo.
"""

from .types import (
    PageRecord,
    TranslatedPageRecord,
    CheckpointPage,
    DocumentKey,
    Checkpoint,
    CheckpointInfo,
    TranslationPhase,
    TranslationProgress,
    PreviewResult,
    PipelineResult,
    TranslatedDocument,
    ProgressCallback,
)

__all__ = [
    'PageRecord',
    'TranslatedPageRecord',
    'CheckpointPage',
    'DocumentKey',
    'Checkpoint',
    'CheckpointInfo',
    'TranslationPhase',
    'TranslationProgress',
    'PreviewResult',
    'PipelineResult',
    'TranslatedDocument',
    'ProgressCallback',
]
