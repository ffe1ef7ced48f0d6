# pagelingo/models/types.py
"""
Core data types for the PageLingo translation pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable


@dataclass(frozen=True)
class PageRecord:
    """
    Extracted text of one source page.

    Text is newline-delimited reading-order lines with whitespace collapsed.
    """
    page_number: int                 # 1-based
    text: str

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")


@dataclass(frozen=True)
class TranslatedPageRecord(PageRecord):
    """
    A page whose text has been replaced by its translation.
    The source text is kept for checkpointing and preview.
    """
    original_text: str = ""


@dataclass(frozen=True)
class CheckpointPage:
    """One translated page as persisted in a checkpoint"""
    page_number: int
    original_text: str
    translated_text: str

    @classmethod
    def from_record(cls, record: TranslatedPageRecord) -> "CheckpointPage":
        return cls(
            page_number=record.page_number,
            original_text=record.original_text,
            translated_text=record.text,
        )

    def to_record(self) -> TranslatedPageRecord:
        return TranslatedPageRecord(
            page_number=self.page_number,
            text=self.translated_text,
            original_text=self.original_text,
        )

    def to_dict(self) -> dict:
        return {
            "pageNumber": self.page_number,
            "originalText": self.original_text,
            "translatedText": self.translated_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckpointPage":
        return cls(
            page_number=int(data["pageNumber"]),
            original_text=str(data.get("originalText", "")),
            translated_text=str(data.get("translatedText", "")),
        )


@dataclass(frozen=True)
class DocumentKey:
    """
    Identifies the checkpoint slot for one (document, provider) pair.

    document_id is chosen by the caller; the file name is the usual fallback
    but a content hash avoids collisions between same-named files.
    """
    document_id: str
    provider: str

    def __post_init__(self):
        if not self.document_id:
            raise ValueError("document_id must not be empty")
        if not self.provider:
            raise ValueError("provider must not be empty")


@dataclass(frozen=True)
class Checkpoint:
    """
    Committed translation prefix of one document.

    Pages are sorted ascending with no duplicates. The orchestrator only
    trusts a checkpoint whose pages form the prefix 1..K.
    """
    key: DocumentKey
    file_name: str
    created_at: float                # Epoch seconds of the last commit
    pages: tuple[CheckpointPage, ...] = ()

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def is_contiguous_prefix(self) -> bool:
        """True if the pages are exactly 1..K"""
        return all(p.page_number == i for i, p in enumerate(self.pages, start=1))

    def to_dict(self) -> dict:
        return {
            "documentId": self.key.document_id,
            "provider": self.key.provider,
            "fileName": self.file_name,
            "timestamp": self.created_at,
            "pages": [p.to_dict() for p in self.pages],
        }


@dataclass(frozen=True)
class CheckpointInfo:
    """
    Checkpoint summary for display ("resume available" prompts).
    """
    file_name: str
    provider: str
    page_count: int
    age_seconds: float

    @property
    def age_display(self) -> str:
        """Human-readable age"""
        minutes = int(self.age_seconds // 60)
        if minutes < 1:
            return "just now"
        if minutes < 60:
            return f"{minutes} min ago"
        hours = minutes // 60
        return f"{hours} h {minutes % 60} min ago"


class TranslationPhase(Enum):
    """Pipeline phases for progress reporting"""
    EXTRACTING = "extracting"          # Reading text from the source PDF
    TRANSLATING = "translating"        # Sending pages to the backend
    RECONSTRUCTING = "reconstructing"  # Rasterizing and overlaying translations
    COMPLETE = "complete"


@dataclass
class TranslationProgress:
    """
    Progress information for one pipeline phase.

    current/total count pages within the phase; percentage is derived.
    """
    current: int                     # Pages done in this phase
    total: int                       # Pages in this phase
    status: str = ""                 # Status message
    percentage: float = 0.0          # 0.0 - 1.0
    phase: Optional[TranslationPhase] = None
    phase_detail: Optional[str] = None  # e.g., "Page 3/10"

    def __post_init__(self):
        if self.current < 0:
            self.current = 0

        if self.total < 0:
            raise ValueError(f"total must be non-negative, got {self.total}")

        if self.total > 0:
            if self.current > self.total:
                self.current = self.total
            self.percentage = self.current / self.total
        else:
            self.percentage = 0.0


@dataclass(frozen=True)
class PreviewResult:
    """First-page preview: original and translated text side by side"""
    page_number: int
    original_text: str
    translated_text: str


@dataclass
class PipelineResult:
    """
    Outcome of a full translation run.
    """
    pages: list[TranslatedPageRecord] = field(default_factory=list)
    resumed_pages: int = 0           # Pages taken from the checkpoint
    total_pages: int = 0

    @property
    def translated_pages(self) -> int:
        """Pages translated during this run"""
        return len(self.pages) - self.resumed_pages

    @property
    def full_text(self) -> str:
        """All translated pages, separated by blank lines"""
        return "\n\n".join(p.text for p in self.pages)


@dataclass(frozen=True)
class TranslatedDocument:
    """Output PDF together with the run that produced it"""
    pdf: bytes
    result: PipelineResult


# Progress subscriber type
ProgressCallback = Callable[[TranslationProgress], None]
