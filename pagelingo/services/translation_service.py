# pagelingo/services/translation_service.py
"""
Translation orchestrator.
Coordinates text extraction, the translation backend, checkpoints and
page reconstruction for one document at a time.

Pages are translated in ascending order in fixed-width batches. A batch is
committed to the checkpoint only when every page in it succeeded, so the
checkpoint always holds a contiguous prefix 1..K of the document.
"""

import asyncio
import hashlib
import logging
import re
import unicodedata
from pathlib import Path
from typing import Optional

from pagelingo.config.settings import AppSettings
from pagelingo.models.types import (
    CheckpointPage,
    DocumentKey,
    PageRecord,
    PipelineResult,
    PreviewResult,
    TranslatedDocument,
    TranslatedPageRecord,
    TranslationPhase,
)
from pagelingo.processors.pdf_extractor import (
    extract_pages,
    get_page_count,
    iter_pages,
    validate_document,
)
from pagelingo.processors.pdf_reconstructor import PdfReconstructor
from pagelingo.services.backends import TranslationBackend
from pagelingo.services.exceptions import ConfigurationError, ExtractionError, PipelineError
from pagelingo.services.progress import ProgressEvents, report
from pagelingo.services.retry import RetryPolicy, SleepFunc, call_with_retry
from pagelingo.services.text_chunker import join_chunks, split_text
from pagelingo.storage.checkpoint_db import CheckpointDB

# Module logger
logger = logging.getLogger(__name__)

_RE_FILENAME_FORBIDDEN = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def _sanitize_output_stem(name: str) -> str:
    """Replace characters forbidden in file names with underscores."""
    sanitized = _RE_FILENAME_FORBIDDEN.sub('_', unicodedata.normalize('NFC', name))
    sanitized = sanitized.strip()
    return sanitized or 'translated_file'


def document_id_from_bytes(data: bytes) -> str:
    """Content-derived document id (first 16 hex digits of SHA-256)."""
    return hashlib.sha256(data).hexdigest()[:16]


def generate_output_path(input_path: Path, settings: AppSettings, suffix: str = "_translated") -> Path:
    """
    Output path next to the input (or in settings.output_directory).
    Adds the suffix, with numbering if the file already exists.
    """
    stem = _sanitize_output_stem(input_path.stem)
    ext = input_path.suffix or ".pdf"
    output_dir = settings.get_output_directory(input_path)

    output_path = output_dir / f"{stem}{suffix}{ext}"
    counter = 2
    while output_path.exists():
        output_path = output_dir / f"{stem}{suffix}_{counter}{ext}"
        counter += 1
    return output_path


class TranslationService:
    """
    Runs preview, full and resumed translations of PDF documents.

    Args:
        backend: Translation backend, fixed for the lifetime of the service.
            None is allowed for checkpoint-only use (export_partial).
        checkpoints: Checkpoint store
        settings: Batch width, retry budget, extraction and layout options
        events: Progress stream shared with extraction and reconstruction
        sleep: Awaitable used between retries (replaced in tests)
        reconstructor: Page composer, built from settings if omitted
    """

    def __init__(
        self,
        backend: Optional[TranslationBackend],
        checkpoints: CheckpointDB,
        settings: Optional[AppSettings] = None,
        events: Optional[ProgressEvents] = None,
        sleep: SleepFunc = asyncio.sleep,
        reconstructor: Optional[PdfReconstructor] = None,
    ):
        self.backend = backend
        self.checkpoints = checkpoints
        self.settings = settings or AppSettings()
        self.events = events
        self._sleep = sleep
        self.retry_policy = RetryPolicy(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay,
        )
        self.reconstructor = reconstructor or PdfReconstructor(self.settings, events=events)

    @property
    def provider(self) -> str:
        return self.backend.name if self.backend is not None else self.settings.provider

    def _require_backend(self) -> TranslationBackend:
        if self.backend is None:
            raise ConfigurationError("No translation backend configured")
        return self.backend

    def key_for(self, document_id: str) -> DocumentKey:
        """Checkpoint key of document_id under this service's provider."""
        return DocumentKey(document_id=document_id, provider=self.provider)

    # ------------------------------------------------------------------
    # Backend calls
    # ------------------------------------------------------------------

    async def _translate_text(self, text: str, page_number: int) -> str:
        """
        Translate one page's text, chunking it for size-limited backends.
        Chunks are sent one after another and rejoined in order.
        """
        limit = self.backend.max_chunk_chars
        if not limit or len(text) <= limit:
            return await call_with_retry(
                lambda: self.backend.translate(text),
                self.retry_policy,
                sleep=self._sleep,
                description=f"Page {page_number}",
            )

        chunks = split_text(text, limit)
        logger.debug("Page %d split into %d chunks of at most %d chars", page_number, len(chunks), limit)
        translated = []
        for index, chunk in enumerate(chunks, start=1):
            result = await call_with_retry(
                lambda chunk=chunk: self.backend.translate(chunk),
                self.retry_policy,
                sleep=self._sleep,
                description=f"Page {page_number} chunk {index}/{len(chunks)}",
            )
            translated.append(result)
        return join_chunks(translated)

    async def _translate_page(self, record: PageRecord) -> TranslatedPageRecord:
        translated = await self._translate_text(record.text, record.page_number)
        return TranslatedPageRecord(
            page_number=record.page_number,
            text=translated,
            original_text=record.text,
        )

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def _discard(self, key: DocumentKey, reason: str) -> list[TranslatedPageRecord]:
        """Drop a checkpoint that does not belong to this document."""
        logger.warning("Discarding checkpoint for %s: %s", key.document_id, reason)
        self.checkpoints.clear(key)
        return []

    def _load_prefix(self, key: DocumentKey, pages: list[PageRecord], total: int) -> list[TranslatedPageRecord]:
        """
        Committed prefix usable for this document, or an empty list.

        A checkpoint is used only if its pages are exactly 1..K with K <= total
        and its source text matches the extracted pages it covers. Any other
        checkpoint under the key is removed so it can never be exported as
        this document's partial result.
        """
        checkpoint = self.checkpoints.get(key)
        if checkpoint is None or not checkpoint.pages:
            return []

        if not checkpoint.is_contiguous_prefix() or checkpoint.page_count > total:
            return self._discard(key, f"pages are not a prefix of a {total}-page document")

        extracted = {p.page_number: p.text for p in pages}
        for page in checkpoint.pages:
            if page.page_number in extracted and extracted[page.page_number] != page.original_text:
                return self._discard(key, f"page {page.page_number} text differs from the document")

        logger.info("Resuming %s from checkpoint (%d/%d pages done)", key.document_id, checkpoint.page_count, total)
        return [page.to_record() for page in checkpoint.pages]

    def _commit(self, key: DocumentKey, done: list[TranslatedPageRecord], file_name: Optional[str]) -> None:
        self.checkpoints.put(key, [CheckpointPage.from_record(r) for r in done], file_name=file_name)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def preview(
        self,
        data: bytes,
        key: DocumentKey,
        file_name: Optional[str] = None,
    ) -> PreviewResult:
        """
        Translate the first page only and commit it as the checkpoint prefix.

        If the first page is already committed no backend call is made.

        Raises:
            ExtractionError: unreadable document or a document without pages
            PipelineError: page 1 could not be translated
        """
        self._require_backend()
        validate_document(data, self.settings.max_upload_bytes)
        total = get_page_count(data)
        first = next(iter(iter_pages(data, self.settings.line_break_threshold)), None)
        if first is None:
            raise ExtractionError("Document has no pages")

        done = self._load_prefix(key, [first], total)
        if done:
            page = done[0]
            return PreviewResult(page_number=1, original_text=page.original_text, translated_text=page.text)

        report(self.events, TranslationPhase.TRANSLATING, 0, 1, "Translating preview")
        try:
            translated = await self._translate_page(first)
        except Exception as e:
            raise PipelineError(first.page_number, 0, total, str(e)) from e

        self._commit(key, [translated], file_name)
        report(self.events, TranslationPhase.TRANSLATING, 1, 1, "Preview ready")
        return PreviewResult(
            page_number=translated.page_number,
            original_text=translated.original_text,
            translated_text=translated.text,
        )

    async def translate(
        self,
        data: bytes,
        key: DocumentKey,
        file_name: Optional[str] = None,
        clear_on_success: bool = True,
    ) -> PipelineResult:
        """
        Translate every page, resuming from a valid checkpoint if one exists.

        Args:
            data: PDF bytes (never modified)
            key: Checkpoint key for this document and provider
            file_name: Display name stored with the checkpoint
            clear_on_success: Remove the checkpoint once every page is done

        Returns:
            PipelineResult with one TranslatedPageRecord per page, in page order

        Raises:
            ExtractionError: the document cannot be read
            PipelineError: a batch failed after retries; the prefix committed
                before that batch stays in the checkpoint
        """
        self._require_backend()
        validate_document(data, self.settings.max_upload_bytes)
        pages = extract_pages(data, self.settings.line_break_threshold, events=self.events)
        total = len(pages)

        done = self._load_prefix(key, pages, total)
        resumed = len(done)
        remaining = pages[resumed:]
        batch_size = max(1, self.settings.batch_size)

        report(self.events, TranslationPhase.TRANSLATING, resumed, total, "Translating")

        for start in range(0, len(remaining), batch_size):
            batch = remaining[start:start + batch_size]
            # Every sibling is awaited before the batch is judged
            results = await asyncio.gather(
                *(self._translate_page(record) for record in batch),
                return_exceptions=True,
            )

            for record, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    if done:
                        self._commit(key, done, file_name)
                    logger.error(
                        "Translation stopped at page %d (%d/%d committed): %s",
                        record.page_number, len(done), total, result,
                    )
                    raise PipelineError(record.page_number, len(done), total, str(result)) from result

            done.extend(results)
            self._commit(key, done, file_name)
            report(self.events, TranslationPhase.TRANSLATING, len(done), total,
                   f"Translated page {done[-1].page_number}")

        if clear_on_success:
            self.checkpoints.clear(key)
        logger.info("Translated %d pages (%d from checkpoint)", total, resumed)
        return PipelineResult(pages=done, resumed_pages=resumed, total_pages=total)

    async def translate_document(
        self,
        data: bytes,
        key: DocumentKey,
        file_name: Optional[str] = None,
    ) -> TranslatedDocument:
        """
        Translate and reconstruct the whole document.

        The checkpoint is cleared only after the output was built.

        Returns:
            TranslatedDocument with the output PDF bytes and the run result
        """
        result = await self.translate(data, key, file_name=file_name, clear_on_success=False)
        output = self.reconstructor.build(data, result.pages)
        self.checkpoints.clear(key)
        report(self.events, TranslationPhase.COMPLETE, result.total_pages, result.total_pages, "Done")
        return TranslatedDocument(pdf=output, result=result)

    def export_partial(self, data: bytes, key: DocumentKey) -> Optional[bytes]:
        """
        Build a document from the committed prefix only.

        The checkpoint is checked against the document's extracted text the
        same way a resumed run checks it; a checkpoint that does not match is
        discarded and nothing is exported.

        Returns:
            PDF bytes with one page per committed page, or None if nothing usable is committed

        Raises:
            ExtractionError: the document cannot be read
        """
        validate_document(data, self.settings.max_upload_bytes)
        pages = extract_pages(data, self.settings.line_break_threshold)
        records = self._load_prefix(key, pages, len(pages))
        if not records:
            return None
        logger.info("Exporting %d committed pages of %s", len(records), key.document_id)
        return self.reconstructor.build(data, records)
