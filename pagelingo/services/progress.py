# pagelingo/services/progress.py
"""
Progress event stream shared by the extractor, orchestrator and reconstructor.

Components receive a ProgressEvents instance at construction and publish
TranslationProgress values to it. Callers subscribe once instead of
threading a callback through every call.
"""

import logging
import threading
from typing import Optional

from pagelingo.models.types import (
    ProgressCallback,
    TranslationPhase,
    TranslationProgress,
)

# Module logger
logger = logging.getLogger(__name__)


class ProgressEvents:
    """
    Fan-out of progress events to any number of subscribers.

    Subscribers run synchronously on the emitting thread. A subscriber that
    raises is logged and skipped so a broken progress display cannot abort
    a translation run.
    """

    def __init__(self):
        self._subscribers: list[ProgressCallback] = []
        self._lock = threading.Lock()
        self._last: Optional[TranslationProgress] = None

    def subscribe(self, callback: ProgressCallback) -> ProgressCallback:
        """Register a subscriber. Returns it so it can be used as a decorator."""
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: ProgressCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def last(self) -> Optional[TranslationProgress]:
        """Most recently emitted event"""
        return self._last

    def emit(self, progress: TranslationProgress) -> None:
        self._last = progress
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(progress)
            except Exception as e:
                logger.warning("Progress subscriber %r failed: %s", callback, e)

    def report(
        self,
        phase: TranslationPhase,
        current: int,
        total: int,
        status: str = "",
    ) -> None:
        """Emit a page-count event for a phase."""
        self.emit(TranslationProgress(
            current=current,
            total=total,
            status=status,
            phase=phase,
            phase_detail=f"Page {current}/{total}",
        ))


def report(
    events: Optional[ProgressEvents],
    phase: TranslationPhase,
    current: int,
    total: int,
    status: str = "",
) -> None:
    """Emit to events if a stream was provided."""
    if events is not None:
        events.report(phase, current, total, status)
