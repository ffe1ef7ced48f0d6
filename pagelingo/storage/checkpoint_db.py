# pagelingo/storage/checkpoint_db.py
"""
SQLite-based checkpoint storage for interrupted translations.

One row per (document_id, provider). Each commit replaces the row
atomically; rows older than the TTL are evicted when read.
"""

import sqlite3
import json
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from pagelingo.models.types import (
    Checkpoint,
    CheckpointInfo,
    CheckpointPage,
    DocumentKey,
)

# Module logger
import logging
logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def get_default_db_path() -> Path:
    """Get default database path in user's home directory"""
    db_dir = Path.home() / '.pagelingo'
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir / 'checkpoints.db'


def _validate_pages(pages: list[CheckpointPage]) -> None:
    previous = 0
    for page in pages:
        if page.page_number <= previous:
            raise ValueError(
                f"Checkpoint pages must be strictly ascending "
                f"(page {page.page_number} after {previous})"
            )
        previous = page.page_number


class CheckpointDB:
    """
    SQLite store for translation checkpoints.

    Args:
        db_path: Database file, ~/.pagelingo/checkpoints.db by default
        ttl_seconds: Age after which a checkpoint is treated as absent
        clock: Time source returning epoch seconds (injectable for tests)
    """

    # Database configuration
    DB_TIMEOUT = 30.0  # Connection timeout in seconds

    def __init__(
        self,
        db_path: Optional[Path] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path or get_default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        # Thread-local storage for connections (one per thread)
        self._local = threading.local()
        self._lock = threading.Lock()

        # Track all connections for proper shutdown (thread ID -> connection)
        self._all_connections: dict[int, sqlite3.Connection] = {}
        self._connections_lock = threading.Lock()

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection for the current thread.
        Reuses existing connection if available.
        """
        conn = getattr(self._local, 'connection', None)
        if conn is None:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.DB_TIMEOUT,
                check_same_thread=False
            )
            conn.execute('PRAGMA journal_mode=WAL')
            conn.row_factory = sqlite3.Row
            self._local.connection = conn

            thread_id = threading.get_ident()
            with self._connections_lock:
                self._all_connections[thread_id] = conn

        return conn

    def close(self):
        """Close all database connections and flush the WAL."""
        with self._connections_lock:
            for thread_id, conn in list(self._all_connections.items()):
                try:
                    conn.execute('PRAGMA wal_checkpoint(TRUNCATE)')
                    conn.close()
                    logger.debug("Closed DB connection for thread %d", thread_id)
                except sqlite3.Error as e:
                    logger.debug("Error closing DB connection for thread %d: %s", thread_id, e)
            self._all_connections.clear()

        if hasattr(self._local, 'connection'):
            self._local.connection = None

    def __enter__(self) -> "CheckpointDB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _init_db(self):
        """Initialize database schema"""
        # Short-lived connection so constructing the store does not hold the file open
        with self._lock:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.DB_TIMEOUT,
                check_same_thread=False,
            )
            try:
                conn.execute('PRAGMA journal_mode=WAL')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS checkpoints (
                        document_id TEXT NOT NULL,
                        provider TEXT NOT NULL,
                        file_name TEXT NOT NULL,
                        created_at REAL NOT NULL,
                        pages_json TEXT NOT NULL,
                        PRIMARY KEY (document_id, provider)
                    )
                ''')
                conn.commit()
            finally:
                conn.close()

    def _is_expired(self, created_at: float) -> bool:
        return self._clock() - created_at > self.ttl_seconds

    def _row_to_checkpoint(self, row: sqlite3.Row) -> Checkpoint:
        data = json.loads(row['pages_json'])
        pages = tuple(CheckpointPage.from_dict(p) for p in data)
        return Checkpoint(
            key=DocumentKey(document_id=row['document_id'], provider=row['provider']),
            file_name=row['file_name'],
            created_at=row['created_at'],
            pages=pages,
        )

    def get(self, key: DocumentKey) -> Optional[Checkpoint]:
        """
        Load the checkpoint for key.

        Expired checkpoints are deleted and reported as absent; so are rows
        that cannot be decoded.
        """
        conn = self._get_connection()
        row = conn.execute(
            '''
            SELECT document_id, provider, file_name, created_at, pages_json
            FROM checkpoints
            WHERE document_id = ? AND provider = ?
            ''',
            (key.document_id, key.provider)
        ).fetchone()
        if row is None:
            return None

        if self._is_expired(row['created_at']):
            logger.info("Checkpoint for %s (%s) expired, discarding", key.document_id, key.provider)
            self.clear(key)
            return None

        try:
            return self._row_to_checkpoint(row)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable checkpoint for %s: %s", key.document_id, e)
            self.clear(key)
            return None

    def put(
        self,
        key: DocumentKey,
        pages: Iterable[CheckpointPage],
        file_name: Optional[str] = None,
    ) -> Checkpoint:
        """
        Replace the checkpoint for key with pages, stamped with the current time.

        Raises:
            ValueError: pages are not strictly ascending
        """
        page_list = list(pages)
        _validate_pages(page_list)
        checkpoint = Checkpoint(
            key=key,
            file_name=file_name or key.document_id,
            created_at=self._clock(),
            pages=tuple(page_list),
        )
        pages_json = json.dumps([p.to_dict() for p in page_list], ensure_ascii=False)

        conn = self._get_connection()
        with self._lock:
            conn.execute(
                '''
                INSERT OR REPLACE INTO checkpoints
                    (document_id, provider, file_name, created_at, pages_json)
                VALUES (?, ?, ?, ?, ?)
                ''',
                (key.document_id, key.provider, checkpoint.file_name, checkpoint.created_at, pages_json)
            )
            conn.commit()
        logger.debug("Saved checkpoint for %s (%s): %d pages", key.document_id, key.provider, len(page_list))
        return checkpoint

    def clear(self, key: Optional[DocumentKey] = None) -> int:
        """
        Remove the checkpoint for key, or every checkpoint when key is None.

        Returns:
            Number of removed checkpoints
        """
        conn = self._get_connection()
        with self._lock:
            if key is None:
                cursor = conn.execute('DELETE FROM checkpoints')
            else:
                cursor = conn.execute(
                    'DELETE FROM checkpoints WHERE document_id = ? AND provider = ?',
                    (key.document_id, key.provider)
                )
            conn.commit()
            return cursor.rowcount

    def info(self, key: DocumentKey) -> Optional[CheckpointInfo]:
        """Summary of a live checkpoint, or None"""
        checkpoint = self.get(key)
        if checkpoint is None:
            return None
        return CheckpointInfo(
            file_name=checkpoint.file_name,
            provider=checkpoint.key.provider,
            page_count=checkpoint.page_count,
            age_seconds=max(0.0, self._clock() - checkpoint.created_at),
        )

    def list_keys(self) -> list[DocumentKey]:
        """Keys of all live checkpoints, newest first"""
        self.purge_expired()
        conn = self._get_connection()
        rows = conn.execute(
            'SELECT document_id, provider FROM checkpoints ORDER BY created_at DESC'
        ).fetchall()
        return [DocumentKey(document_id=r['document_id'], provider=r['provider']) for r in rows]

    def purge_expired(self) -> int:
        """Delete every expired checkpoint. Returns the number deleted."""
        cutoff = self._clock() - self.ttl_seconds
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute('DELETE FROM checkpoints WHERE created_at < ?', (cutoff,))
            conn.commit()
            if cursor.rowcount:
                logger.info("Purged %d expired checkpoint(s)", cursor.rowcount)
            return cursor.rowcount
