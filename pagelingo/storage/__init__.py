# pagelingo/storage/__init__.py
"""
Storage module for PageLingo.
Persists translation checkpoints so interrupted runs can resume.
"""

from pagelingo.storage.checkpoint_db import CheckpointDB, get_default_db_path

__all__ = ['CheckpointDB', 'get_default_db_path']
