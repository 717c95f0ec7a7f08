"""Durable storage for the dashboard state record.

The record is always read and written wholesale under a single key.
"""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from config.models import StorageConfig
from utils.datetime import now_iso
from utils.io import ensure_dir, read_json, write_json_atomic
from utils.logging import get_logger

logger = get_logger(__name__)


class StateRepository(ABC):
    """Key/value store holding whole state documents."""

    @abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored document, or None when nothing is stored."""

    @abstractmethod
    def save(self, key: str, state: Dict[str, Any]) -> None:
        """Replace the stored document."""


class MemoryRepository(StateRepository):
    """In-process storage; documents are deep-copied on the way in and out."""

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self.save_count = 0

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def save(self, key: str, state: Dict[str, Any]) -> None:
        self._documents[key] = copy.deepcopy(state)
        self.save_count += 1


class JsonFileRepository(StateRepository):
    """One JSON file per key inside ``directory``."""

    def __init__(self, directory: str | Path):
        self.directory = ensure_dir(directory)
        logger.info(f"JSON state storage at {self.directory}")

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        return read_json(self.path_for(key))

    def save(self, key: str, state: Dict[str, Any]) -> None:
        write_json_atomic(self.path_for(key), state)


class SqliteRepository(StateRepository):
    """Key/value table in a SQLite database."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self._init_schema()
        logger.info(f"SQLite state storage initialized at {self.db_path}")

    def _init_schema(self):
        """Create the state table if it doesn't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,  -- JSON document
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper locking."""
        with self._lock:
            conn = sqlite3.connect(str(self.db_path))
            try:
                yield conn
            finally:
                conn.close()

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def save(self, key: str, state: Dict[str, Any]) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
            """, (key, json.dumps(state), now_iso()))
            conn.commit()


def create_repository(config: StorageConfig) -> StateRepository:
    """Build the repository selected by ``config.backend``."""
    if config.backend == "json":
        return JsonFileRepository(config.state_dir)
    if config.backend == "sqlite":
        return SqliteRepository(config.db_path)
    if config.backend == "memory":
        return MemoryRepository()
    raise ValueError(f"Unknown storage backend: {config.backend!r}")
