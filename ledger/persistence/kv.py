"""
Key-Value Storage Backends

The ledger persists a handful of JSON documents by name. Backends only
need string get/set:
- MemoryKeyValueStore: in-process dict (testing)
- FileKeyValueStore: one JSON file per key
- SQLiteKeyValueStore: embedded single-table store
"""
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from pathlib import Path
from typing import Dict, Optional
from loguru import logger

from ..exceptions import PersistenceError


class KeyValueStore(ABC):
    """Abstract base class for document storage backends"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored string for key, or None if absent"""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value"""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class FileKeyValueStore(KeyValueStore):
    """
    File-based store

    Each key is a <key>.json file under base_path. Writes go to a
    temporary file first and are renamed into place.
    """

    def __init__(self, base_path: str = "./data/portfolio"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"File key-value store initialized: {self.base_path}")

    def _path(self, key: str) -> Path:
        return self.base_path / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(key, f"read failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")

        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(key, f"write failed: {e}") from e


DDL = """
CREATE TABLE IF NOT EXISTS documents (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed store, one row per key"""

    def __init__(self, path: str = "./data/portfolio/portfolio.db"):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.path = path

        with closing(sqlite3.connect(self.path)) as con, con:
            con.execute(DDL)

        logger.info(f"SQLite key-value store initialized: {self.path}")

    def get(self, key: str) -> Optional[str]:
        try:
            with closing(sqlite3.connect(self.path)) as con:
                row = con.execute("SELECT value FROM documents WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(key, f"read failed: {e}") from e

        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with closing(sqlite3.connect(self.path)) as con, con:
                con.execute(
                    "INSERT INTO documents(key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise PersistenceError(key, f"write failed: {e}") from e
