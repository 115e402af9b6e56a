"""
Key-value store backends: SQLite for production, a dict for tests and a
directory of files for oversized backups.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol
from urllib.parse import quote, unquote

from utils.errors import StorageFailure, StorageQuotaExceeded

KV_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class KeyValueStore(Protocol):
    """String keys to string values. Missing keys read as None."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


def _entry_size(key: str, value: str) -> int:
    return len(key) + len(value)


class InMemoryKeyValueStore:
    """Dict-backed store with an optional quota, counted in characters."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_entry_size(k, v) for k, v in self.data.items() if k != key)
            if used + _entry_size(key, value) > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key!r} would exceed the {self.quota_bytes} byte quota"
                )
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self.data)


class SqliteKeyValueStore:
    """Persistent store in a single SQLite table."""

    def __init__(self, path: Path, quota_bytes: Optional[int] = None):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.executescript(KV_SCHEMA_SQL)
            conn.commit()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._conn() as conn:
                if self.quota_bytes is not None:
                    used = conn.execute(
                        "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv WHERE key != ?",
                        (key,),
                    ).fetchone()[0]
                    if used + _entry_size(key, value) > self.quota_bytes:
                        raise StorageQuotaExceeded(
                            f"Writing {key!r} would exceed the {self.quota_bytes} byte quota"
                        )
                conn.execute(
                    """
                    INSERT INTO kv (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFailure(f"SQLite write failed for {key!r}: {exc}") from exc

    def remove(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> List[str]:
        with self._conn() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv")]


class DirectoryKeyValueStore:
    """One file per key; the larger-capacity home for oversized backups."""

    suffix = ".json"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.suffix}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(value, encoding="utf-8")
        except OSError as exc:
            raise StorageFailure(f"Could not write {key!r} to {self.directory}: {exc}") from exc

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return [unquote(path.name[: -len(self.suffix)]) for path in self.directory.glob(f"*{self.suffix}")]
