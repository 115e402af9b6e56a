import logging
from pathlib import Path

from .accessor import LocalStore
from .backends import (
    DirectoryKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    SqliteKeyValueStore,
)

log = logging.getLogger(__name__)

STORE_BACKENDS = ("sqlite", "memory")


def create_store(store_cfg: dict) -> LocalStore:
    """Build the primary store from the ``[store]`` config table."""
    backend = store_cfg.get("backend", "sqlite")
    quota = store_cfg.get("quota_bytes") or None
    if backend == "memory":
        log.info("Using in-memory store (data is lost on restart)")
        return LocalStore(InMemoryKeyValueStore(quota_bytes=quota))
    if backend == "sqlite":
        path = Path(store_cfg["path"]).expanduser()
        log.info("Using SQLite store at %s", path)
        return LocalStore(SqliteKeyValueStore(path, quota_bytes=quota))
    raise ValueError(f"Unknown store backend {backend!r}; expected one of {STORE_BACKENDS}")


def create_backup_store(backup_cfg: dict, store_cfg: dict) -> KeyValueStore:
    """Secondary store for oversized backups; stays in memory when the primary does."""
    if store_cfg.get("backend") == "memory":
        return InMemoryKeyValueStore()
    return DirectoryKeyValueStore(Path(backup_cfg["directory"]).expanduser())
