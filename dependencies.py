"""
Process-wide singletons and the FastAPI dependencies that hand them out.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends

from config import load_config
from store.accessor import LocalStore
from store.backends import KeyValueStore
from store.database import create_backup_store, create_store
from utils.backup import BackupManager
from utils.sync import RemoteSyncClient
from utils.tutor import build_client
from utils.users import UserManager

_store: LocalStore | None = None
_backup_store: KeyValueStore | None = None
_sync_client: RemoteSyncClient | None = None


def get_store() -> LocalStore:
    global _store
    if _store is None:
        _store = create_store(load_config()["store"])
    return _store


def get_backup_store() -> KeyValueStore:
    global _backup_store
    if _backup_store is None:
        config = load_config()
        _backup_store = create_backup_store(config["backup"], config["store"])
    return _backup_store


def get_sync_client() -> RemoteSyncClient:
    global _sync_client
    if _sync_client is None:
        sync_cfg = load_config()["sync"]
        _sync_client = RemoteSyncClient(sync_cfg["url"], timeout=sync_cfg["timeout"])
    return _sync_client


def get_user_manager(
    store: LocalStore = Depends(get_store),
    sync: RemoteSyncClient = Depends(get_sync_client),
) -> UserManager:
    return UserManager(store, sync)


def get_backup_manager(
    store: LocalStore = Depends(get_store),
    secondary: KeyValueStore = Depends(get_backup_store),
) -> BackupManager:
    backup_cfg = load_config()["backup"]
    return BackupManager(
        store,
        secondary,
        keep=backup_cfg["keep"],
        large_backup_threshold=backup_cfg["large_backup_threshold"],
    )


def get_tutor_client() -> Optional[object]:
    tutor_cfg = load_config()["tutor"]
    return build_client(tutor_cfg["api_key"], tutor_cfg["timeout"])


def reset_dependencies() -> None:
    """Drop the cached singletons so the next request rebuilds them from config."""
    global _store, _backup_store, _sync_client
    _store = None
    _backup_store = None
    _sync_client = None
