import pytest

import config
from dependencies import get_backup_store, get_store, get_sync_client, reset_dependencies
from main import app
from store.accessor import LocalStore
from store.backends import InMemoryKeyValueStore
from utils.sync import RemoteSyncClient

ENV_OVERRIDES = (
    "OPENAI_API_KEY",
    "SYNC_URL",
    "BACKUP_KEEP",
    "SESSION_SECRET",
    "MATHSMAYHEM_STORE_PATH",
    "MIGRATE_WITHOUT_USER",
)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config at a throwaway ~/.mathsmayhem and an in-memory store."""
    config_dir = tmp_path / ".mathsmayhem"
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_dir / "config.toml")
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MATHSMAYHEM_STORE_BACKEND", "memory")
    reset_dependencies()
    yield config_dir
    reset_dependencies()


@pytest.fixture
def server_store(isolated_config):
    """The store the app's routes see, plus an offline sync client."""
    store = LocalStore(InMemoryKeyValueStore())
    backup_store = InMemoryKeyValueStore()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_backup_store] = lambda: backup_store
    app.dependency_overrides[get_sync_client] = lambda: RemoteSyncClient(None)
    yield store
    app.dependency_overrides.clear()
