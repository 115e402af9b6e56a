from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError

from models.backup import MigrationLogEntry
from store.accessor import LocalStore
from store.keys import CURRENT_VERSION, MIGRATION_LOG_KEY, MIGRATION_LOG_LIMIT, format_timestamp


def get_migration_log(store: LocalStore) -> List[MigrationLogEntry]:
    entries = []
    for raw in store.get_json(MIGRATION_LOG_KEY, []) or []:
        try:
            entries.append(MigrationLogEntry.model_validate(raw))
        except ValidationError:
            continue
    return entries


def log_migration(store: LocalStore, entry_type: str, message: str) -> MigrationLogEntry:
    """Append an entry, keeping only the newest MIGRATION_LOG_LIMIT."""
    entry = MigrationLogEntry(
        type=entry_type,
        message=message,
        timestamp=format_timestamp(datetime.now(timezone.utc)),
        version=CURRENT_VERSION,
    )
    log = get_migration_log(store)
    log.append(entry)
    log = log[-MIGRATION_LOG_LIMIT:]
    store.set_json(MIGRATION_LOG_KEY, [item.model_dump(by_alias=True) for item in log])
    return entry
