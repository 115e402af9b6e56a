from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from models.progress import ProgressRecord
from models.subscription import SubscriptionRecord
from store.accessor import LocalStore
from store.keys import (
    APP_VERSION_KEY,
    CURRENT_USER_KEY,
    CURRENT_VERSION,
    LEGACY_PROGRESS_KEYS,
    LEGACY_SUBSCRIPTION_KEYS,
    OLDEST_VERSION,
    format_timestamp,
    progress_key,
    subscription_key,
)
from utils.backup import BackupManager
from utils.errors import StorageFailure
from utils.migration_log import log_migration

log = logging.getLogger(__name__)

MigrationStep = Callable[[LocalStore, str], None]

_BOOL_FIELDS = {"is_trial_user", "has_used_trial", "has_payment_method"}
_STRING_PROGRESS_FIELDS = {"last_quiz_date", "themes"}


class MigrationOutcome(str, Enum):
    UP_TO_DATE = "up_to_date"
    MIGRATED = "migrated"
    SKIPPED_NO_USER = "skipped_no_user"
    FAILED = "failed"


def parse_version(version: Optional[str]) -> Tuple[int, ...]:
    parts = []
    for piece in (version or OLDEST_VERSION).split("."):
        try:
            parts.append(int(piece))
        except ValueError:
            parts.append(0)
    return tuple(parts)


def migrate_to_2_0(store: LocalStore, username: str) -> None:
    """Move the flat 1.x subscription/progress keys into ``{username}_*_v2`` records."""
    subscription_updates = {}
    for field, legacy_key in LEGACY_SUBSCRIPTION_KEYS.items():
        raw = store.get(legacy_key)
        if raw is None:
            continue
        subscription_updates[field] = raw == "true" if field in _BOOL_FIELDS else (raw or None)
    base = SubscriptionRecord.model_validate(store.get_json(subscription_key(username, v2=False), {}) or {})
    record = base.model_copy(update=subscription_updates)
    if not record.plan:
        record.plan = "free"
    if not record.start_date:
        record.start_date = format_timestamp(datetime.now(timezone.utc))

    progress_updates = {}
    for field, legacy_key in LEGACY_PROGRESS_KEYS.items():
        raw = store.get(legacy_key)
        if raw is None:
            continue
        if field in _STRING_PROGRESS_FIELDS:
            progress_updates[field] = raw or None
        else:
            progress_updates[field] = store.get_int(legacy_key)
    base_progress = ProgressRecord.model_validate(store.get_json(progress_key(username, v2=False), {}) or {})
    progress_record = base_progress.model_copy(update=progress_updates)
    if not progress_record.themes:
        progress_record.themes = "default"

    store.set_json(subscription_key(username), record.model_dump(by_alias=True))
    store.set_json(progress_key(username), progress_record.model_dump(by_alias=True))
    log.info("Migrated %s to version 2.0 structure", username)


MIGRATIONS: List[Tuple[str, MigrationStep]] = [
    ("2.0", migrate_to_2_0),
]


class MigrationRunner:
    """Brings the store up to CURRENT_VERSION once per version change."""

    def __init__(
        self,
        store: LocalStore,
        backups: BackupManager,
        *,
        current_version: str = CURRENT_VERSION,
        migrations: Optional[List[Tuple[str, MigrationStep]]] = None,
        migrate_without_user: bool = False,
    ):
        self.store = store
        self.backups = backups
        self.current_version = current_version
        self.migrations = MIGRATIONS if migrations is None else migrations
        self.migrate_without_user = migrate_without_user

    def stored_version(self) -> Optional[str]:
        return self.store.get(APP_VERSION_KEY) or None

    def needs_migration(self) -> bool:
        return self.stored_version() != self.current_version

    def pending_steps(self, from_version: Optional[str]) -> List[Tuple[str, MigrationStep]]:
        start = parse_version(from_version)
        end = parse_version(self.current_version)
        steps = [
            (version, step) for version, step in self.migrations
            if start < parse_version(version) <= end
        ]
        return sorted(steps, key=lambda item: parse_version(item[0]))

    def run(self) -> MigrationOutcome:
        last_version = self.stored_version()
        if last_version == self.current_version:
            return MigrationOutcome.UP_TO_DATE
        username = self.store.get(CURRENT_USER_KEY) or None
        if not username and not self.migrate_without_user:
            log.warning(
                "Stored data is at version %s but no current user is set; skipping migration to %s",
                last_version or "unknown",
                self.current_version,
            )
            try:
                log_migration(self.store, "skipped", "Migration skipped: no current user")
            except StorageFailure as exc:
                log.error("Could not record skipped migration: %s", exc)
            return MigrationOutcome.SKIPPED_NO_USER

        log.info("Migrating from version %s to %s", last_version or "unknown", self.current_version)
        backup = self.backups.create_full_backup()
        if not backup.success:
            log.warning("Pre-migration backup failed: %s", backup.error)
        try:
            for version, step in self.pending_steps(last_version):
                if username:
                    step(self.store, username)
                else:
                    log.info("No current user; per-user step %s skipped", version)
            self.store.set(APP_VERSION_KEY, self.current_version)
            log_migration(
                self.store,
                "auto",
                f"Migrated from {last_version or 'unknown'} to {self.current_version}",
            )
        except StorageFailure as exc:
            log.error("Migration to %s failed: %s", self.current_version, exc)
            return MigrationOutcome.FAILED
        return MigrationOutcome.MIGRATED
