from __future__ import annotations

import logging
import platform
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from models.backup import BackupRecord, BackupResult, BackupSummary
from store.accessor import LocalStore
from store.backends import KeyValueStore
from store.keys import (
    BACKUP_PREFIX,
    CURRENT_VERSION,
    backup_key_for,
    format_timestamp,
    is_backup_record_key,
    is_user_data_key,
)
from utils.errors import BackupNotFound, StorageFailure
from utils.migration_log import get_migration_log, log_migration

log = logging.getLogger(__name__)

BACKUP_KEEP = 5
LARGE_BACKUP_THRESHOLD = 1024 * 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_DASHED_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2})-(\d{2})-(\d{2})(?:-(\d{1,6}))?Z$")


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, or the dashed form used in backup keys (`2024-01-01T00-00-00-000Z`)."""
    match = _DASHED_TIMESTAMP.match(value)
    if match:
        day, hour, minute, second, fraction = match.groups()
        value = f"{day}T{hour}:{minute}:{second}.{(fraction or '0').ljust(6, '0')}Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class BackupManager:
    """Timestamped snapshots of the user-data keys of a store."""

    def __init__(
        self,
        store: LocalStore,
        secondary: Optional[KeyValueStore] = None,
        *,
        keep: int = BACKUP_KEEP,
        large_backup_threshold: int = LARGE_BACKUP_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.secondary = secondary
        self.keep = keep
        self.large_backup_threshold = large_backup_threshold
        self.clock = clock

    def collect_user_data(self) -> Dict[str, str]:
        data = {}
        for key in self.store.keys():
            if not is_user_data_key(key):
                continue
            value = self.store.get(key)
            if value is not None:
                data[key] = value
        return data

    def system_data(self) -> dict:
        return {
            "platform": platform.platform(),
            "python_version": platform.python_version(),
            "hostname": platform.node(),
            "store_backend": type(self.store.backend).__name__,
        }

    def create_full_backup(self) -> BackupResult:
        timestamp = format_timestamp(self.clock())
        backup_key = backup_key_for(timestamp)
        record = BackupRecord(
            version=CURRENT_VERSION,
            timestamp=timestamp,
            user_data=self.collect_user_data(),
            system_data=self.system_data(),
            migration_log=get_migration_log(self.store),
        )
        payload = record.model_dump_json(by_alias=True)
        oversized = len(payload) > self.large_backup_threshold
        stored_secondary = False
        if oversized and self.secondary is not None:
            try:
                self.secondary.set(backup_key, payload)
                stored_secondary = True
            except StorageFailure as exc:
                log.error("Secondary backup store rejected %s: %s", backup_key, exc)
        try:
            self.store.set(backup_key, payload)
        except StorageFailure as exc:
            if stored_secondary:
                log.warning("Backup %s only kept in the secondary store: %s", backup_key, exc)
                return BackupResult(success=True, backup_key=backup_key)
            log.error("Backup failed: %s", exc)
            return BackupResult(success=False, error=str(exc))
        log.info("Full backup created: %s (%d bytes)", backup_key, len(payload))
        return BackupResult(success=True, backup_key=backup_key)

    def _load(self, backup_key: str) -> Optional[str]:
        raw = self.store.get(backup_key)
        if raw is None and self.secondary is not None:
            raw = self.secondary.get(backup_key)
        return raw

    def restore_from_backup(self, backup_key: str) -> BackupResult:
        raw = self._load(backup_key)
        if raw is None:
            raise BackupNotFound(f"Backup not found: {backup_key}")
        try:
            record = BackupRecord.model_validate_json(raw)
        except ValidationError as exc:
            log.error("Backup %s is unreadable: %s", backup_key, exc)
            return BackupResult(success=False, backup_key=backup_key, error="Backup is corrupt")
        try:
            for key, value in record.user_data.items():
                self.store.set(key, value)
            log_migration(self.store, "restore", f"Restored from backup: {backup_key}")
        except StorageFailure as exc:
            log.error("Restore of %s failed: %s", backup_key, exc)
            return BackupResult(success=False, backup_key=backup_key, error=str(exc))
        log.info("Data restored from backup: %s", backup_key)
        return BackupResult(success=True, backup_key=backup_key)

    def _backup_keys(self) -> List[str]:
        keys = [key for key in self.store.keys() if is_backup_record_key(key)]
        if self.secondary is not None:
            seen = set(keys)
            keys.extend(key for key in self.secondary.keys() if is_backup_record_key(key) and key not in seen)
        return keys

    def get_available_backups(self) -> List[BackupSummary]:
        """Backups in either store, newest first. Unreadable records are skipped."""
        summaries = []
        for key in self._backup_keys():
            raw = self._load(key)
            if raw is None:
                continue
            try:
                record = BackupRecord.model_validate_json(raw)
            except ValidationError:
                log.debug("Skipping malformed backup %s", key)
                continue
            try:
                moment = _parse_timestamp(record.timestamp)
            except ValueError:
                try:
                    moment = _parse_timestamp(key[len(BACKUP_PREFIX):])
                except ValueError:
                    log.debug("Skipping backup %s with unreadable timestamp", key)
                    continue
            summaries.append((moment, BackupSummary(
                key=key, timestamp=record.timestamp, version=record.version, size=len(raw),
            )))
        summaries.sort(key=lambda item: (item[0], item[1].key), reverse=True)
        return [summary for _, summary in summaries]

    def clean_old_backups(self) -> int:
        backups = self.get_available_backups()
        stale = backups[self.keep:]
        for backup in stale:
            self.store.remove(backup.key)
            if self.secondary is not None:
                self.secondary.remove(backup.key)
        if stale:
            log.info("Cleaned %d old backups", len(stale))
        return len(stale)

    def run_backup_cycle(self) -> BackupResult:
        result = self.create_full_backup()
        self.clean_old_backups()
        return result
