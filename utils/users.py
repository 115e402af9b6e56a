from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.progress import ProgressRecord
from models.subscription import SubscriptionRecord
from models.user import PublicUser, UserRecord
from store.accessor import LocalStore
from store.keys import (
    CURRENT_USER_KEY,
    USERS_KEY,
    format_timestamp,
    progress_key,
    subscription_key,
    user_backup_key,
)
from utils.auth import hash_password, verify_password
from utils.errors import Conflict, InputMissing, StorageFailure, Unauthorized, UserNotFound
from utils.sync import RemoteSyncClient

log = logging.getLogger(__name__)


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def _by_alias(model_cls, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Accept either snake_case field names or camelCase wire names."""
    aliases = {name: field.alias or name for name, field in model_cls.model_fields.items()}
    return {aliases.get(key, key): value for key, value in changes.items()}


class UserManager:
    """Registration, login and per-user records on top of a LocalStore."""

    def __init__(self, store: LocalStore, sync: Optional[RemoteSyncClient] = None):
        self.store = store
        self.sync = sync or RemoteSyncClient(None)

    # Users

    def _load_users(self) -> Dict[str, UserRecord]:
        users = {}
        for username, raw in (self.store.get_json(USERS_KEY, {}) or {}).items():
            try:
                users[username] = UserRecord.model_validate(raw)
            except ValidationError:
                log.warning("Ignoring malformed user record for %s", username)
        return users

    def _save_users(self, users: Dict[str, UserRecord]) -> None:
        self.store.set_json(
            USERS_KEY,
            {name: user.model_dump(by_alias=True) for name, user in users.items()},
        )

    def get_user(self, username: str) -> Optional[UserRecord]:
        return self._load_users().get(username)

    def list_usernames(self) -> List[str]:
        return sorted(self._load_users())

    async def register(self, username: Optional[str], password: Optional[str], email: Optional[str] = None) -> PublicUser:
        username = (username or "").strip()
        if not username or not password:
            raise InputMissing("Missing username or password")
        users = self._load_users()
        if username in users:
            raise Conflict("Username already taken")
        user = UserRecord(
            username=username,
            password=hash_password(password),
            email=(email or "").strip() or f"{username}@mathsmayhem.com",
            created_at=_now(),
        )
        users[username] = user
        self._save_users(users)
        self.initialize_user_data(username)
        await self.sync.push(username, self.export_user_data(username))
        log.info("Registered user %s", username)
        return user.public()

    async def login(self, username: Optional[str], password: Optional[str]) -> PublicUser:
        username = (username or "").strip()
        if not username or not password:
            raise InputMissing("Missing username or password")
        users = self._load_users()
        user = users.get(username)
        if user is None:
            raise UserNotFound("User not found")
        if not verify_password(password, user.password):
            raise Unauthorized("Invalid credentials")

        user.last_login = _now()
        self._save_users(users)
        self.store.set(CURRENT_USER_KEY, username)
        await self.sync.push(username, {"lastLogin": user.last_login})
        await self.restore_user_data(username)
        return user.public()

    async def logout(self) -> Optional[str]:
        username = self.get_current_user()
        if username:
            await self.backup_user_data(username)
        self.store.remove(CURRENT_USER_KEY)
        return username

    def get_current_user(self) -> Optional[str]:
        return self.store.get(CURRENT_USER_KEY) or None

    def is_logged_in(self) -> bool:
        return self.get_current_user() is not None

    # Per-user records

    def initialize_user_data(self, username: str) -> None:
        if not self.store.has(subscription_key(username)):
            record = SubscriptionRecord(start_date=_now())
            self.store.set_json(subscription_key(username), record.model_dump(by_alias=True))
        if not self.store.has(progress_key(username)):
            self.store.set_json(progress_key(username), ProgressRecord().model_dump(by_alias=True))

    def _read_record(self, username: str, v2_key: str, v1_key: str) -> Dict[str, Any]:
        raw = self.store.get_json(v2_key)
        if raw is None:
            raw = self.store.get_json(v1_key)
        return raw if isinstance(raw, dict) else {}

    def get_subscription(self, username: str) -> SubscriptionRecord:
        raw = self._read_record(username, subscription_key(username), subscription_key(username, v2=False))
        return SubscriptionRecord.model_validate(raw)

    def get_progress(self, username: str) -> ProgressRecord:
        raw = self._read_record(username, progress_key(username), progress_key(username, v2=False))
        return ProgressRecord.model_validate(raw)

    def _merged_subscription(self, username: str, changes: Dict[str, Any]) -> SubscriptionRecord:
        merged = {**self.get_subscription(username).model_dump(by_alias=True), **_by_alias(SubscriptionRecord, changes)}
        return SubscriptionRecord.model_validate(merged)

    def _merged_progress(self, username: str, changes: Dict[str, Any]) -> ProgressRecord:
        merged = {**self.get_progress(username).model_dump(by_alias=True), **_by_alias(ProgressRecord, changes)}
        return ProgressRecord.model_validate(merged)

    def update_subscription(self, username: str, changes: Dict[str, Any]) -> SubscriptionRecord:
        record = self._merged_subscription(username, changes)
        self.store.set_json(subscription_key(username), record.model_dump(by_alias=True))
        return record

    def update_progress(self, username: str, changes: Dict[str, Any]) -> ProgressRecord:
        record = self._merged_progress(username, changes)
        self.store.set_json(progress_key(username), record.model_dump(by_alias=True))
        return record

    def has_user_data(self, username: str) -> bool:
        return any(
            self.store.has(key)
            for key in (
                subscription_key(username),
                subscription_key(username, v2=False),
                progress_key(username),
                progress_key(username, v2=False),
            )
        )

    def export_user_data(self, username: str) -> Dict[str, Any]:
        user = self.get_user(username)
        return {
            "user": user.public().model_dump(by_alias=True) if user else None,
            "subscription": self.get_subscription(username).model_dump(by_alias=True),
            "progress": self.get_progress(username).model_dump(by_alias=True),
        }

    def apply_user_data(self, username: str, data: Dict[str, Any]) -> None:
        """Overlay remote or backed-up subscription/progress onto the local records.

        Both records are validated before either is written, so a malformed
        payload raises ValidationError and leaves the store untouched.
        """
        subscription = progress = None
        if isinstance(data.get("subscription"), dict):
            subscription = self._merged_subscription(username, data["subscription"])
        if isinstance(data.get("progress"), dict):
            progress = self._merged_progress(username, data["progress"])
        if subscription is not None:
            self.store.set_json(subscription_key(username), subscription.model_dump(by_alias=True))
        if progress is not None:
            self.store.set_json(progress_key(username), progress.model_dump(by_alias=True))

    # Backup and recovery

    async def backup_user_data(self, username: str) -> bool:
        data = self.export_user_data(username)
        data.pop("user", None)
        pushed = await self.sync.push(username, data)
        try:
            self.store.set_json(user_backup_key(username), {**data, "timestamp": _now()})
        except StorageFailure as exc:
            log.error("Local backup of %s failed: %s", username, exc)
            return False
        log.debug("User data backed up for %s (remote: %s)", username, pushed)
        return True

    async def restore_user_data(self, username: str) -> bool:
        data = await self.sync.pull(username)
        if not isinstance(data, dict) or not data:
            return False
        try:
            self.apply_user_data(username, data)
        except ValidationError as exc:
            log.warning("Remote data for %s is malformed, keeping local records: %s", username, exc)
            return False
        except StorageFailure as exc:
            log.error("Could not store remote data for %s: %s", username, exc)
            return False
        log.info("User data for %s restored from remote", username)
        return True

    async def recover_user_data(self, username: str) -> bool:
        backup = self.store.get_json(user_backup_key(username))
        if isinstance(backup, dict):
            log.info("Recovering %s from local backup", username)
            self.apply_user_data(username, backup)
            return True
        return await self.restore_user_data(username)
