"""
Best-effort client for a remote MathsMayhem ``user-data`` endpoint.

Every failure puts the client in offline mode and is reported to the caller
as a falsy result; nothing here raises past the call site.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from models.sync import SyncAction, SyncStatus
from utils.errors import RemoteUnavailable

log = logging.getLogger(__name__)


class RemoteSyncClient:
    def __init__(
        self,
        url: Optional[str],
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport
        self.status = SyncStatus.OFFLINE
        self.last_error: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _go_offline(self, action: str, reason: str) -> None:
        if self.status != SyncStatus.OFFLINE or self.last_error is None:
            log.warning("Remote sync unavailable during %s (%s); using local data only", action, reason)
        else:
            log.debug("Remote sync still unavailable during %s (%s)", action, reason)
        self.status = SyncStatus.OFFLINE
        self.last_error = reason

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=body)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"{type(exc).__name__}: {exc}") from exc
        try:
            result = response.json()
        except ValueError as exc:
            raise RemoteUnavailable(f"HTTP {response.status_code}: undecodable body") from exc
        if response.status_code >= 400 or not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            raise RemoteUnavailable(f"HTTP {response.status_code}: {error or 'request failed'}")
        return result

    async def call(
        self,
        action: SyncAction,
        username: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Send one action; the decoded response on success, None in degraded mode."""
        if not self.enabled:
            self.status = SyncStatus.OFFLINE
            return None
        body: Dict[str, Any] = {"action": action.value}
        if username is not None:
            body["username"] = username
        if data is not None:
            body["data"] = data
        try:
            result = await self._post(body)
        except RemoteUnavailable as exc:
            self._go_offline(action.value, exc.detail)
            return None
        if self.status != SyncStatus.ONLINE:
            log.info("Remote sync online (%s)", self.url)
        self.status = SyncStatus.ONLINE
        self.last_error = None
        return result

    async def push(self, username: str, data: Dict[str, Any]) -> bool:
        return await self.call(SyncAction.SAVE_USER_DATA, username=username, data=data) is not None

    async def pull(self, username: str) -> Optional[Dict[str, Any]]:
        result = await self.call(SyncAction.GET_USER, username=username)
        if result is None:
            return None
        return result.get("data") or None
