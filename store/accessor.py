from __future__ import annotations

import json
import re
from typing import Any, List, Optional

from utils.errors import StorageFailure
from .backends import KeyValueStore

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(raw: Optional[str], default: int = 0) -> int:
    """Leading-digits integer parse of a legacy scalar; anything else is ``default``."""
    if raw is None:
        return default
    match = _LEADING_INT.match(raw)
    if not match:
        return default
    return int(match.group(1))


def parse_bool(raw: Optional[str]) -> bool:
    return raw == "true"


def to_store_value(value: Any) -> str:
    """Scalars are stored the way the browser client wrote them."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class LocalStore:
    """Scalar and JSON access on top of a ``KeyValueStore``."""

    def __init__(self, backend: KeyValueStore):
        self.backend = backend

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.backend.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self.backend.set(key, to_store_value(value))

    def remove(self, key: str) -> None:
        self.backend.remove(key)

    def keys(self) -> List[str]:
        return self.backend.keys()

    def has(self, key: str) -> bool:
        return self.backend.get(key) is not None

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.backend.get(key)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return default

    def set_json(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageFailure(f"Cannot serialize value for {key!r}: {exc}") from exc
        self.backend.set(key, payload)

    def get_int(self, key: str, default: int = 0) -> int:
        return parse_int(self.backend.get(key), default)

    def get_bool(self, key: str) -> bool:
        return parse_bool(self.backend.get(key))
