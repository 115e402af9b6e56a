from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from typing import Optional

from fastapi import HTTPException, Request, status

from config import load_config

SESSION_COOKIE_NAME = "mm_session"
PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 200_000
DEFAULT_SESSION_MINUTES = 60 * 24

# Used when no session_secret is configured; sessions then end with the process
_PROCESS_SECRET = secrets.token_hex(32)


def _get_auth_config() -> dict:
    config = load_config()
    return config.get("auth", {})


def get_session_minutes() -> int:
    auth_cfg = _get_auth_config()
    minutes = auth_cfg.get("session_minutes", DEFAULT_SESSION_MINUTES)
    try:
        return int(minutes)
    except (TypeError, ValueError):
        return DEFAULT_SESSION_MINUTES


def get_session_secret() -> str:
    return _get_auth_config().get("session_secret") or _PROCESS_SECRET


def hash_password(password: str, iterations: int = PASSWORD_HASH_ITERATIONS) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    )
    digest = base64.urlsafe_b64encode(dk).decode("utf-8")
    return f"{PASSWORD_HASH_ALGO}${iterations}${salt}${digest}"


def verify_password(password: str, stored_hash: str) -> bool:
    if not stored_hash or password is None:
        return False
    try:
        algo, iterations_str, salt, digest = stored_hash.split("$", 3)
    except ValueError:
        return False
    if algo != PASSWORD_HASH_ALGO:
        return False
    try:
        iterations = int(iterations_str)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    )
    computed = base64.urlsafe_b64encode(dk).decode("utf-8")
    return hmac.compare_digest(computed, digest)


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_cookie(username: str, duration_minutes: int, secret: str) -> str:
    expires_at = int(time.time()) + int(duration_minutes) * 60
    payload = f"{username}:{expires_at}"
    return f"{payload}:{_sign(secret, payload)}"


def verify_session_cookie(cookie_value: Optional[str], secret: str) -> Optional[str]:
    """Return the username the cookie was issued to, or None if it is invalid or expired."""
    if not cookie_value:
        return None
    try:
        payload, signature = cookie_value.rsplit(":", 1)
        username, expires_str = payload.rsplit(":", 1)
    except ValueError:
        return None
    if not hmac.compare_digest(signature, _sign(secret, payload)):
        return None
    try:
        expires_at = int(expires_str)
    except ValueError:
        return None
    if expires_at < int(time.time()):
        return None
    return username


def require_session(request: Request) -> str:
    username = verify_session_cookie(request.cookies.get(SESSION_COOKIE_NAME), get_session_secret())
    if username:
        return username
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
