"""Opaque admin session tokens stored in Redis."""

from __future__ import annotations

import hmac
import json
import logging
import secrets
from typing import Optional

import redis

from clinic.services.cache import cache_delete, cache_get, cache_set
from clinic.utils.config import get_settings
from clinic.utils.errors import Unavailable
from clinic.utils.timeutils import utc_now

LOGGER = logging.getLogger(__name__)
SESSION_PREFIX = "zoe:admin-session:"
SESSION_COOKIE_NAME = "admin_session"


def _session_key(token: str) -> str:
    return f"{SESSION_PREFIX}{token}"


def password_matches(candidate: str, expected: str) -> bool:
    """Constant-time password comparison."""

    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def create_session() -> str:
    """Issue a new token and persist it with the configured TTL."""

    token = secrets.token_urlsafe(32)
    record = json.dumps({"created_at": utc_now().isoformat()})
    try:
        cache_set(_session_key(token), record, ex=get_settings().admin_session_ttl_seconds)
    except redis.RedisError as exc:
        LOGGER.error("Could not store admin session: %s", exc)
        raise Unavailable() from exc
    LOGGER.info("Admin session issued")
    return token


def is_session_valid(token: Optional[str]) -> bool:
    """Return True when the token exists and has not expired."""

    if not token:
        return False
    try:
        return cache_get(_session_key(token)) is not None
    except redis.RedisError as exc:
        LOGGER.error("Could not read admin session: %s", exc)
        raise Unavailable() from exc


def revoke_session(token: Optional[str]) -> None:
    if not token:
        return
    try:
        cache_delete(_session_key(token))
    except redis.RedisError as exc:
        LOGGER.error("Could not revoke admin session: %s", exc)
        raise Unavailable() from exc
