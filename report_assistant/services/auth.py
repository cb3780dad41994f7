# =============================================================================
# Auth Service — User API Keys & Admin Key Check
# =============================================================================
#
# Pure functions, no FastAPI imports: used by the request dependencies in
# api/deps.py, the admin endpoints and the tests.
#
# User keys are random 256-bit tokens. Only their SHA-256 digest is stored,
# which is sufficient for high-entropy secrets and lets the lookup be a
# single indexed equality match.
#
# The admin key (backfill, key issuance) is a single shared secret from
# settings, compared in constant time. An empty setting disables every
# admin operation.
# =============================================================================

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime

KEY_PREFIX = "rk-"


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new user API key.

    Returns:
        (raw_key, key_prefix, key_hash): the raw key is returned to the
        caller once; the prefix identifies the key in logs; the hash is
        what gets stored.
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(32)}"
    return raw_key, raw_key[:8], hash_api_key(raw_key)


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest of `raw_key` (64 chars)."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def key_rejection_reason(
    is_active: bool,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> str | None:
    """Return why a stored key may not be used, or None if it may."""
    if not is_active:
        return "API key has been deactivated."
    now = now or datetime.now(UTC)
    if expires_at is not None and expires_at < now:
        return "API key has expired."
    return None


def admin_key_matches(provided: str | None, configured: str) -> bool:
    """Constant-time comparison of an X-Admin-Key header value."""
    if not configured or not provided:
        return False
    return secrets.compare_digest(provided.encode(), configured.encode())
