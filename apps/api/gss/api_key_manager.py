"""
GSS API Key Manager — the single global key for the public listing API.

There is exactly one current key, stored raw under the reserved
``__api_key__`` slot of the config store. Issuing a new key overwrites the
slot, which invalidates the previous key immediately. No expiry, no
per-client scoping, no revocation list.

Key format: ``gss_`` + 32 characters from [A-Za-z0-9].

Usage:
    mgr = ApiKeyManager(store)
    raw_key = await mgr.issue()          # only time the key is returned on write
    await mgr.validate(presented_key)    # True / False
"""

import hashlib
import hmac
import logging
import secrets
import string
from typing import Optional

from .config_store import ConfigStore

logger = logging.getLogger("gss.api_key")

# ── Constants ────────────────────────────────────────────────────────────────
PREFIX = "gss_"
KEY_LENGTH = 32
ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits  # 62 symbols
_FINGERPRINT_LENGTH = 12  # hex chars for log-safe fingerprint


def generate_key() -> str:
    """New random key; every character drawn independently and uniformly."""
    return PREFIX + "".join(secrets.choice(ALPHABET) for _ in range(KEY_LENGTH))


def fingerprint(raw_key: str) -> str:
    """SHA-256 fingerprint (first 12 hex chars) — safe for logs and audit."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()[:_FINGERPRINT_LENGTH]


class ApiKeyManager:
    """Issues, reads and checks the API key held by a ConfigStore."""

    def __init__(self, store: ConfigStore):
        self._store = store

    async def issue(self) -> str:
        """Generate and persist a new key, replacing any previous one."""
        raw_key = generate_key()
        await self._store.set_api_key(raw_key)
        logger.info("Issued new API key (fingerprint %s)", fingerprint(raw_key))
        return raw_key

    async def current(self) -> Optional[str]:
        """The current key, or None if none has ever been issued."""
        return await self._store.get_api_key()

    async def validate(self, presented: Optional[str]) -> bool:
        """Full-string, case-sensitive match against the current key."""
        if not presented:
            return False
        stored = await self.current()
        if stored is None:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))
