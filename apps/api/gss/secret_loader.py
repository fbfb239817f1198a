"""
GSS Secret Loader — file-only secret delivery.

Reads secrets from TWO sources with strict priority (NO env var fallback):
  1. Secrets directory files (GSS_SECRETS_DIR, default /run/secrets)
  2. *_FILE environment variables — Docker secrets / custom file paths

Secrets:
  GSS_ADMIN_PASSWORD   admin UI login password
  GSS_SESSION_SECRET   HMAC key for session tokens (key ring: current + previous)

Neither is required at startup: without an admin password the login route
answers 503, without a session secret no session can be minted. Weak or
short values are always rejected. Values are NEVER logged.

Usage:
    from .secret_loader import get_secret, get_key_ring

    password = get_secret("GSS_ADMIN_PASSWORD", required=False)
    current, previous = get_key_ring("GSS_SESSION_SECRET")
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger("gss.secrets")

_WEAK_VALUES = frozenset({
    "change-me-please", "change-me", "changeme", "secret", "admin",
    "password", "", "test", "default", "12345", "admin123",
})

_MIN_LENGTH = 8

# Map: secret name → filename in the secrets dir
_SECRET_MAP = {
    "GSS_ADMIN_PASSWORD": "gss_admin_password",
    "GSS_SESSION_SECRET": "gss_session_secret",
}

# Secrets that support current + previous (<file>_previous) for rotation
_KEY_RING_SECRETS = frozenset({"GSS_SESSION_SECRET"})

# ── Internal State ───────────────────────────────────────────────────────────
_cache: dict[str, str] = {}
_previous_cache: dict[str, str] = {}
_metadata: dict[str, dict] = {}
_lock = threading.Lock()
_loaded = False


def secrets_dir() -> Path:
    return Path(os.getenv("GSS_SECRETS_DIR", "/run/secrets"))


def _read_file_secret(filepath: Path) -> Optional[str]:
    """Read a secret from a file, stripping surrounding whitespace."""
    try:
        if filepath.is_file():
            val = filepath.read_text(encoding="utf-8").strip()
            if val:
                return val
    except OSError as e:
        logger.warning("Cannot read secret file %s: %s", filepath, e)
    return None


def _load_secret(name: str) -> tuple[Optional[str], str]:
    """Load one secret. Returns (value, source) with source one of
    'secrets_dir', 'file_env', 'missing'."""
    val = _read_file_secret(secrets_dir() / _SECRET_MAP.get(name, name.lower()))
    if val is not None:
        return val, "secrets_dir"

    file_env = os.getenv(f"{name}_FILE")
    if file_env:
        val = _read_file_secret(Path(file_env))
        if val is not None:
            return val, "file_env"

    return None, "missing"


def _load_previous_secret(name: str) -> Optional[str]:
    val = _read_file_secret(secrets_dir() / (_SECRET_MAP.get(name, name.lower()) + "_previous"))
    if val is not None:
        return val
    prev_file_env = os.getenv(f"{name}_PREVIOUS_FILE")
    if prev_file_env:
        return _read_file_secret(Path(prev_file_env))
    return None


def _validate_secret(name: str, value: str, source: str) -> str:
    """Raise RuntimeError for weak/default or too-short values."""
    if value.lower() in _WEAK_VALUES:
        raise RuntimeError(
            f"FATAL: {name} has a weak/default value. "
            f"Source: {source}. Generate a strong value."
        )
    if len(value) < _MIN_LENGTH:
        raise RuntimeError(
            f"FATAL: {name} is too short ({len(value)} chars). "
            f"Minimum {_MIN_LENGTH} characters required."
        )
    return value


def load_all_secrets() -> dict[str, str]:
    """Load every known secret. Returns {name: value} for those present.
    Raises RuntimeError if a present secret is weak."""
    global _loaded
    loaded: dict[str, str] = {}
    previous: dict[str, str] = {}
    meta: dict[str, dict] = {}

    for name in _SECRET_MAP:
        value, source = _load_secret(name)
        if value is None:
            meta[name] = {"source": "missing", "loaded_at": int(time.time())}
            logger.warning("Secret %s not configured", name)
            continue

        _validate_secret(name, value, source)
        loaded[name] = value

        has_previous = False
        if name in _KEY_RING_SECRETS:
            prev_val = _load_previous_secret(name)
            if prev_val is not None:
                previous[name] = prev_val
                has_previous = True

        meta[name] = {
            "source": source,
            "loaded_at": int(time.time()),
            "length": len(value),
            "key_ring": has_previous,
        }
        logger.info("Secret %s loaded from %s (%d chars)", name, source, len(value))

    with _lock:
        _cache.clear()
        _cache.update(loaded)
        _previous_cache.clear()
        _previous_cache.update(previous)
        _metadata.clear()
        _metadata.update(meta)
        _loaded = True

    return loaded


def get_secret(name: str, required: bool = True) -> str:
    """Cached secret value. Raises RuntimeError if required and unavailable."""
    if not _loaded:
        load_all_secrets()

    with _lock:
        val = _cache.get(name)

    if val is None and required:
        raise RuntimeError(f"FATAL: Secret {name} not available. Check {secrets_dir()}.")
    return val or ""


def get_key_ring(name: str) -> tuple[str, Optional[str]]:
    """(current, previous_or_None). Sign with current; verify with both."""
    if not _loaded:
        load_all_secrets()

    with _lock:
        return _cache.get(name, ""), _previous_cache.get(name)


def get_secret_metadata() -> dict[str, dict]:
    """Source and timing per secret — NEVER values."""
    with _lock:
        return {
            name: {
                "source": m.get("source", "unknown"),
                "loaded_at": m.get("loaded_at", 0),
                "length": m.get("length", 0),
                "key_ring": m.get("key_ring", False),
            }
            for name, m in _metadata.items()
        }


def reset() -> None:
    """Forget cached secrets; the next access reloads from disk."""
    global _loaded
    with _lock:
        _cache.clear()
        _previous_cache.clear()
        _metadata.clear()
        _loaded = False
