"""
GSS Shared Utilities — common patterns used by the store, audit and auth layers.

  - Advisory file locking for the JSON state files
  - Atomic JSON writes (tmp + os.replace)
  - JSONL append/tail for the audit trail
  - Sliding-window rate limiting for login brute-force protection
  - Client IP extraction behind trusted proxies
"""
from __future__ import annotations

import fcntl
import ipaddress
import json
import os
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Any


# ── File Locking ──────────────────────────────────────────────────────

@contextmanager
def file_lock(filepath: str, exclusive: bool = True):
    """Advisory file lock using fcntl on a sidecar ``.lock`` file."""
    lock_path = filepath + ".lock"
    fd = None
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o600)
        fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        yield
    finally:
        if fd is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)


# ── Atomic JSON State ─────────────────────────────────────────────────

def atomic_json_save(filepath: str, data: Any) -> None:
    """Atomically write a JSON file using tmp + os.replace, owner-only perms."""
    tmp = filepath + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, separators=(",", ":"), ensure_ascii=False)
    os.replace(tmp, filepath)
    try:
        os.chmod(filepath, 0o600)
    except OSError:
        pass


# ── JSONL I/O ─────────────────────────────────────────────────────────

DEFAULT_MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB


def jsonl_rotate_if_needed(filepath: str, max_size: int = DEFAULT_MAX_LOG_SIZE) -> bool:
    """Rotate a JSONL file to ``<file>.1`` if it exceeds max_size."""
    if not os.path.isfile(filepath) or os.path.getsize(filepath) <= max_size:
        return False
    rotated = filepath + ".1"
    if os.path.isfile(rotated):
        os.remove(rotated)
    os.rename(filepath, rotated)
    return True


def jsonl_append(filepath: str, record: dict, lock: threading.Lock | None = None,
                 max_size: int = DEFAULT_MAX_LOG_SIZE) -> None:
    """Append a JSON record to a JSONL file with file locking and optional rotation.

    Args:
        filepath: Path to the .jsonl file.
        record: Dict to serialize and append.
        lock: Optional threading.Lock for thread safety.
        max_size: Max file size before rotation (0 = no rotation).
    """
    def _write():
        if max_size > 0:
            jsonl_rotate_if_needed(filepath, max_size)
        fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o640)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            os.write(fd, (json.dumps(record, separators=(",", ":")) + "\n").encode("utf-8"))
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    if lock:
        with lock:
            _write()
    else:
        _write()


def jsonl_tail(filepath: str, limit: int = 100) -> list[dict]:
    """Read the last ``limit`` records (1-500) from a JSONL file, oldest first.

    Lines that are not valid JSON are ignored.
    """
    limit = max(1, min(limit, 500))
    if not os.path.isfile(filepath):
        return []

    out: deque[dict] = deque(maxlen=limit)
    with open(filepath, "r", encoding="utf-8") as f:
        fcntl.flock(f, fcntl.LOCK_SH)
        try:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    out.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)
    return list(out)


# ── Rate Limiting ─────────────────────────────────────────────────────

class RateLimiter:
    """Thread-safe sliding-window rate limiter.

    Tracks failed attempts per key within a time window. Used to throttle
    admin login attempts per client IP.
    """

    def __init__(self, max_attempts: int = 8, window_seconds: int = 120):
        self.max_attempts = max_attempts
        self.window = window_seconds
        self._attempts: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def is_limited(self, key: str) -> bool:
        """Check if ``key`` has reached the attempt limit inside the window."""
        threshold = time.time() - self.window
        with self._lock:
            attempts = [t for t in self._attempts.get(key, []) if t >= threshold]
            if attempts:
                self._attempts[key] = attempts
            else:
                self._attempts.pop(key, None)
            return len(attempts) >= self.max_attempts

    def register_attempt(self, key: str) -> None:
        """Record a failed attempt for ``key``."""
        now = time.time()
        threshold = now - self.window
        with self._lock:
            attempts = [t for t in self._attempts.get(key, []) if t >= threshold]
            attempts.append(now)
            self._attempts[key] = attempts

    def clear(self, key: str) -> None:
        """Forget all attempts for ``key`` (after a successful login)."""
        with self._lock:
            self._attempts.pop(key, None)

    def cleanup(self) -> int:
        """Drop keys whose attempts have all expired. Returns number removed."""
        threshold = time.time() - self.window
        with self._lock:
            expired = [k for k, v in self._attempts.items() if all(t < threshold for t in v)]
            for k in expired:
                del self._attempts[k]
        return len(expired)


# ── Client IP ─────────────────────────────────────────────────────────

def parse_cidrs(raw: str) -> list:
    """Parse a comma-separated CIDR list, silently skipping invalid entries."""
    nets = []
    for cidr in raw.split(","):
        cidr = cidr.strip()
        if not cidr:
            continue
        try:
            nets.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            continue
    return nets


_TRUSTED_PROXY_NETS = parse_cidrs(
    os.getenv("TRUSTED_PROXY_IPS", "172.16.0.0/12,10.0.0.0/8,192.168.0.0/16,127.0.0.0/8,::1/128")
)


def ip_is_trusted(ip_str: str, nets: list | None = None) -> bool:
    """Check if an IP address falls within the trusted proxy CIDRs."""
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in net for net in (nets if nets is not None else _TRUSTED_PROXY_NETS))


def client_ip(request) -> str:
    """Extract the client IP. ``X-Forwarded-For`` is honoured only when the
    direct peer is a trusted proxy; then the rightmost untrusted hop wins."""
    peer = request.client.host if request.client else "unknown"
    fwd = request.headers.get("X-Forwarded-For", "")
    if fwd and ip_is_trusted(peer):
        parts = [p.strip() for p in fwd.split(",") if p.strip()]
        for ip in reversed(parts):
            if not ip_is_trusted(ip):
                return ip
        return parts[0] if parts else peer
    return peer
