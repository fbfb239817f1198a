"""
GSS Audit Trail — tamper-evident JSONL log of admin mutations.

Each record carries the hash of the previous record:
  hash = sha256(json(record incl. prev_hash, sorted keys, compact))
The chain starts at 64 zeros. The head is re-read from the last line of the
file under a sidecar lock before every append, so restarts and several
worker processes sharing one file extend a single chain.

Audit failures are logged and swallowed: losing an audit line must never
turn a successful admin write into an error response.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import time
from pathlib import Path

from .utils import client_ip, file_lock, jsonl_append, jsonl_tail

logger = logging.getLogger("gss.audit")

GENESIS_HASH = "0" * 64
_HEAD_SCAN_BYTES = 64 * 1024


def chain_hash(entry: dict) -> str:
    record_str = json.dumps(entry, separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(record_str.encode("utf-8")).hexdigest()


def verify_chain(records: list[dict], start_hash: str = GENESIS_HASH) -> bool:
    """True if every record links to its predecessor and hashes correctly."""
    prev = start_hash
    for rec in records:
        body = {k: v for k, v in rec.items() if k != "hash"}
        if rec.get("prev_hash") != prev or chain_hash(body) != rec.get("hash"):
            return False
        prev = rec["hash"]
    return True


class AuditLog:
    def __init__(self, path: str | Path):
        self.path = str(path)
        self._lock = threading.Lock()
        self._prev_hash = GENESIS_HASH
        self._recover()

    def _recover(self) -> None:
        """Pick up the chain head from the last record on disk."""
        try:
            head = self._head_on_disk()
        except OSError as e:
            logger.warning("Audit chain recovery failed, starting fresh: %s", e)
            return
        if head:
            self._prev_hash = head

    def _head_on_disk(self) -> str | None:
        """Hash of the last record in the live file, or in its rotated copy."""
        for path in (self.path, self.path + ".1"):
            if not os.path.isfile(path):
                continue
            with open(path, "rb") as f:
                f.seek(0, os.SEEK_END)
                f.seek(max(0, f.tell() - _HEAD_SCAN_BYTES))
                lines = f.read().splitlines()
            for line in reversed(lines):
                try:
                    rec = json.loads(line)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    continue
                if isinstance(rec, dict) and "hash" in rec:
                    return rec["hash"]
        return None

    def record(self, request, action: str, outcome: str, actor: str = "admin",
               details: dict | None = None) -> dict | None:
        entry = {
            "ts": int(time.time()),
            "action": action,
            "outcome": outcome,
            "actor": actor,
            "ip": client_ip(request) if request is not None else "127.0.0.1",
            "request_id": request.headers.get("X-Request-ID", "") if request is not None else "",
            "details": details or {},
        }
        try:
            with self._lock:
                os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
                with file_lock(self.path):
                    entry["prev_hash"] = self._head_on_disk() or self._prev_hash
                    entry["hash"] = chain_hash(entry)
                    jsonl_append(self.path, entry)
                self._prev_hash = entry["hash"]
        except OSError as e:
            logger.warning("Audit write failed for %s: %s", action, e)
            return None
        return entry

    def tail(self, limit: int = 100) -> list[dict]:
        return jsonl_tail(self.path, limit)
