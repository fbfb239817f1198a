"""
GSS KV Backends — the storage engine behind the config store.

The store only ever needs four operations: get, put, delete and list. Every
backend exposes them as coroutines so the request handlers await each
round trip; the store never fans out in parallel.

  MemoryKV    dict-backed, insertion-ordered. Tests and throwaway instances.
  JsonFileKV  one JSON object on the data volume, fcntl-locked, atomic writes.

Backends raise whatever their underlying I/O raises; ConfigStore turns that
into StoreError.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .utils import atomic_json_save, file_lock

logger = logging.getLogger("gss.kv")


class KVBackend:
    """Interface every backend implements."""

    name = "abstract"

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove ``key``. Must not fail when the key is absent."""
        raise NotImplementedError

    async def list_keys(self) -> list[str]:
        raise NotImplementedError


class MemoryKV(KVBackend):
    name = "memory"

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self) -> list[str]:
        return list(self._data)


class JsonFileKV(KVBackend):
    """Flat key → string map persisted as a single JSON object.

    Every operation takes the advisory lock on the file, so several worker
    processes sharing the data volume see per-key consistent state. The
    data directory is created on first write, not at construction.
    """

    name = "file"

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise OSError(f"KV file {self._path} is corrupt: {e}") from e
        if not isinstance(data, dict):
            raise OSError(f"KV file {self._path} does not hold a JSON object")
        return data

    def _ensure_dir(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Optional[str]:
        if not self._path.exists():
            return None
        with file_lock(str(self._path), exclusive=False):
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    async def put(self, key: str, value: str) -> None:
        self._ensure_dir()
        with file_lock(str(self._path), exclusive=True):
            data = self._read()
            data[key] = value
            atomic_json_save(str(self._path), data)

    async def delete(self, key: str) -> None:
        if not self._path.exists():
            return
        with file_lock(str(self._path), exclusive=True):
            data = self._read()
            if data.pop(key, None) is not None:
                atomic_json_save(str(self._path), data)

    async def list_keys(self) -> list[str]:
        if not self._path.exists():
            return []
        with file_lock(str(self._path), exclusive=False):
            return list(self._read())


def backend_from_env() -> KVBackend:
    """Build the backend selected by GSS_STORE_BACKEND (``file`` | ``memory``)."""
    kind = os.getenv("GSS_STORE_BACKEND", "file").lower().strip()
    if kind == "memory":
        logger.warning("GSS_STORE_BACKEND=memory — selector configs are lost on restart")
        return MemoryKV()
    if kind != "file":
        logger.warning("Unknown GSS_STORE_BACKEND=%r, falling back to file", kind)
    data_dir = os.getenv("GSS_DATA_DIR", "/data")
    return JsonFileKV(Path(data_dir) / ".gss_kv.json")
