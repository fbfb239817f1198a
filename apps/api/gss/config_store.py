"""
GSS Config Store — per-site selector configuration on top of a KV backend.

Layout of the flat namespace:
  <site>          JSON-encoded SiteConfig, one per distinct trimmed site
  __api_key__     raw API key token (see api_key_manager)

Keys starting with ``__`` are reserved for internal metadata. They are
never returned by list() and cannot be written or deleted through
put()/delete().

Writes are unconditional overwrites (last writer wins); delete is
idempotent. Backend failures surface as StoreError with the backend's
message; nothing here retries.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from .errors import StoreError, ValidationError
from .kv_backend import KVBackend

logger = logging.getLogger("gss.store")

RESERVED_PREFIX = "__"
API_KEY_ID = "__api_key__"

_SELECTOR_FIELDS = ("cardSelector", "linkSelector", "containerSelector")


def is_reserved(key: str) -> bool:
    return key.startswith(RESERVED_PREFIX)


class SiteConfig(BaseModel):
    """Selector record for one managed site. ``site`` is also its storage key."""

    model_config = ConfigDict(extra="ignore")

    site: str = Field(min_length=1)
    cardSelector: str = ""
    linkSelector: str = ""
    containerSelector: str = ""


def _clean(value: Optional[str]) -> str:
    return "" if value is None else str(value).strip()


class ConfigStore:
    """CRUD over SiteConfig records plus the reserved API key slot."""

    def __init__(self, backend: KVBackend):
        self._kv = backend

    @property
    def backend(self) -> KVBackend:
        return self._kv

    async def _call(self, op: str, coro):
        try:
            return await coro
        except StoreError:
            raise
        except Exception as e:
            logger.error("KV %s failed on %s backend: %s", op, self._kv.name, e)
            raise StoreError(str(e)) from e

    # ── Site configs ─────────────────────────────────────────────────────

    async def list(self) -> list[SiteConfig]:
        """All visible site configs, in backend enumeration order.

        One backend round trip per key. Empty values are skipped; values
        that do not parse as a SiteConfig are logged and skipped so one
        corrupt record cannot hide the rest.
        """
        keys = await self._call("list", self._kv.list_keys())
        configs: list[SiteConfig] = []
        for key in keys:
            if is_reserved(key):
                continue
            raw = await self._call("get", self._kv.get(key))
            if not raw:
                continue
            try:
                configs.append(SiteConfig.model_validate(json.loads(raw)))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                logger.warning("Skipping unparseable config under key %r: %s", key, e)
        return configs

    async def get(self, site: str) -> Optional[SiteConfig]:
        key = _clean(site)
        if not key or is_reserved(key):
            return None
        raw = await self._call("get", self._kv.get(key))
        if not raw:
            return None
        try:
            return SiteConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("Config under key %r is unparseable: %s", key, e)
            return None

    async def put(self, site: Optional[str], fields: dict | None = None) -> SiteConfig:
        """Create or overwrite the config for ``site``.

        The three selector fields are read from ``fields``; anything missing
        becomes an empty string. All values are trimmed before writing.
        """
        key = _clean(site)
        if not key:
            raise ValidationError("site is required")
        if is_reserved(key):
            raise ValidationError(f"site may not start with {RESERVED_PREFIX!r}")
        fields = fields or {}
        config = SiteConfig(site=key, **{name: _clean(fields.get(name)) for name in _SELECTOR_FIELDS})
        await self._call("put", self._kv.put(key, config.model_dump_json()))
        logger.info("Stored selector config for %s", key)
        return config

    async def delete(self, site: Optional[str]) -> None:
        """Remove ``site``. Succeeds whether or not it existed."""
        key = _clean(site)
        if not key:
            raise ValidationError("site parameter is required")
        if is_reserved(key):
            raise ValidationError(f"site may not start with {RESERVED_PREFIX!r}")
        await self._call("delete", self._kv.delete(key))
        logger.info("Deleted selector config for %s", key)

    # ── API key slot ─────────────────────────────────────────────────────

    async def get_api_key(self) -> Optional[str]:
        value = await self._call("get", self._kv.get(API_KEY_ID))
        return value or None

    async def set_api_key(self, token: str) -> None:
        await self._call("put", self._kv.put(API_KEY_ID, token))
