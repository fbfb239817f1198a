"""
GSS Test Configuration — pytest fixtures and helpers.

Every test gets its own secrets and data directories, an in-memory KV
backend and a freshly assembled app, so nothing leaks between tests and no
external service is needed.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../apps/api"))

from fastapi.testclient import TestClient

from gss import secret_loader
from gss.config_store import ConfigStore
from gss.kv_backend import MemoryKV
from gss.main import create_app

ADMIN_PASSWORD = "Test-Admin-Password-1234"
SESSION_SECRET = "test-session-secret-for-unit-tests-1234567890"


class FailingKV(MemoryKV):
    """MemoryKV whose selected operations raise like a broken backend."""

    def __init__(self, fail_on=("get", "put", "delete", "list_keys"), message="backend unavailable", **kw):
        super().__init__(**kw)
        self.fail_on = set(fail_on)
        self.message = message

    def _maybe_fail(self, op):
        if op in self.fail_on:
            raise OSError(self.message)

    async def get(self, key):
        self._maybe_fail("get")
        return await super().get(key)

    async def put(self, key, value):
        self._maybe_fail("put")
        await super().put(key, value)

    async def delete(self, key):
        self._maybe_fail("delete")
        await super().delete(key)

    async def list_keys(self):
        self._maybe_fail("list_keys")
        return await super().list_keys()


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path, monkeypatch):
    """Ensure every test runs with its own secrets and data dirs."""
    secrets_dir = tmp_path / "secrets"
    secrets_dir.mkdir()
    data_dir = tmp_path / "data"
    data_dir.mkdir()

    _write(secrets_dir / "gss_admin_password", ADMIN_PASSWORD)
    _write(secrets_dir / "gss_session_secret", SESSION_SECRET)

    monkeypatch.setenv("GSS_SECRETS_DIR", str(secrets_dir))
    monkeypatch.setenv("GSS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("GSS_STORE_BACKEND", "memory")
    monkeypatch.setenv("TRUSTED_PROXY_IPS", "172.16.0.0/12,10.0.0.0/8,192.168.0.0/16,127.0.0.0/8,::1/128")
    for name in ("ADMIN_PATH", "GSS_SESSION_VERIFY", "GSS_SESSION_TTL", "GSS_ASSETS_DIR",
                 "GSS_ADMIN_PASSWORD_FILE", "GSS_SESSION_SECRET_FILE"):
        monkeypatch.delenv(name, raising=False)

    secret_loader.reset()
    yield
    secret_loader.reset()


def _write(path, content):
    path.write_text(content, encoding="utf-8")
    os.chmod(str(path), 0o640)


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def store(kv):
    return ConfigStore(kv)


@pytest.fixture
def app(store, tmp_path):
    return create_app(store=store, data_dir=str(tmp_path / "data"))


@pytest.fixture
def client(app):
    """Anonymous client: no session cookie."""
    return TestClient(app)


@pytest.fixture
def admin_client(app):
    """Client that carries a (presence-only) session cookie."""
    return TestClient(app, cookies={"auth_token": "session-present"})
