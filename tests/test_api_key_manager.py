"""
Unit Tests — ApiKeyManager

Key format, single-current-key semantics and validation.
"""
import asyncio
import re

import pytest

from gss.api_key_manager import ALPHABET, ApiKeyManager, fingerprint, generate_key
from gss.config_store import API_KEY_ID

KEY_RE = re.compile(r"^gss_[A-Za-z0-9]{32}$")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def mgr(store):
    return ApiKeyManager(store)


class TestKeyFormat:

    def test_alphabet_has_62_symbols(self):
        assert len(ALPHABET) == 62
        assert len(set(ALPHABET)) == 62

    def test_generated_key_format(self):
        for _ in range(50):
            assert KEY_RE.match(generate_key())

    def test_fingerprint_is_short_and_stable(self):
        key = generate_key()
        assert fingerprint(key) == fingerprint(key)
        assert len(fingerprint(key)) == 12
        assert key not in fingerprint(key)


class TestIssue:

    def test_current_absent_before_first_issue(self, mgr):
        assert run(mgr.current()) is None

    def test_issue_persists_under_reserved_key(self, mgr, kv):
        key = run(mgr.issue())
        assert KEY_RE.match(key)
        assert run(kv.get(API_KEY_ID)) == key
        assert run(mgr.current()) == key

    def test_reissue_replaces_previous(self, mgr):
        first = run(mgr.issue())
        second = run(mgr.issue())
        assert first != second
        assert run(mgr.current()) == second
        assert run(mgr.validate(second)) is True
        assert run(mgr.validate(first)) is False

    def test_api_key_not_listed_as_site(self, mgr, store):
        run(mgr.issue())
        assert run(store.list()) == []


class TestValidate:

    def test_nothing_valid_when_never_issued(self, mgr):
        assert run(mgr.validate("gss_" + "a" * 32)) is False

    def test_empty_or_missing_never_valid(self, mgr):
        run(mgr.issue())
        assert run(mgr.validate("")) is False
        assert run(mgr.validate(None)) is False

    def test_exact_match_only(self, mgr):
        key = run(mgr.issue())
        assert run(mgr.validate(key)) is True
        assert run(mgr.validate(key.swapcase())) is False
        assert run(mgr.validate(key[:-1])) is False
        assert run(mgr.validate(key + "x")) is False
        assert run(mgr.validate(" " + key)) is False
