"""
Unit Tests — RateLimiter (login brute-force protection)

Sliding-window counting of failed login attempts per client IP.
"""
import threading
import time

from gss.utils import RateLimiter


class TestRateLimiterBasic:

    def test_not_limited_initially(self):
        rl = RateLimiter(max_attempts=3, window_seconds=60)
        assert rl.is_limited("203.0.113.7") is False

    def test_limited_at_max_attempts(self):
        rl = RateLimiter(max_attempts=3, window_seconds=60)
        for _ in range(3):
            rl.register_attempt("203.0.113.7")
        assert rl.is_limited("203.0.113.7") is True

    def test_not_limited_below_max(self):
        rl = RateLimiter(max_attempts=3, window_seconds=60)
        for _ in range(2):
            rl.register_attempt("203.0.113.7")
        assert rl.is_limited("203.0.113.7") is False

    def test_ips_tracked_independently(self):
        rl = RateLimiter(max_attempts=2, window_seconds=60)
        rl.register_attempt("203.0.113.7")
        rl.register_attempt("203.0.113.7")
        assert rl.is_limited("203.0.113.7") is True
        assert rl.is_limited("198.51.100.2") is False

    def test_clear_after_successful_login(self):
        rl = RateLimiter(max_attempts=2, window_seconds=60)
        rl.register_attempt("203.0.113.7")
        rl.register_attempt("203.0.113.7")
        rl.clear("203.0.113.7")
        assert rl.is_limited("203.0.113.7") is False

    def test_clear_unknown_key_is_noop(self):
        RateLimiter().clear("never-seen")


class TestRateLimiterWindow:

    def test_attempts_expire_after_window(self):
        rl = RateLimiter(max_attempts=2, window_seconds=1)
        rl.register_attempt("203.0.113.7")
        rl.register_attempt("203.0.113.7")
        assert rl.is_limited("203.0.113.7") is True
        time.sleep(1.1)
        assert rl.is_limited("203.0.113.7") is False

    def test_cleanup_removes_expired(self):
        rl = RateLimiter(max_attempts=2, window_seconds=1)
        rl.register_attempt("203.0.113.7")
        rl.register_attempt("198.51.100.2")
        time.sleep(1.1)
        assert rl.cleanup() == 2
        assert rl.cleanup() == 0


class TestRateLimiterThreadSafety:

    def test_concurrent_failed_logins(self):
        rl = RateLimiter(max_attempts=100, window_seconds=60)
        errors = []

        def fail_many():
            try:
                for _ in range(50):
                    rl.register_attempt("203.0.113.7")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=fail_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert rl.is_limited("203.0.113.7") is True


class TestRateLimiterMemory:

    def test_lookup_does_not_track_unseen_ips(self):
        rl = RateLimiter(max_attempts=3, window_seconds=60)
        for i in range(100):
            rl.is_limited(f"198.51.100.{i}")
        assert rl._attempts == {}

    def test_expired_entry_dropped_on_lookup(self):
        rl = RateLimiter(max_attempts=2, window_seconds=1)
        rl.register_attempt("203.0.113.7")
        time.sleep(1.1)
        assert rl.is_limited("203.0.113.7") is False
        assert "203.0.113.7" not in rl._attempts
