"""
Unit Tests — Trusted proxy parsing

Client IP extraction used as the login throttling key and in audit records.
X-Forwarded-For is honoured only when the direct peer is a trusted proxy.
"""
from unittest.mock import MagicMock

from gss.utils import client_ip, ip_is_trusted, parse_cidrs


def _request(peer, xff=None):
    request = MagicMock()
    request.client.host = peer
    request.headers = {"X-Forwarded-For": xff} if xff is not None else {}
    return request


class TestTrustedProxyParsing:

    def test_private_ips_are_trusted(self):
        for ip in ["172.16.0.1", "172.31.255.255", "10.0.0.1", "192.168.1.1", "127.0.0.1", "::1"]:
            assert ip_is_trusted(ip), f"{ip} should be trusted"

    def test_public_ips_are_not_trusted(self):
        for ip in ["8.8.8.8", "1.1.1.1", "203.0.113.1", "100.100.100.100"]:
            assert not ip_is_trusted(ip), f"{ip} should not be trusted"

    def test_invalid_ip_not_trusted(self):
        assert ip_is_trusted("not-an-ip") is False
        assert ip_is_trusted("") is False
        assert ip_is_trusted("testclient") is False

    def test_parse_cidrs_skips_garbage(self):
        nets = parse_cidrs("10.0.0.0/8, nonsense,,192.168.0.0/33,203.0.113.0/24")
        assert [str(n) for n in nets] == ["10.0.0.0/8", "203.0.113.0/24"]
        assert ip_is_trusted("203.0.113.9", nets)
        assert not ip_is_trusted("192.168.0.1", nets)


class TestClientIPExtraction:

    def test_direct_connection_uses_peer_ip(self):
        assert client_ip(_request("203.0.113.50")) == "203.0.113.50"

    def test_xff_from_trusted_proxy(self):
        assert client_ip(_request("172.16.0.2", "203.0.113.50, 10.0.0.1")) == "203.0.113.50"

    def test_xff_all_trusted_returns_leftmost(self):
        assert client_ip(_request("172.16.0.2", "10.0.0.1, 192.168.1.1")) == "10.0.0.1"

    def test_xff_from_untrusted_peer_ignored(self):
        assert client_ip(_request("203.0.113.1", "10.0.0.1, 192.168.1.1")) == "203.0.113.1"

    def test_spoofed_leftmost_hop_ignored(self):
        # Attacker-supplied leftmost entry must not win over the real client.
        ip = client_ip(_request("10.0.0.5", "1.2.3.4, 198.51.100.7"))
        assert ip == "198.51.100.7"

    def test_no_client(self):
        request = MagicMock()
        request.client = None
        request.headers = {}
        assert client_ip(request) == "unknown"
