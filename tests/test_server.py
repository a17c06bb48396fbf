"""
Tests for services.server - the local HTTP API.

Covers:
- Route dispatch for GET/POST endpoints
- Error code to HTTP status mapping
- 404/405/413/429 transport responses
"""

import http.client
import json
import urllib.error
import urllib.request

import pytest

from services.server import MAX_CONTENT_LENGTH, WalletServer, get_http_status_for_error
from services.settings import WalletSettings
from wallet import is_valid_mnemonic

from conftest import ETH_ADDRESS_0, STRONG_PASSWORD, TEST_MNEMONIC


@pytest.fixture
def server(fast_kdf):
    srv = WalletServer(kdf_params=fast_kdf)
    assert srv.start(0)
    yield srv
    srv.stop()


def request(server, method, path, body=None):
    """Send a request; returns (status, parsed JSON)."""
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(
        f"http://127.0.0.1:{server.port}{path}",
        data=data,
        method=method,
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


class TestLifecycle:

    def test_started_signal_and_port(self, fast_kdf):
        ports = []
        srv = WalletServer(kdf_params=fast_kdf)
        srv.started.connect(lambda port: ports.append(port))
        assert srv.start(0)
        try:
            assert srv.is_running
            assert ports == [srv.port]
            assert srv.port != 0
        finally:
            srv.stop()
        assert not srv.is_running

    def test_port_in_use(self, server, fast_kdf):
        errors = []
        other = WalletServer(kdf_params=fast_kdf)
        other.error.connect(lambda message: errors.append(message))
        assert not other.start(server.port)
        assert errors

    def test_from_settings(self):
        settings = WalletSettings(word_count=24, requests_per_minute=10)
        srv = WalletServer.from_settings(settings)
        assert srv._word_count == 24
        assert srv._requests_per_minute == 10


class TestGetEndpoints:

    def test_health(self, server):
        assert request(server, "GET", "/health") == (200, {"status": "ok"})

    def test_status(self, server):
        status, body = request(server, "GET", "/status")
        assert status == 200
        assert body["service"] == "Zenith"
        assert body["chains"] == ["solana", "ethereum", "bitcoin"]
        assert body["started_at"]

    def test_mnemonic(self, server):
        status, body = request(server, "GET", "/api/mnemonic")
        assert status == 200
        assert is_valid_mnemonic(body["mnemonic"])

    def test_query_string_ignored(self, server):
        assert request(server, "GET", "/health?x=1")[0] == 200

    def test_not_found(self, server):
        assert request(server, "GET", "/nope") == (404, {"error": "Not found", "code": "NOT_FOUND"})

    def test_post_only_route(self, server):
        status, body = request(server, "GET", "/api/ethereum/address")
        assert status == 405
        assert body["allowed_methods"] == ["POST"]


class TestPostEndpoints:

    def test_address(self, server):
        status, body = request(server, "POST", "/api/ethereum/address", {"mnemonic": TEST_MNEMONIC, "index": 0})
        assert status == 200
        assert body["address"] == ETH_ADDRESS_0

    def test_sign(self, server):
        status, body = request(server, "POST", "/api/solana/sign",
                               {"mnemonic": TEST_MNEMONIC, "index": 0, "message": "hi"})
        assert status == 200
        assert body["signature"]

    def test_unsupported_chain(self, server):
        status, body = request(server, "POST", "/api/dogecoin/address", {"mnemonic": TEST_MNEMONIC})
        assert status == 404
        assert body["code"] == "UNSUPPORTED_CHAIN"

    def test_invalid_mnemonic(self, server):
        status, body = request(server, "POST", "/api/ethereum/address", {"mnemonic": "abandon " * 12})
        assert status == 400
        assert body["code"] == "INVALID_MNEMONIC"

    def test_vault_round_trip(self, server):
        status, sealed = request(server, "POST", "/api/encrypt-wallet",
                                 {"mnemonic": TEST_MNEMONIC, "password": STRONG_PASSWORD})
        assert status == 200
        status, opened = request(server, "POST", "/api/decrypt-wallet",
                                 {"encrypted": sealed["encrypted"], "password": STRONG_PASSWORD})
        assert (status, opened) == (200, {"mnemonic": TEST_MNEMONIC})

    def test_wrong_password_is_401(self, server):
        _, sealed = request(server, "POST", "/api/encrypt-wallet",
                            {"mnemonic": TEST_MNEMONIC, "password": STRONG_PASSWORD})
        status, body = request(server, "POST", "/api/decrypt-wallet",
                               {"encrypted": sealed["encrypted"], "password": "Wrong1!pass"})
        assert status == 401
        assert body["code"] == "AUTH_FAILED"

    def test_get_only_route(self, server):
        assert request(server, "POST", "/health", {})[0] == 405

    def test_unknown_post(self, server):
        assert request(server, "POST", "/api/unknown", {})[0] == 404

    def test_invalid_json(self, server):
        conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=10)
        conn.request("POST", "/api/ethereum/address", body=b"{oops", headers={"Content-Type": "application/json"})
        resp = conn.getresponse()
        assert resp.status == 400
        assert json.loads(resp.read())["code"] == "INVALID_JSON"
        conn.close()

    def test_body_must_be_object(self, server):
        status, body = request(server, "POST", "/api/ethereum/address", [1, 2])
        assert status == 400
        assert body["code"] == "INVALID_REQUEST"

    def test_payload_too_large(self, server):
        conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=10)
        conn.putrequest("POST", "/api/encrypt-wallet")
        conn.putheader("Content-Length", str(MAX_CONTENT_LENGTH + 1))
        conn.endheaders()
        resp = conn.getresponse()
        assert resp.status == 413
        assert json.loads(resp.read())["code"] == "PAYLOAD_TOO_LARGE"
        conn.close()

    def test_stats_count_errors(self, server):
        request(server, "GET", "/health")
        request(server, "GET", "/nope")
        assert server.stats.requests == 2
        assert server.stats.errors == 1


class TestRateLimit:

    def test_limit_exceeded(self, fast_kdf):
        srv = WalletServer(kdf_params=fast_kdf, requests_per_minute=2)
        assert srv.start(0)
        try:
            assert request(srv, "GET", "/health")[0] == 200
            assert request(srv, "GET", "/health")[0] == 200
            status, body = request(srv, "GET", "/health")
            assert status == 429
            assert body["code"] == "RATE_LIMIT_EXCEEDED"
        finally:
            srv.stop()


class TestStatusMapping:

    @pytest.mark.parametrize("code,status", [
        ("INVALID_MNEMONIC", 400),
        ("MALFORMED_VAULT", 400),
        ("AUTH_FAILED", 401),
        ("UNSUPPORTED_CHAIN", 404),
        ("SIGNING_FAILED", 500),
        ("ENTROPY_UNAVAILABLE", 503),
        ("SOMETHING_ELSE", 400),
    ])
    def test_mapping(self, code, status):
        assert get_http_status_for_error(code) == status
