"""
Wallet HTTP Server - Local JSON API over the wallet core.

Routes:
- GET  /api/mnemonic           - Generate a recovery phrase
- POST /api/{chain}/address    - Derive an address
- POST /api/{chain}/sign       - Sign a message
- POST /api/encrypt-wallet     - Seal a phrase into a vault blob
- POST /api/decrypt-wallet     - Open a vault blob
- GET  /health                 - Health check
- GET  /status                 - Server status (JSON)

Binds to localhost unless LAN access is explicitly enabled. Request bodies
carry secrets, so only method and path ever reach the log.
"""

import json
import logging
import re
import threading
import time
from collections import defaultdict, deque
from datetime import datetime
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from networks import supported_chains
from wallet import KdfParams

from . import wallet_api

logger = logging.getLogger(__name__)

SERVICE_NAME = "Zenith"
SERVICE_VERSION = "0.1.0"

# Maximum request body size (1MB)
MAX_CONTENT_LENGTH = 1 * 1024 * 1024

RATE_WINDOW_SECONDS = 60

# /api/{chain}/{action}
CHAIN_ROUTE_PATTERN = re.compile(r'^/api/([a-z0-9_-]{1,32})/(address|sign)$')


# Error code -> HTTP status. Anything unlisted is a client error.
ERROR_CODE_TO_HTTP_STATUS = {
    "INVALID_REQUEST": 400,
    "INVALID_JSON": 400,
    "INVALID_MNEMONIC": 400,
    "INVALID_INDEX": 400,
    "MALFORMED_VAULT": 400,
    "AUTH_FAILED": 401,
    "NOT_FOUND": 404,
    "UNSUPPORTED_CHAIN": 404,
    "METHOD_NOT_ALLOWED": 405,
    "PAYLOAD_TOO_LARGE": 413,
    "RATE_LIMIT_EXCEEDED": 429,
    "GENERATION_FAILED": 500,
    "DERIVATION_FAILED": 500,
    "SIGNING_FAILED": 500,
    "ENTROPY_UNAVAILABLE": 503,
}


def get_http_status_for_error(error_code: str) -> int:
    return ERROR_CODE_TO_HTTP_STATUS.get(error_code, 400)


def _error(code: str, message: str, **extra) -> dict:
    return {"error": message, "code": code, **extra}


class ServerStats:
    """Request and error counters for the running server."""

    def __init__(self):
        self._lock = threading.Lock()
        self.requests = 0
        self.errors = 0
        self.started_at: Optional[str] = None

    def start(self):
        self.started_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def record(self, status: int):
        with self._lock:
            self.requests += 1
            if status >= 400:
                self.errors += 1


class RateLimiter:
    """Sliding one-minute window of request times per client IP."""

    def __init__(self, requests_per_minute: int = 300):
        self.requests_per_minute = requests_per_minute
        self._seen: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def is_rate_limited(self, client_ip: str) -> bool:
        now = time.monotonic()
        with self._lock:
            seen = self._seen[client_ip]
            while seen and seen[0] <= now - RATE_WINDOW_SECONDS:
                seen.popleft()
            if len(seen) >= self.requests_per_minute:
                return True
            seen.append(now)
            return False


class WalletRequestHandler(BaseHTTPRequestHandler):
    """Dispatches wallet API requests to services.wallet_api."""

    # path -> (method, handler attribute)
    FIXED_ROUTES = {
        "/api/mnemonic": ("GET", "_handle_mnemonic"),
        "/status": ("GET", "_handle_status"),
        "/health": ("GET", "_handle_health"),
        "/api/encrypt-wallet": ("POST", "_handle_encrypt"),
        "/api/decrypt-wallet": ("POST", "_handle_decrypt"),
    }

    def log_message(self, format, *args):
        logger.debug(f"{self.client_address[0]} {format % args}")

    # -- responses ---------------------------------------------------------

    def _reply(self, status: int, payload: dict, headers: Optional[dict] = None):
        self.server.stats.record(status)
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Access-Control-Allow-Origin", "*")
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def _reply_result(self, result: dict):
        status = get_http_status_for_error(result.get("code")) if "error" in result else 200
        self._reply(status, result)

    def _reply_error(self, code: str, message: str, headers: Optional[dict] = None, **extra):
        self._reply(get_http_status_for_error(code), _error(code, message, **extra), headers)

    # -- dispatch ----------------------------------------------------------

    def _resolve(self, path: str):
        """Return (allowed method, handler, route args) or None."""
        if path in self.FIXED_ROUTES:
            method, name = self.FIXED_ROUTES[path]
            return method, getattr(self, name), ()
        match = CHAIN_ROUTE_PATTERN.match(path)
        if match:
            chain, action = match.groups()
            return "POST", getattr(self, f"_handle_{action}"), (chain,)
        return None

    def _dispatch(self, method: str):
        if self.server.rate_limiter.is_rate_limited(self.client_address[0]):
            self._reply_error("RATE_LIMIT_EXCEEDED", "Rate limit exceeded",
                              headers={"Retry-After": str(RATE_WINDOW_SECONDS)},
                              retry_after=RATE_WINDOW_SECONDS)
            return

        route = self._resolve(self.path.split("?", 1)[0])
        if route is None:
            self._reply_error("NOT_FOUND", "Not found")
            return

        allowed, handler, route_args = route
        if method != allowed:
            self._reply_error("METHOD_NOT_ALLOWED", "Method not allowed",
                              headers={"Allow": allowed}, allowed_methods=[allowed])
            return

        if method == "GET":
            handler()
            return
        data = self._read_json_body()
        if data is not None:
            handler(data, *route_args)

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def do_OPTIONS(self):
        """CORS preflight."""
        self.send_response(200)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _read_json_body(self) -> Optional[dict]:
        """Parse the request body as a JSON object, or reply with an error and return None."""
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            length = -1
        if length < 0:
            self._reply_error("INVALID_REQUEST", "Invalid Content-Length")
            return None
        if length > MAX_CONTENT_LENGTH:
            self._reply_error("PAYLOAD_TOO_LARGE", f"Payload too large (max {MAX_CONTENT_LENGTH} bytes)")
            return None

        raw = self.rfile.read(length) if length else b""
        try:
            data = json.loads(raw.decode("utf-8", errors="replace")) if raw else {}
        except json.JSONDecodeError:
            self._reply_error("INVALID_JSON", "Invalid JSON")
            return None
        if not isinstance(data, dict):
            self._reply_error("INVALID_REQUEST", "Request body must be a JSON object")
            return None
        return data

    # -- endpoints ---------------------------------------------------------

    def _handle_health(self):
        self._reply(200, {"status": "ok"})

    def _handle_status(self):
        stats = self.server.stats
        self._reply(200, {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "status": "ready",
            "chains": supported_chains(),
            "requests": stats.requests,
            "errors": stats.errors,
            "started_at": stats.started_at,
        })

    def _handle_mnemonic(self):
        self._reply_result(wallet_api.generate_mnemonic(self.server.word_count))

    def _handle_address(self, data: dict, chain: str):
        self._reply_result(wallet_api.derive_address(data.get("mnemonic"), chain, data.get("index", 0)))

    def _handle_sign(self, data: dict, chain: str):
        self._reply_result(wallet_api.sign_message(
            data.get("mnemonic"), chain, data.get("index", 0), data.get("message")))

    def _handle_encrypt(self, data: dict):
        self._reply_result(wallet_api.encrypt_wallet(
            data.get("mnemonic"), data.get("password"), self.server.kdf_params))

    def _handle_decrypt(self, data: dict):
        self._reply_result(wallet_api.decrypt_wallet(data.get("encrypted"), data.get("password")))


class ThreadedHTTPServer(ThreadingMixIn, HTTPServer):
    """One thread per request; holds the configuration handlers read."""
    daemon_threads = True

    def __init__(self, address, handler, kdf_params: Optional[KdfParams] = None,
                 word_count: int = 12, requests_per_minute: int = 300):
        super().__init__(address, handler)
        self.kdf_params = kdf_params
        self.word_count = word_count
        self.rate_limiter = RateLimiter(requests_per_minute)
        self.stats = ServerStats()


class WalletServer(QObject):
    """Owns the HTTP server thread and reports lifecycle through signals."""

    started = pyqtSignal(int)  # port
    stopped = pyqtSignal()
    error = pyqtSignal(str)

    def __init__(self, kdf_params: Optional[KdfParams] = None,
                 word_count: int = 12, requests_per_minute: int = 300):
        super().__init__()
        self._kdf_params = kdf_params
        self._word_count = word_count
        self._requests_per_minute = requests_per_minute
        self._httpd: Optional[ThreadedHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._port = 8081

    @classmethod
    def from_settings(cls, settings) -> "WalletServer":
        return cls(
            kdf_params=settings.kdf_params(),
            word_count=settings.word_count,
            requests_per_minute=settings.requests_per_minute,
        )

    @property
    def port(self) -> int:
        return self._port

    @property
    def is_running(self) -> bool:
        return self._httpd is not None

    @property
    def stats(self) -> Optional[ServerStats]:
        return self._httpd.stats if self._httpd else None

    def start(self, port: int = 8081, allow_lan: bool = False) -> bool:
        """
        Bind and serve in a daemon thread. Port 0 picks a free port.

        With allow_lan the server listens on every interface; otherwise
        only on 127.0.0.1. Returns False (and emits ``error``) if the
        address cannot be bound.
        """
        if self._httpd is not None:
            return True

        host = "0.0.0.0" if allow_lan else "127.0.0.1"
        try:
            httpd = ThreadedHTTPServer(
                (host, port),
                WalletRequestHandler,
                kdf_params=self._kdf_params,
                word_count=self._word_count,
                requests_per_minute=self._requests_per_minute,
            )
        except OSError as e:
            logger.error(f"Failed to start server on port {port}: {e}")
            self.error.emit(f"Failed to start server: {e}")
            return False

        httpd.stats.start()
        self._httpd = httpd
        self._port = httpd.server_address[1]
        self._thread = threading.Thread(target=httpd.serve_forever, name="wallet-api", daemon=True)
        self._thread.start()

        if allow_lan:
            logger.warning(f"Wallet API listening on all interfaces, port {self._port}")
        else:
            logger.info(f"Wallet API listening on {host}:{self._port}")
        self.started.emit(self._port)
        return True

    def stop(self):
        if self._httpd is None:
            return
        httpd, self._httpd = self._httpd, None
        httpd.shutdown()
        httpd.server_close()
        self._thread = None
        logger.info("Wallet API stopped")
        self.stopped.emit()

    def wait(self):
        """Block until the server thread exits."""
        if self._thread:
            self._thread.join()
