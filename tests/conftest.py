"""Pytest configuration - loads .env and provides a local fake DEP server."""

import json
import socket
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.message import Message
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from dep_cli.core.client import APIClient
from dep_cli.core.session import Credentials, SessionManager

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


# =============================================================================
# Fake DEP server
# =============================================================================


@dataclass
class RecordedRequest:
    """A request seen by the fake server."""

    method: str
    path: str
    headers: Message
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class Route:
    """A canned response. ``delay`` is slept before responding."""

    status: int = 200
    body: Any = None
    delay: float = 0.0

    def payload(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body if self.body is not None else {}).encode("utf-8")


@dataclass
class FakeDEPServer:
    """Thread-backed DEP simulator recording every request it receives."""

    url: str = ""
    routes: dict[tuple[str, str], Route] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)
    session_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def route(self, method: str, path: str, body: Any = None, status: int = 200, delay: float = 0.0) -> None:
        self.routes[(method, path)] = Route(status=status, body=body, delay=delay)

    def requests_to(self, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.path.split("?")[0] == path]

    def api_requests(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.path != "/session"]


def _make_handler(server: FakeDEPServer) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def _handle(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            with server.lock:
                server.requests.append(RecordedRequest(self.command, self.path, self.headers, body))
                if self.path == "/session" and self.command == "GET":
                    server.session_count += 1
                    count = server.session_count
                else:
                    count = 0

            route = server.routes.get((self.command, self.path.split("?")[0]))
            if route is None and count:
                route = Route(body={"auth_session_token": f"session-{count}"})
            if route is None:
                route = Route(status=404, body="not found")

            if route.delay:
                time.sleep(route.delay)
            payload = route.payload()
            self.send_response(route.status)
            self.send_header("Content-Type", "application/json;charset=UTF8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle

        def log_message(self, format: str, *args: Any) -> None:
            pass

    return Handler


@pytest.fixture
def dep_server() -> Iterator[FakeDEPServer]:
    """Start a fake DEP server on a free local port."""
    fake = FakeDEPServer()
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(fake))
    httpd.daemon_threads = True
    httpd.block_on_close = False
    fake.url = f"http://127.0.0.1:{httpd.server_address[1]}/"
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield fake
    finally:
        httpd.shutdown()
        httpd.server_close()


@pytest.fixture
def drip_url() -> Iterator[str]:
    """URL of a server that sends a 200 header, then the body one byte every 0.3s."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen()
    listener.settimeout(0.2)
    stop = threading.Event()

    def drip(conn: socket.socket) -> None:
        with conn:
            try:
                data = b""
                while b"\r\n\r\n" not in data:
                    chunk = conn.recv(4096)
                    if not chunk:
                        return
                    data += chunk
                conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\nContent-Length: 20\r\n\r\n")
                for _ in range(20):
                    if stop.wait(0.3):
                        return
                    conn.sendall(b" ")
            except OSError:
                return

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except OSError:
                continue
            threading.Thread(target=drip, args=(conn,), daemon=True).start()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}/"
    finally:
        stop.set()
        thread.join(timeout=1)
        listener.close()


@pytest.fixture
def unused_url() -> str:
    """URL of a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/"


# =============================================================================
# Clients
# =============================================================================


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _make_credentials(base_url: str, **overrides: Any) -> Credentials:
    values = {
        "consumer_key": "CK_test",
        "consumer_secret": "CS_test",
        "access_token": "AT_test",
        "access_secret": "AS_test",
        "base_url": base_url,
    }
    values.update(overrides)
    return Credentials(**values)


@pytest.fixture
def make_credentials():
    """Factory for test credentials against a given server URL."""
    return _make_credentials


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials(dep_server: FakeDEPServer) -> Credentials:
    return _make_credentials(dep_server.url)


@pytest.fixture
def session(credentials: Credentials, clock: FakeClock) -> SessionManager:
    return SessionManager(credentials, clock=clock)


@pytest.fixture
def api_client(credentials: Credentials, session: SessionManager) -> APIClient:
    return APIClient(credentials, timeout=5, session=session)


@pytest.fixture
def dep_env(monkeypatch: pytest.MonkeyPatch, dep_server: FakeDEPServer) -> FakeDEPServer:
    """Point the DEP_* environment variables at the fake server."""
    monkeypatch.setenv("DEP_CONSUMER_KEY", "CK_test")
    monkeypatch.setenv("DEP_CONSUMER_SECRET", "CS_test")
    monkeypatch.setenv("DEP_ACCESS_TOKEN", "AT_test")
    monkeypatch.setenv("DEP_ACCESS_SECRET", "AS_test")
    monkeypatch.setenv("DEP_SERVER_URL", dep_server.url)
    monkeypatch.delenv("DEP_DEBUG", raising=False)
    return dep_server
