"""Pytest shared fixtures for the ECC provisioning client."""
from __future__ import annotations
import json
import pathlib
import sys
import threading
from types import SimpleNamespace

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from werkzeug.serving import make_server

from ecc_provisioning.core import EccClient
from ecc_provisioning.stub_app import create_stub_app


# ─────────────────────────────────────────────────────────────────────────────
# Transport Stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response that tracks body reads."""

    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        read_error: Exception | None = None,
        headers: dict | None = None,
        content: bytes | None = None,
        on_chunk=None,
    ):
        self.status_code = status_code
        self._content = content if content is not None else text.encode("utf-8")
        self._read_error = read_error
        self._on_chunk = on_chunk
        self.headers = CaseInsensitiveDict(headers or {"Content-Type": "text/plain"})
        self.body_reads = 0
        self.closed = False
        self.closed_while_reading = False

    def iter_content(self, chunk_size=1):
        self.body_reads += 1
        if self._read_error is not None:
            raise self._read_error
        for start in range(0, len(self._content), chunk_size):
            if self.closed:
                self.closed_while_reading = True
                return
            yield self._content[start:start + chunk_size]
            if self._on_chunk is not None:
                self._on_chunk()

    def close(self):
        self.closed = True


class StubTransport:
    """Records every request and answers with a canned response or error."""

    def __init__(self, response: StubResponse | None = None, error: Exception | None = None, on_request=None):
        self.response = response or StubResponse()
        self.error = error
        self.on_request = on_request
        self.calls = []

    def request(self, method, url, **kwargs):
        data = kwargs.get("data")
        self.calls.append(SimpleNamespace(
            method=method,
            url=url,
            kwargs=kwargs,
            body=json.loads(data) if data else None,
        ))
        if self.on_request is not None:
            self.on_request()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def stub_response():
    """Expose the StubResponse class to tests."""
    return StubResponse


@pytest.fixture()
def stub_transport_factory():
    return StubTransport


@pytest.fixture()
def stub_transport():
    return StubTransport()


@pytest.fixture()
def make_client():
    """Factory building a client with fixed identity h/00/300/u/p."""
    def _make(transport=None, **options):
        return EccClient.create(transport, "h", "300", "00", "u", "p", **options)
    return _make


@pytest.fixture()
def ecc_client(make_client, stub_transport):
    return make_client(stub_transport)


# ─────────────────────────────────────────────────────────────────────────────
# Live Stub Server
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def live_stub():
    """Run the Flask stub on an ephemeral local port for the test's duration."""
    app = create_stub_app(version="1.2.3")
    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield SimpleNamespace(app=app, url="http://127.0.0.1", port=server.server_port)
    finally:
        server.shutdown()
        thread.join(timeout=5)


@pytest.fixture()
def live_client(make_client):
    session = requests.Session()
    try:
        yield make_client(session, timeout=10)
    finally:
        session.close()


@pytest.fixture()
def unused_tcp_port():
    """Return a local port with nothing listening on it."""
    import socket
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture()
def slow_body_server():
    """Serve one 200 text/plain response whose 8-byte body drips at one byte per 0.3 s."""
    import socket
    import time

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(0.2)
    stop = threading.Event()

    def serve():
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                try:
                    conn.recv(65536)
                    conn.sendall(
                        b"HTTP/1.1 200 OK\r\n"
                        b"Content-Type: text/plain\r\n"
                        b"Content-Length: 8\r\n"
                        b"Connection: close\r\n\r\n"
                    )
                    for byte in b"1.2.3abc":
                        if stop.is_set():
                            break
                        time.sleep(0.3)
                        conn.sendall(bytes([byte]))
                except OSError:
                    pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield SimpleNamespace(url="http://127.0.0.1", port=listener.getsockname()[1])
    finally:
        stop.set()
        thread.join(timeout=5)
        listener.close()
