from __future__ import annotations

import json
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

import pytest

SLOW_SECONDS = 1.5


class _Handler(BaseHTTPRequestHandler):
    lock = threading.Lock()
    hits: dict[str, int] = defaultdict(int)
    posts: list[dict] = []

    @classmethod
    def reset(cls) -> None:
        with cls.lock:
            cls.hits.clear()
            cls.posts.clear()

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _send(self, status: int, body: str = "", content_type: str = "text/plain; charset=utf-8") -> None:
        body_bytes = body.encode("utf-8")
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body_bytes)))
            self.end_headers()
            self.wfile.write(body_bytes)
        except OSError:
            # Client already gave up (timeout tests).
            return

    def do_GET(self) -> None:  # noqa: N802
        path = urlsplit(self.path).path
        with self.lock:
            self.hits[path] += 1
            n = self.hits[path]

        if path == "/ok":
            self._send(200, "OK")
        elif path == "/health":
            self._send(200, "<html><body>Status: Everything is FINE</body></html>", "text/html; charset=utf-8")
        elif path == "/error":
            self._send(500, "Internal Server Error")
        elif path == "/created":
            self._send(201, "created")
        elif path == "/redirect":
            try:
                self.send_response(302)
                self.send_header("Location", "/ok")
                self.send_header("Content-Length", "0")
                self.end_headers()
            except OSError:
                return
        elif path == "/slow":
            time.sleep(SLOW_SECONDS)
            self._send(200, "OK")
        elif path == "/flaky-timeout":
            if n <= 2:
                time.sleep(SLOW_SECONDS)
            self._send(200, "OK")
        elif path == "/flaky-status":
            self._send(503 if n <= 1 else 200, "warming up" if n <= 1 else "OK")
        else:
            self._send(404, "Not Found")

    def do_POST(self) -> None:  # noqa: N802
        path = urlsplit(self.path).path
        n = int(self.headers.get("Content-Length") or "0")
        raw = self.rfile.read(n) if n > 0 else b"{}"
        with self.lock:
            self.hits[path] += 1

        if path == "/webhook":
            with self.lock:
                self.posts.append(json.loads(raw.decode("utf-8")))
            self._send(204)
        elif path == "/webhook-broken":
            self._send(500, "nope")
        else:
            self._send(404, "Not Found")


@dataclass
class LocalServer:
    base_url: str

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def hits(self, path: str) -> int:
        with _Handler.lock:
            return _Handler.hits.get(path, 0)

    @property
    def posts(self) -> list[dict]:
        with _Handler.lock:
            return list(_Handler.posts)


@pytest.fixture(scope="session")
def _local_server_base_url() -> str:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def server(_local_server_base_url: str) -> LocalServer:
    _Handler.reset()
    return LocalServer(base_url=_local_server_base_url)
