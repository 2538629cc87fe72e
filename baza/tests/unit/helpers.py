"""Ephemeral local HTTP server replaying scripted replies, one per test."""

from __future__ import annotations

import socket
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, Iterator, List, Sequence
from urllib.parse import parse_qs, urlsplit


@dataclass
class Reply:
    status: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    delay_s: float = 0.0


@dataclass
class Recorded:
    method: str
    path: str
    headers: Dict[str, str]
    body: bytes

    @property
    def route(self) -> str:
        return urlsplit(self.path).path

    @property
    def query(self) -> Dict[str, List[str]]:
        return parse_qs(urlsplit(self.path).query)

    def header(self, name: str) -> str:
        return self.headers.get(name.lower(), "")


class ScriptedServer:
    """Answers requests with ``replies`` in order; the last reply repeats."""

    def __init__(self, replies: Sequence[Reply]) -> None:
        self._replies = list(replies) or [Reply()]
        self._lock = threading.Lock()
        self.requests: List[Recorded] = []
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def port(self) -> int:
        return self._httpd.server_address[1]

    def start(self) -> None:
        self._thread.start()

    def close(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()

    def _next(self, recorded: Recorded) -> Reply:
        with self._lock:
            self.requests.append(recorded)
            if len(self._replies) > 1:
                return self._replies.pop(0)
            return self._replies[0]

    def _handler_class(self):
        server = self

        class _Handler(BaseHTTPRequestHandler):
            def _handle(self) -> None:
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                recorded = Recorded(
                    method=self.command,
                    path=self.path,
                    headers={key.lower(): value for key, value in self.headers.items()},
                    body=body,
                )
                reply = server._next(recorded)
                if reply.delay_s:
                    time.sleep(reply.delay_s)
                try:
                    self.send_response(reply.status)
                    for key, value in reply.headers.items():
                        self.send_header(key, value)
                    self.send_header("Content-Length", str(len(reply.body)))
                    self.send_header("Connection", "close")
                    self.end_headers()
                    if reply.body:
                        self.wfile.write(reply.body)
                except (BrokenPipeError, ConnectionResetError):
                    # the client gave up waiting
                    pass

            do_GET = _handle
            do_PUT = _handle
            do_POST = _handle

            def log_message(self, format: str, *args) -> None:  # noqa: A002
                return

        return _Handler


@contextmanager
def serving(*replies: Reply) -> Iterator[ScriptedServer]:
    server = ScriptedServer(replies)
    server.start()
    try:
        yield server
    finally:
        server.close()


class RawServer:
    """Writes ``head`` and then ``chunks`` byte for byte, ``gap_s`` apart.

    Used for replies a well-behaved HTTP server would never send, such as a
    body shorter than its ``Content-Length`` or one that trickles in.
    """

    def __init__(self, head: bytes, chunks: Sequence[bytes] = (), gap_s: float = 0.0) -> None:
        self._head = head
        self._chunks = list(chunks)
        self._gap_s = gap_s
        self._stopped = threading.Event()
        self.connections = 0
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.1)
        self._port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def port(self) -> int:
        return self._port

    def start(self) -> None:
        self._thread.start()

    def close(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=5)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                self.connections += 1
                conn.settimeout(5)
                self._answer(conn)

    def _answer(self, conn: socket.socket) -> None:
        received = b""
        try:
            while b"\r\n\r\n" not in received:
                data = conn.recv(4096)
                if not data:
                    return
                received += data
            conn.sendall(self._head)
            for chunk in self._chunks:
                if self._stopped.is_set():
                    return
                if self._gap_s:
                    time.sleep(self._gap_s)
                conn.sendall(chunk)
        except OSError:
            # the client hung up first
            return


@contextmanager
def raw_serving(head: bytes, chunks: Sequence[bytes] = (), gap_s: float = 0.0) -> Iterator[RawServer]:
    server = RawServer(head, chunks, gap_s)
    server.start()
    try:
        yield server
    finally:
        server.close()


__all__ = ["RawServer", "Recorded", "Reply", "ScriptedServer", "raw_serving", "serving"]
