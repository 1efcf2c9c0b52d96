from __future__ import annotations

import json
import logging
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from .config import DEFAULT_VIEWER_QUEUE_SIZE

if TYPE_CHECKING:
    from .store import LogStore

logger = logging.getLogger(__name__)

_ALLOWED_ORIGIN_HOSTS = {"127.0.0.1", "localhost", "::1"}

# Returned by read_json_value_or_text when the body is not valid JSON.
INVALID_JSON = object()

_MAX_CHUNK_LINE = 65537


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: Any,
    status: int = 200,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def send_html_response(handler: BaseHTTPRequestHandler, html: str) -> None:
    body = html.encode("utf-8")
    handler.send_response(200)
    handler.send_header("Content-Type", "text/html; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def send_bytes_response(
    handler: BaseHTTPRequestHandler,
    body: bytes,
    *,
    content_type: str,
    status: int = 200,
) -> None:
    handler.send_response(status)
    handler.send_header("Content-Type", content_type)
    if os.environ.get("JARCHI_LOGGER_NO_CACHE") == "1":
        handler.send_header("Cache-Control", "no-store")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def send_empty_response(handler: BaseHTTPRequestHandler, status: int = 200) -> None:
    handler.send_response(status)
    handler.send_header("Content-Length", "0")
    handler.end_headers()


def _content_length(handler: BaseHTTPRequestHandler) -> int:
    raw = handler.headers.get("Content-Length")
    if raw is None or not str(raw).strip():
        return 0
    try:
        length = int(str(raw).strip())
    except ValueError:
        logger.warning("ignoring body with malformed Content-Length %r", raw)
        return 0
    if length < 0:
        logger.warning("ignoring body with negative Content-Length %r", raw)
        return 0
    return length


def _read_chunked(rfile: Any) -> bytes:
    body = bytearray()
    while True:
        size_line = rfile.readline(_MAX_CHUNK_LINE)
        if not size_line:
            break
        try:
            size = int(size_line.split(b";", 1)[0].strip(), 16)
        except ValueError:
            break
        if size <= 0:
            # Skip trailer headers up to the blank line that ends the message.
            while rfile.readline(_MAX_CHUNK_LINE) not in (b"", b"\r\n", b"\n"):
                pass
            break
        chunk = rfile.read(size)
        body.extend(chunk)
        if len(chunk) < size:
            break
        rfile.readline(_MAX_CHUNK_LINE)
    return bytes(body)


def read_body_bytes(handler: BaseHTTPRequestHandler) -> bytes:
    """Read the request body, honouring chunked transfer encoding.

    A missing, malformed or negative Content-Length reads as an empty body.
    """

    encoding = str(handler.headers.get("Transfer-Encoding") or "").lower()
    if "chunked" in encoding:
        return _read_chunked(handler.rfile)
    length = _content_length(handler)
    if not length:
        return b""
    return handler.rfile.read(length)


def read_body_text(handler: BaseHTTPRequestHandler) -> str:
    return read_body_bytes(handler).decode("utf-8", errors="replace")


def read_json_value_or_text(handler: BaseHTTPRequestHandler) -> tuple[Any, str]:
    """Parse the body as any JSON value and also return the raw text.

    An empty body reads as ``{}``; unparseable text reads as ``INVALID_JSON``.
    """

    raw = read_body_text(handler)
    if not raw.strip():
        return {}, raw
    try:
        return json.loads(raw), raw
    except json.JSONDecodeError:
        return INVALID_JSON, raw


def read_json_body(handler: BaseHTTPRequestHandler) -> dict[str, Any] | None:
    body = read_body_bytes(handler)
    if not body:
        return None
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _origin_allowed(origin: str, host_header: str | None) -> bool:
    try:
        parsed = urlparse(origin)
        hostname = parsed.hostname
        _ = parsed.port
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    if parsed.username is not None or parsed.password is not None:
        return False
    if parsed.path not in ("", "/") or parsed.params or parsed.query or parsed.fragment:
        return False
    if hostname in _ALLOWED_ORIGIN_HOSTS:
        return True
    return bool(host_header) and parsed.netloc.lower() == str(host_header).strip().lower()


def reject_cross_origin(handler: BaseHTTPRequestHandler) -> bool:
    """Answer 403 for browser requests coming from another site.

    Requests without an Origin header (scripts, curl) are let through.
    """

    origin = handler.headers.get("Origin")
    if not origin:
        return False
    if _origin_allowed(origin, handler.headers.get("Host")):
        return False
    send_json_response(handler, {"error": "forbidden"}, status=403)
    return True


class LoggerHTTPServer(ThreadingHTTPServer):
    """Threaded listener that hands its request handlers the shared store."""

    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        handler_class: type[BaseHTTPRequestHandler],
        store: LogStore,
        *,
        viewer_queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE,
    ) -> None:
        self.store = store
        self.viewer_queue_size = viewer_queue_size
        super().__init__(server_address, handler_class)


class StoreRequestHandler(BaseHTTPRequestHandler):
    server: LoggerHTTPServer

    @property
    def store(self) -> LogStore:
        return self.server.store

    def _send_json(self, payload: Any, status: int = 200) -> None:
        send_json_response(self, payload, status=status)

    def _send_empty(self, status: int = 200) -> None:
        send_empty_response(self, status)

    def _send_not_found(self) -> None:
        self.send_response(404)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _send_internal_error(self, exc: Exception) -> None:
        logger.exception("%s %s failed", self.command, self.path, exc_info=exc)
        payload: dict[str, Any] = {"error": "internal server error"}
        if os.environ.get("JARCHI_LOGGER_DEBUG") == "1":
            payload["detail"] = str(exc)
        self._send_json(payload, status=500)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A003
        if os.environ.get("JARCHI_LOGGER_ACCESS_LOGS") == "1":
            super().log_message(format, *args)
