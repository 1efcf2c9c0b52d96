from __future__ import annotations

import logging
import mimetypes
import os
from importlib import resources
from pathlib import PurePosixPath
from urllib.parse import urlparse

from .http_helpers import (
    StoreRequestHandler,
    read_body_bytes,
    reject_cross_origin,
    send_bytes_response,
    send_html_response,
)
from .hub import ViewerConnection
from .routes import logs as log_routes
from .viewer_html import render_console, render_index
from .websocket import (
    OP_CLOSE,
    OP_PING,
    OP_PONG,
    OP_TEXT,
    StreamTransport,
    parse_event,
    read_frame,
    websocket_accept_value,
    websocket_frame,
)

logger = logging.getLogger(__name__)

EVENT_RESET_CONSOLE = "resetConsole"

_asset_cache: dict[str, bytes] = {}


def load_asset(name: str) -> tuple[bytes, str]:
    """Bytes and content type of a file shipped under viewer_static/."""

    parts = PurePosixPath(name.strip().lstrip("/")).parts
    if not parts or ".." in parts:
        raise ValueError(f"bad asset path: {name!r}")
    key = "/".join(parts)
    use_cache = os.environ.get("JARCHI_LOGGER_NO_CACHE") != "1"
    body = _asset_cache.get(key) if use_cache else None
    if body is None:
        resource = resources.files(__package__).joinpath("viewer_static").joinpath(key)
        if not resource.is_file():
            raise FileNotFoundError(key)
        body = resource.read_bytes()
        if use_cache:
            _asset_cache[key] = body
    content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    if content_type.startswith("text/") or content_type.endswith("javascript"):
        content_type = f"{content_type}; charset=utf-8"
    return body, content_type


class ViewerHandler(StoreRequestHandler):
    """Presentation listener: history pages, static assets and the /ws push channel."""

    protocol_version = "HTTP/1.1"

    def _send_static_asset(self, asset_path: str) -> None:
        try:
            body, content_type = load_asset(asset_path)
        except (FileNotFoundError, ValueError):
            self._send_not_found()
            return
        send_bytes_response(self, body, content_type=content_type)

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path == "/ws":
            self._handle_websocket()
            return
        try:
            if parsed.path == "/":
                send_html_response(self, render_index(self.store.records()))
                return
            if parsed.path == "/console":
                send_html_response(self, render_console(self.store.list_console()))
                return
            if parsed.path.startswith("/assets/"):
                self._send_static_asset(parsed.path[len("/assets/") :])
                return
            self._send_not_found()
        except Exception as exc:  # pragma: no cover
            self._send_internal_error(exc)

    def do_POST(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        # Nothing here reads the body; drain it so the next request on this
        # keep-alive connection starts at a request line.
        read_body_bytes(self)
        if reject_cross_origin(self):
            return
        try:
            if log_routes.handle_clear(self, self.store, parsed.path):
                return
            self._send_not_found()
        except Exception as exc:  # pragma: no cover
            self._send_internal_error(exc)

    def _handle_websocket(self) -> None:
        ws_key = str(self.headers.get("Sec-WebSocket-Key", "")).strip()
        upgrade = str(self.headers.get("Upgrade", "")).strip().lower()
        if not ws_key or upgrade != "websocket":
            self._send_json({"error": "websocket upgrade required"}, status=400)
            return

        self.send_response(101)
        self.send_header("Upgrade", "websocket")
        self.send_header("Connection", "Upgrade")
        self.send_header("Sec-WebSocket-Accept", websocket_accept_value(ws_key))
        self.end_headers()
        self.close_connection = True

        viewer = ViewerConnection(self.connection, queue_size=self.server.viewer_queue_size)
        viewer.start()
        snapshot_size = self.store.subscribe(viewer)
        logger.info(
            "Viewer %s connected from %s (%d buffered logs)",
            viewer.id,
            self.client_address[0],
            snapshot_size,
        )
        try:
            self._read_viewer_frames(viewer)
        finally:
            self.store.unsubscribe(viewer)
            viewer.finish()
            logger.info("Viewer %s disconnected", viewer.id)

    def _read_viewer_frames(self, viewer: ViewerConnection) -> None:
        transport = StreamTransport(self.rfile)
        while not viewer.closed:
            frame = read_frame(transport)
            if frame is None:
                return
            opcode, payload = frame
            if opcode == OP_CLOSE:
                viewer.offer(websocket_frame(OP_CLOSE, payload[:125]))
                return
            if opcode == OP_PING:
                viewer.offer(websocket_frame(OP_PONG, payload[:125]))
                continue
            if opcode == OP_TEXT:
                self._handle_viewer_message(viewer, payload)

    def _handle_viewer_message(self, viewer: ViewerConnection, payload: bytes) -> None:
        parsed = parse_event(payload)
        if parsed is None:
            logger.debug("viewer %s sent an unreadable message", viewer.id)
            return
        event, _ = parsed
        if event == EVENT_RESET_CONSOLE:
            self.store.reset_console()
            return
        logger.debug("viewer %s sent unknown event %r", viewer.id, event)
