from __future__ import annotations

from typing import Any, Protocol

from ..http_helpers import read_json_body
from ..store import LogStore

MARKDOWN_REQUIRED = "Markdown content is required"


class _Handler(Protocol):
    headers: Any
    rfile: Any

    def _send_json(self, payload: Any, status: int = 200) -> None: ...

    def _send_empty(self, status: int = 200) -> None: ...


def handle_get(handler: _Handler, store: LogStore, path: str) -> bool:
    if path == "/console-content":
        handler._send_json(store.list_console())
        return True
    return False


def handle_post(handler: _Handler, store: LogStore, path: str) -> bool:
    if path != "/console":
        return False
    payload = read_json_body(handler)
    markdown = payload.get("markdown") if payload is not None else None
    if not isinstance(markdown, str) or not markdown:
        handler._send_json({"error": MARKDOWN_REQUIRED}, status=400)
        return True
    store.submit_console(markdown)
    handler._send_empty(200)
    return True
