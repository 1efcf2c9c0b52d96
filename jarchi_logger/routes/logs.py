from __future__ import annotations

import logging
from typing import Any, Protocol

from ..http_helpers import INVALID_JSON, read_json_value_or_text
from ..store import LogStore

logger = logging.getLogger(__name__)


class _Handler(Protocol):
    headers: Any
    rfile: Any

    def _send_json(self, payload: Any, status: int = 200) -> None: ...

    def _send_empty(self, status: int = 200) -> None: ...


def handle_get(handler: _Handler, store: LogStore, path: str) -> bool:
    if path == "/logs":
        handler._send_json(store.list_logs())
        return True
    return False


def handle_post(handler: _Handler, store: LogStore, path: str) -> bool:
    if path == "/log":
        payload, raw = read_json_value_or_text(handler)
        if payload is INVALID_JSON:
            # Kept verbatim; the record carries it as originalPayload.
            payload = raw
        record = store.submit_log(payload)
        logger.debug("accepted log from %s: %s", record.script or "-", record.message)
        handler._send_empty(200)
        return True
    return False


def handle_clear(handler: _Handler, store: LogStore, path: str) -> bool:
    if path == "/clear-logs":
        store.clear_logs()
        handler._send_empty(200)
        return True
    return False
