from __future__ import annotations

import logging
import threading
from typing import Any

from .hub import ViewerConnection, ViewerHub
from .records import LogRecord, normalize_log_payload
from .websocket import event_frame

logger = logging.getLogger(__name__)

EVENT_NEW_LOG = "newLog"
EVENT_INITIAL_LOGS = "initialLogs"
EVENT_LOGS_CLEARED = "logsCleared"
EVENT_NEW_CONSOLE_CONTENT = "newConsoleContent"
EVENT_CONSOLE_RESET = "consoleReset"


class LogStore:
    """In-memory log history, console history and the viewers watching them.

    One lock covers every mutation and the fan-out that follows it, so every
    viewer sees events in the order the store applied them. Fan-out only
    queues frames, it never waits on a socket.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[LogRecord] = []
        self._console: list[str] = []
        self._hub = ViewerHub()

    def submit_log(self, payload: Any) -> LogRecord:
        record = normalize_log_payload(payload)
        with self._lock:
            self._records.append(record)
            self._hub.broadcast(event_frame(EVENT_NEW_LOG, record.to_dict()))
        return record

    def list_logs(self) -> list[dict[str, Any]]:
        with self._lock:
            records = list(self._records)
        return [record.to_dict() for record in records]

    def records(self) -> list[LogRecord]:
        with self._lock:
            return list(self._records)

    def clear_logs(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records = []
            self._hub.broadcast(event_frame(EVENT_LOGS_CLEARED))
        logger.info("Logs cleared (%d removed)", count)
        return count

    def submit_console(self, markdown: str) -> None:
        if not isinstance(markdown, str) or not markdown:
            raise ValueError("Markdown content is required")
        with self._lock:
            self._console.append(markdown)
            self._hub.broadcast(event_frame(EVENT_NEW_CONSOLE_CONTENT, markdown))

    def list_console(self) -> list[str]:
        with self._lock:
            return list(self._console)

    def reset_console(self) -> None:
        with self._lock:
            self._console = []
            self._hub.broadcast(event_frame(EVENT_CONSOLE_RESET))
        logger.info("Console reset")

    def subscribe(self, viewer: ViewerConnection) -> int:
        """Register a viewer and queue its history snapshot as one step.

        Returns the number of records in the snapshot. Everything appended
        after this call reaches the viewer as a ``newLog`` event.
        """

        with self._lock:
            snapshot = [record.to_dict() for record in self._records]
            viewer.offer(event_frame(EVENT_INITIAL_LOGS, snapshot))
            if not viewer.closed:
                self._hub.add(viewer)
            return len(snapshot)

    def unsubscribe(self, viewer: ViewerConnection) -> None:
        with self._lock:
            self._hub.discard(viewer)

    @property
    def viewer_count(self) -> int:
        with self._lock:
            return len(self._hub)

    def close_viewers(self) -> None:
        with self._lock:
            self._hub.close_all()
