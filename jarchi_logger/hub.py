from __future__ import annotations

import itertools
import logging
import queue
import socket
import threading
from typing import Protocol

from .config import DEFAULT_VIEWER_QUEUE_SIZE

logger = logging.getLogger(__name__)

_viewer_ids = itertools.count(1)


class _Sender(Protocol):
    def sendall(self, payload: bytes) -> None: ...

    def shutdown(self, how: int) -> None: ...


class ViewerConnection:
    """One connected viewer: a bounded outbound queue drained by its own writer thread."""

    def __init__(self, sender: _Sender, *, queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE) -> None:
        self.id = next(_viewer_ids)
        self._sender = sender
        self._queue: queue.Queue[bytes | None] = queue.Queue(maxsize=queue_size)
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, frame: bytes) -> bool:
        """Queue a frame without blocking; a full queue closes the viewer."""

        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            logger.warning("viewer %s fell behind; dropping connection", self.id)
            self.close()
            return False
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"viewer-writer-{self.id}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while True:
            frame = self._queue.get()
            if frame is None or self._closed.is_set():
                return
            try:
                self._sender.sendall(frame)
            except OSError as exc:
                logger.debug("viewer %s send failed: %s", self.id, exc)
                self.close()
                return

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        # Wake the writer; it may be parked on an empty queue.
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        # Unblocks both the reader (recv) and a writer stuck in sendall.
        try:
            self._sender.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def finish(self, timeout: float = 1.0) -> None:
        """Let the writer flush what is queued, then close."""

        if not self._closed.is_set():
            try:
                self._queue.put(None, timeout=timeout)
            except queue.Full:
                pass
            self.join(timeout)
        self.close()


class ViewerHub:
    """The set of live viewers. Callers serialize access with the store lock."""

    def __init__(self) -> None:
        self._viewers: dict[int, ViewerConnection] = {}

    def add(self, viewer: ViewerConnection) -> None:
        self._viewers[viewer.id] = viewer

    def discard(self, viewer: ViewerConnection) -> None:
        self._viewers.pop(viewer.id, None)

    def broadcast(self, frame: bytes) -> int:
        delivered = 0
        for viewer in list(self._viewers.values()):
            if viewer.offer(frame):
                delivered += 1
            else:
                self._viewers.pop(viewer.id, None)
        return delivered

    def close_all(self) -> None:
        for viewer in list(self._viewers.values()):
            viewer.close()
        self._viewers.clear()

    def __len__(self) -> int:
        return len(self._viewers)
