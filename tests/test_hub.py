from __future__ import annotations

import threading
import time

from jarchi_logger.hub import ViewerConnection, ViewerHub


class _RecordingSender:
    def __init__(self) -> None:
        self.frames: list[bytes] = []
        self.shutdown_calls = 0
        self._got = threading.Condition()

    def sendall(self, payload: bytes) -> None:
        with self._got:
            self.frames.append(payload)
            self._got.notify_all()

    def shutdown(self, how: int) -> None:
        self.shutdown_calls += 1

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        with self._got:
            return self._got.wait_for(lambda: len(self.frames) >= count, timeout)


class _StalledSender:
    """sendall never returns until shutdown() is called."""

    def __init__(self) -> None:
        self.released = threading.Event()

    def sendall(self, payload: bytes) -> None:
        self.released.wait(5)
        raise BrokenPipeError("closed")

    def shutdown(self, how: int) -> None:
        self.released.set()


class _BrokenSender:
    def sendall(self, payload: bytes) -> None:
        raise ConnectionResetError("reset by peer")

    def shutdown(self, how: int) -> None:
        return


def test_writer_delivers_frames_in_order() -> None:
    sender = _RecordingSender()
    viewer = ViewerConnection(sender, queue_size=8)
    viewer.start()

    for index in range(5):
        assert viewer.offer(f"frame-{index}".encode()) is True

    assert sender.wait_for(5)
    assert sender.frames == [f"frame-{index}".encode() for index in range(5)]
    viewer.finish()
    assert viewer.closed is True


def test_full_queue_drops_viewer_without_blocking() -> None:
    stalled = _StalledSender()
    viewer = ViewerConnection(stalled, queue_size=2)
    viewer.start()

    started = time.monotonic()
    results = [viewer.offer(b"x") for _ in range(10)]
    elapsed = time.monotonic() - started

    assert elapsed < 0.5
    assert False in results
    assert viewer.closed is True
    viewer.join(2)


def test_send_failure_closes_only_that_viewer() -> None:
    hub = ViewerHub()
    healthy_sender = _RecordingSender()
    healthy = ViewerConnection(healthy_sender)
    broken = ViewerConnection(_BrokenSender())
    for viewer in (healthy, broken):
        viewer.start()
        hub.add(viewer)

    hub.broadcast(b"first")
    broken.join(2)
    assert broken.closed is True

    hub.broadcast(b"second")

    assert healthy_sender.wait_for(2)
    assert healthy_sender.frames == [b"first", b"second"]
    assert healthy.closed is False
    assert len(hub) == 1
    hub.close_all()


def test_stalled_viewer_does_not_hold_up_broadcast() -> None:
    hub = ViewerHub()
    healthy_sender = _RecordingSender()
    healthy = ViewerConnection(healthy_sender, queue_size=64)
    stalled = ViewerConnection(_StalledSender(), queue_size=2)
    for viewer in (healthy, stalled):
        viewer.start()
        hub.add(viewer)

    started = time.monotonic()
    for index in range(20):
        hub.broadcast(f"{index}".encode())
    elapsed = time.monotonic() - started

    assert elapsed < 0.5
    assert stalled.closed is True
    assert healthy_sender.wait_for(20)
    assert len(hub) == 1
    hub.close_all()
    assert healthy.closed is True
    assert healthy_sender.shutdown_calls == 1
