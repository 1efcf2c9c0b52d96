from __future__ import annotations

import io
import json
import struct

from jarchi_logger import websocket


class _MockWebSocketTransport:
    def __init__(self, payload: bytes) -> None:
        self._buffer = payload
        self.sent: list[bytes] = []

    def recv(self, size: int) -> bytes:
        if not self._buffer:
            return b""
        chunk = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return chunk

    def sendall(self, payload: bytes) -> None:
        self.sent.append(payload)


def _masked_ws_frame(opcode: int, payload: bytes) -> bytes:
    mask = bytes([0x23, 0x45, 0x67, 0x89])
    masked_payload = bytes(byte ^ mask[index % 4] for index, byte in enumerate(payload))
    return bytes([0x80 | (opcode & 0x0F), 0x80 | len(payload)]) + mask + masked_payload


def test_websocket_helpers() -> None:
    accept = websocket.websocket_accept_value("dGhlIHNhbXBsZSBub25jZQ==")
    assert accept == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="

    frame = websocket.websocket_frame_text('{"ok":true}')
    assert frame[0] == 0x81
    assert frame[1] == len('{"ok":true}')


def test_frame_length_encodings() -> None:
    medium = websocket.websocket_frame(websocket.OP_TEXT, b"x" * 300)
    assert medium[1] == 126
    assert struct.unpack("!H", medium[2:4])[0] == 300

    large = websocket.websocket_frame(websocket.OP_BINARY, b"x" * 70000)
    assert large[1] == 127
    assert struct.unpack("!Q", large[2:10])[0] == 70000


def test_read_frame_unmasks_client_payload() -> None:
    transport = _MockWebSocketTransport(_masked_ws_frame(websocket.OP_TEXT, b"hello"))

    assert websocket.read_frame(transport) == (websocket.OP_TEXT, b"hello")


def test_read_frame_rejects_unmasked_client_frames() -> None:
    transport = _MockWebSocketTransport(websocket.websocket_frame_text("hello"))

    assert websocket.read_frame(transport) is None


def test_read_frame_rejects_oversized_payload() -> None:
    frame = websocket.websocket_frame(websocket.OP_TEXT, b"x" * 200, mask=b"\x01\x02\x03\x04")
    transport = _MockWebSocketTransport(frame)

    assert websocket.read_frame(transport, max_payload=100) is None


def test_read_frame_returns_none_on_truncated_input() -> None:
    frame = _masked_ws_frame(websocket.OP_TEXT, b"hello")
    transport = _MockWebSocketTransport(frame[:-2])

    assert websocket.read_frame(transport) is None


def test_masked_frame_encoding_matches_reader() -> None:
    frame = websocket.websocket_frame(websocket.OP_TEXT, b"x" * 300, mask=b"\x0a\x0b\x0c\x0d")
    transport = _MockWebSocketTransport(frame)

    assert websocket.read_frame(transport) == (websocket.OP_TEXT, b"x" * 300)


def test_event_frame_round_trip() -> None:
    frame = websocket.event_frame("newLog", {"message": "hi"})
    transport = _MockWebSocketTransport(frame)

    assert websocket.read_server_event(transport) == ("newLog", {"message": "hi"})


def test_read_server_event_skips_control_frames_and_stops_on_close() -> None:
    stream = (
        websocket.websocket_frame(websocket.OP_PING, b"")
        + websocket.event_frame("logsCleared")
        + websocket.websocket_frame(websocket.OP_CLOSE, b"")
    )
    transport = _MockWebSocketTransport(stream)

    assert websocket.read_server_event(transport) == ("logsCleared", None)
    assert websocket.read_server_event(transport) is None


def test_parse_event_rejects_malformed_messages() -> None:
    assert websocket.parse_event(b"not json") is None
    assert websocket.parse_event(json.dumps([1, 2]).encode()) is None
    assert websocket.parse_event(json.dumps({"data": 1}).encode()) is None
    assert websocket.parse_event(json.dumps({"event": "resetConsole"}).encode()) == (
        "resetConsole",
        None,
    )


def test_stream_transport_reads_from_buffered_file() -> None:
    stream = io.BytesIO(_masked_ws_frame(websocket.OP_TEXT, b"abc"))

    frame = websocket.read_frame(websocket.StreamTransport(stream))

    assert frame == (websocket.OP_TEXT, b"abc")
    assert websocket.StreamTransport(stream).recv(4) == b""
