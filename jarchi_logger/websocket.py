from __future__ import annotations

import base64
import hashlib
import json
import os
import socket
import struct
from typing import Any, Protocol

WS_MAGIC = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
WS_FRAME_MAX_BYTES = 1_048_576

OP_CONTINUATION = 0x0
OP_TEXT = 0x1
OP_BINARY = 0x2
OP_CLOSE = 0x8
OP_PING = 0x9
OP_PONG = 0xA


class _Transport(Protocol):
    def recv(self, size: int) -> bytes: ...


class StreamTransport:
    """Read side of a websocket over a buffered file object (a handler's rfile)."""

    def __init__(self, stream: Any) -> None:
        self._stream = stream

    def recv(self, size: int) -> bytes:
        try:
            return self._stream.read(size) or b""
        except (OSError, ValueError):
            return b""


def websocket_accept_value(client_key: str) -> str:
    accept_seed = client_key + WS_MAGIC
    digest = hashlib.sha1(accept_seed.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def websocket_frame(opcode: int, payload: bytes = b"", *, mask: bytes | None = None) -> bytes:
    data = bytes(payload)
    length = len(data)
    mask_bit = 0x80 if mask is not None else 0
    header = bytearray([0x80 | (opcode & 0x0F)])
    if length <= 125:
        header.append(mask_bit | length)
    elif length < 65536:
        header.append(mask_bit | 126)
        header.extend(struct.pack("!H", length))
    else:
        header.append(mask_bit | 127)
        header.extend(struct.pack("!Q", length))
    if mask is not None:
        header.extend(mask)
        data = bytes(byte ^ mask[index % 4] for index, byte in enumerate(data))
    return bytes(header) + data


def websocket_frame_text(message: str, *, mask: bytes | None = None) -> bytes:
    return websocket_frame(OP_TEXT, message.encode("utf-8"), mask=mask)


def event_frame(event: str, data: Any = None, *, mask: bytes | None = None) -> bytes:
    """Encode one push-channel event as a JSON text frame."""

    message = json.dumps({"event": event, "data": data}, ensure_ascii=False)
    return websocket_frame_text(message, mask=mask)


def parse_event(payload: bytes) -> tuple[str, Any] | None:
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(message, dict):
        return None
    event = message.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, message.get("data")


def recv_exact(connection: _Transport, size: int) -> bytes | None:
    if size <= 0:
        return b""

    data = bytearray()
    while len(data) < size:
        chunk = connection.recv(size - len(data))
        if not chunk:
            return None
        data.extend(chunk)
    return bytes(data)


def read_frame(
    connection: _Transport,
    *,
    max_payload: int = WS_FRAME_MAX_BYTES,
    require_mask: bool = True,
) -> tuple[int, bytes] | None:
    """Read one frame; ``None`` means the peer is gone or broke the protocol.

    Browsers must mask what they send, servers must not, so the server side
    reads with ``require_mask=True`` and clients with ``require_mask=False``.
    """

    header = recv_exact(connection, 2)
    if header is None:
        return None

    first, second = header
    opcode = first & 0x0F
    masked = bool(second & 0x80)
    payload_len = second & 0x7F

    if payload_len == 126:
        extended = recv_exact(connection, 2)
        if extended is None:
            return None
        payload_len = struct.unpack("!H", extended)[0]
    elif payload_len == 127:
        extended = recv_exact(connection, 8)
        if extended is None:
            return None
        payload_len = struct.unpack("!Q", extended)[0]

    if (require_mask and not masked) or payload_len > max_payload:
        return None

    mask_key = b""
    if masked:
        mask_key_read = recv_exact(connection, 4)
        if mask_key_read is None:
            return None
        mask_key = mask_key_read

    payload = recv_exact(connection, payload_len)
    if payload is None:
        return None

    if masked and payload_len:
        payload = bytes(byte ^ mask_key[index % 4] for index, byte in enumerate(payload))

    return opcode, payload


def new_client_key() -> str:
    return base64.b64encode(os.urandom(16)).decode("ascii")


def connect(
    host: str,
    port: int,
    path: str = "/ws",
    *,
    timeout_s: float | None = 5.0,
) -> socket.socket:
    """Open a client WebSocket and return the socket after a successful handshake."""

    sock = socket.create_connection((host, port), timeout=timeout_s)
    key = new_client_key()
    request = (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: {host}:{port}\r\n"
        "Upgrade: websocket\r\n"
        "Connection: Upgrade\r\n"
        f"Sec-WebSocket-Key: {key}\r\n"
        "Sec-WebSocket-Version: 13\r\n"
        "\r\n"
    )
    try:
        sock.sendall(request.encode("ascii"))
        response = bytearray()
        while b"\r\n\r\n" not in response:
            chunk = sock.recv(1)
            if not chunk:
                raise ConnectionError("connection closed during websocket handshake")
            response.extend(chunk)
        head = response.decode("latin-1")
        status_line, _, header_block = head.partition("\r\n")
        if not status_line.startswith("HTTP/1.1 101"):
            raise ConnectionError(f"websocket upgrade refused: {status_line.strip()}")
        headers = {}
        for line in header_block.split("\r\n"):
            name, sep, value = line.partition(":")
            if sep:
                headers[name.strip().lower()] = value.strip()
        if headers.get("sec-websocket-accept") != websocket_accept_value(key):
            raise ConnectionError("websocket accept key mismatch")
    except BaseException:
        sock.close()
        raise
    return sock


def send_client_event(sock: socket.socket, event: str, data: Any = None) -> None:
    sock.sendall(event_frame(event, data, mask=os.urandom(4)))


def read_server_event(sock: _Transport) -> tuple[str, Any] | None:
    """Read frames until one carries an event; ``None`` once the server closes."""

    while True:
        frame = read_frame(sock, require_mask=False, max_payload=1 << 31)
        if frame is None:
            return None
        opcode, payload = frame
        if opcode == OP_CLOSE:
            return None
        if opcode != OP_TEXT:
            continue
        parsed = parse_event(payload)
        if parsed is not None:
            return parsed
