from __future__ import annotations

import http.client
import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from jarchi_logger.config import LoggerConfig
from jarchi_logger.server import LoggerServers, create_servers

HttpRequest = Callable[..., tuple[int, bytes, dict[str, str]]]


@pytest.fixture(autouse=True)
def _isolate_logger_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "API_PORT",
        "WEB_PORT",
        "JARCHI_LOGGER_HOST",
        "JARCHI_LOGGER_VIEWER_QUEUE",
        "JARCHI_LOGGER_NO_CACHE",
        "JARCHI_LOGGER_DEBUG",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def servers() -> Iterator[LoggerServers]:
    running = create_servers(LoggerConfig(host="127.0.0.1", api_port=0, web_port=0))
    running.start()
    try:
        yield running
    finally:
        running.shutdown()


@pytest.fixture
def http_request() -> HttpRequest:
    def _request(
        port: int,
        method: str,
        path: str,
        body: Any = None,
        *,
        raw: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, bytes, dict[str, str]]:
        conn = http.client.HTTPConnection("127.0.0.1", port, timeout=2)
        request_headers = dict(headers or {})
        payload = raw
        if payload is None and body is not None:
            payload = json.dumps(body).encode("utf-8")
            request_headers.setdefault("Content-Type", "application/json")
        try:
            conn.request(method, path, body=payload, headers=request_headers)
            resp = conn.getresponse()
            data = resp.read()
            return resp.status, data, {k.lower(): v for k, v in resp.getheaders()}
        finally:
            conn.close()

    return _request
