from __future__ import annotations

import socket

import pytest

from jarchi_logger import client
from jarchi_logger.client import ConsoleSubmitError, LogClient, build_base_url
from jarchi_logger.server import LoggerServers


class _ConnRequestFails:
    def __init__(self, *args, **kwargs) -> None:
        self.closed = False

    def request(self, method, path, body=None, headers=None) -> None:
        raise RuntimeError("boom")

    def close(self) -> None:
        self.closed = True


class _ConnReadFails:
    def __init__(self, *args, **kwargs) -> None:
        self.closed = False

    def request(self, method, path, body=None, headers=None) -> None:
        return

    def getresponse(self):
        return _RespReadFails()

    def close(self) -> None:
        self.closed = True


class _RespReadFails:
    status = 200

    def read(self) -> bytes:
        raise RuntimeError("read failed")


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _client_for(servers: LoggerServers) -> LogClient:
    return LogClient(
        f"http://127.0.0.1:{servers.api_port}",
        f"http://127.0.0.1:{servers.web_port}",
        timeout_s=2.0,
    )


def test_request_json_closes_connection_when_request_raises(monkeypatch) -> None:
    conn = _ConnRequestFails()
    monkeypatch.setattr(client, "HTTPConnection", lambda *a, **k: conn)

    with pytest.raises(RuntimeError, match="boom"):
        client.request_json("GET", "http://127.0.0.1:4000/logs")

    assert conn.closed is True


def test_request_json_closes_connection_when_response_read_raises(monkeypatch) -> None:
    conn = _ConnReadFails()
    monkeypatch.setattr(client, "HTTPConnection", lambda *a, **k: conn)

    with pytest.raises(RuntimeError, match="read failed"):
        client.request_json("GET", "http://127.0.0.1:4000/logs")

    assert conn.closed is True


def test_request_json_requires_hostname() -> None:
    with pytest.raises(ValueError, match="missing hostname"):
        client.request_json("GET", "/logs")


def test_build_base_url() -> None:
    assert build_base_url("localhost:4000/") == "http://localhost:4000"
    assert build_base_url("https://logs.example") == "https://logs.example"
    assert build_base_url("  ") == ""


def test_log_posts_application_and_module(servers: LoggerServers) -> None:
    log_client = _client_for(servers)

    assert log_client.log("Exporter", "csv", "wrote 3 files", {"files": 3}) is True
    assert log_client.log("Exporter", "csv", "raw value", [1, 2], level="DEBUG") is True

    first, second = log_client.fetch_logs()
    assert first["message"] == "wrote 3 files"
    assert first["additionalData"] == {"application": "Exporter", "module": "csv", "files": 3}
    assert second["level"] == "DEBUG"
    assert second["additionalData"]["data"] == [1, 2]


def test_slog_uses_selected_application(servers: LoggerServers) -> None:
    log_client = _client_for(servers)
    log_client.set_application("Layouter", "grid")

    assert log_client.slog("placed") is True

    (record,) = servers.store.list_logs()
    assert record["additionalData"] == {"application": "Layouter", "module": "grid"}


def test_log_returns_false_when_server_unreachable(caplog) -> None:
    log_client = LogClient(f"http://127.0.0.1:{_free_port()}", timeout_s=1.0)

    with caplog.at_level("WARNING"):
        assert log_client.log("App", "mod", "lost") is False

    assert "Error sending log" in caplog.text


def test_set_log_server_url_redirects_logs(servers: LoggerServers) -> None:
    log_client = LogClient(f"http://127.0.0.1:{_free_port()}", timeout_s=1.0)
    log_client.set_log_server_url(f"127.0.0.1:{servers.api_port}")

    assert log_client.log("App", "mod", "found") is True
    assert len(servers.store.list_logs()) == 1


def test_send_console_and_fetch(servers: LoggerServers) -> None:
    log_client = _client_for(servers)

    log_client.send_console("# Heading")

    assert log_client.fetch_console() == ["# Heading"]


def test_send_console_rejects_empty_markdown(servers: LoggerServers) -> None:
    log_client = _client_for(servers)

    with pytest.raises(ConsoleSubmitError) as excinfo:
        log_client.send_console("")

    assert excinfo.value.status == 400
    assert excinfo.value.detail == "Markdown content is required"


def test_clear_logs(servers: LoggerServers) -> None:
    servers.store.submit_log({"message": "x"})
    log_client = _client_for(servers)

    log_client.clear_logs()

    assert log_client.fetch_logs() == []
