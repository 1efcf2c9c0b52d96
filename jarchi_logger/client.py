"""Producer-side helpers for talking to a running jarchi-logger.

``LogClient`` has the same shape as the logger object used from jArchi
scripts: pick an application/module once with ``set_application`` and log
with ``slog``, or pass both on every ``log`` call. Logging never raises, a
missing server only costs a warning.
"""

from __future__ import annotations

import json
import logging
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlparse

from .config import DEFAULT_API_PORT, DEFAULT_WEB_PORT

logger = logging.getLogger(__name__)

DEFAULT_API_URL = f"http://localhost:{DEFAULT_API_PORT}"
DEFAULT_WEB_URL = f"http://localhost:{DEFAULT_WEB_PORT}"


class ConsoleSubmitError(RuntimeError):
    def __init__(self, status: int, detail: str | None = None) -> None:
        self.status = status
        self.detail = detail
        message = f"console submission rejected (HTTP {status})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


def request_json(
    method: str,
    url: str,
    *,
    body: Any = None,
    timeout_s: float = 3.0,
) -> tuple[int, Any]:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("missing hostname")
    if parsed.scheme == "https":
        conn = HTTPSConnection(parsed.hostname, parsed.port or 443, timeout=timeout_s)
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    body_bytes = None
    headers = {"Accept": "application/json"}
    if body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json"
        headers["Content-Length"] = str(len(body_bytes))
    try:
        conn.request(method, path, body=body_bytes, headers=headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
    finally:
        conn.close()
    if not raw:
        return status, None
    try:
        return status, json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return status, raw.decode("utf-8", errors="replace")


class LogClient:
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        web_url: str = DEFAULT_WEB_URL,
        *,
        timeout_s: float = 5.0,
    ) -> None:
        self.api_url = build_base_url(api_url)
        self.web_url = build_base_url(web_url)
        self.timeout_s = timeout_s
        self.application: str | None = None
        self.module: str = ""

    def set_log_server_url(self, url: str) -> None:
        self.api_url = build_base_url(url)

    def set_application(self, application: str, module: str = "") -> None:
        self.application = application
        self.module = module

    def log(
        self,
        application: str | None,
        module: str | None,
        message: str,
        additional_data: Any = None,
        *,
        level: str | None = None,
    ) -> bool:
        """Send one record; returns False instead of raising when the server is unreachable."""

        payload: dict[str, Any] = {"message": message}
        if application is not None:
            payload["application"] = application
        if module is not None:
            payload["module"] = module
        if level:
            payload["level"] = level
        if isinstance(additional_data, dict):
            payload.update(additional_data)
        elif additional_data is not None:
            payload["data"] = additional_data
        try:
            status, _ = request_json(
                "POST", f"{self.api_url}/log", body=payload, timeout_s=self.timeout_s
            )
        except (OSError, ValueError) as exc:
            logger.warning("Error sending log: %s", exc)
            return False
        if status != 200:
            logger.warning("Log server answered HTTP %s", status)
            return False
        return True

    def slog(self, message: str, additional_data: Any = None, *, level: str | None = None) -> bool:
        return self.log(self.application, self.module, message, additional_data, level=level)

    def send_console(self, markdown: str) -> None:
        status, payload = request_json(
            "POST",
            f"{self.api_url}/console",
            body={"markdown": markdown},
            timeout_s=self.timeout_s,
        )
        if status != 200:
            detail = payload.get("error") if isinstance(payload, dict) else payload
            raise ConsoleSubmitError(status, detail if isinstance(detail, str) else None)

    def fetch_logs(self) -> list[dict[str, Any]]:
        status, payload = request_json("GET", f"{self.api_url}/logs", timeout_s=self.timeout_s)
        if status != 200 or not isinstance(payload, list):
            raise RuntimeError(f"unexpected response from /logs (HTTP {status})")
        return payload

    def fetch_console(self) -> list[str]:
        status, payload = request_json(
            "GET", f"{self.api_url}/console-content", timeout_s=self.timeout_s
        )
        if status != 200 or not isinstance(payload, list):
            raise RuntimeError(f"unexpected response from /console-content (HTTP {status})")
        return payload

    def clear_logs(self) -> None:
        status, _ = request_json("POST", f"{self.web_url}/clear-logs", timeout_s=self.timeout_s)
        if status != 200:
            raise RuntimeError(f"clear-logs failed (HTTP {status})")
