from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import typer
from rich import print
from rich.markup import escape

from jarchi_logger import websocket
from jarchi_logger.client import ConsoleSubmitError, LogClient

LEVEL_STYLES = {
    "error": "red",
    "warn": "yellow",
    "warning": "yellow",
    "debug": "dim",
}


def format_record(record: dict[str, Any]) -> str:
    level = str(record.get("level") or "")
    extra = record.get("additionalData") or {}
    source = extra.get("application") or record.get("script") or ""
    if extra.get("module"):
        source = f"{source}/{extra['module']}" if source else str(extra["module"])
    parts = [escape(str(record.get("timestamp") or ""))]
    if level:
        style = LEVEL_STYLES.get(level.lower())
        label = escape(f"[{level}]")
        parts.append(f"[{style}]{label}[/{style}]" if style else label)
    if source:
        parts.append(f"[cyan]{escape(str(source))}[/cyan]")
    parts.append(escape(str(record.get("message") or "")))
    return " ".join(parts)


def log_cmd(
    client: LogClient,
    *,
    message: str,
    application: str | None,
    module: str | None,
    level: str | None,
    data: str | None,
) -> None:
    """Send a single log record."""

    additional: Any = None
    if data:
        try:
            additional = json.loads(data)
        except json.JSONDecodeError:
            additional = data
    if not client.log(application, module, message, additional, level=level):
        print(f"[red]Could not deliver log to {client.api_url}[/red]")
        raise typer.Exit(code=1)
    print("[green]Log sent[/green]")


def console_cmd(client: LogClient, *, source: str) -> None:
    """Send markdown from a file (or stdin with '-') to the console view."""

    if source == "-":
        markdown = sys.stdin.read()
    else:
        path = Path(source).expanduser()
        try:
            markdown = path.read_text(encoding="utf-8")
        except OSError as exc:
            print(f"[red]Cannot read {path}: {exc}[/red]")
            raise typer.Exit(code=1) from exc
    try:
        client.send_console(markdown)
    except ConsoleSubmitError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        print(f"[red]Error sending markdown: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print("[green]Markdown sent successfully[/green]")


def logs_cmd(client: LogClient, *, limit: int | None) -> None:
    """Print buffered log records, oldest first."""

    try:
        records = client.fetch_logs()
    except (OSError, RuntimeError) as exc:
        print(f"[red]Could not fetch logs: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    if not records:
        print("No logs")
        return
    if limit:
        records = records[-limit:]
    for record in records:
        print(format_record(record))


def clear_cmd(client: LogClient) -> None:
    """Clear the server's log history."""

    try:
        client.clear_logs()
    except (OSError, RuntimeError) as exc:
        print(f"[red]Could not clear logs: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print("[green]Logs cleared[/green]")


def tail_cmd(web_url: str) -> None:
    """Follow the viewer push channel and print records as they arrive."""

    parsed = urlparse(web_url)
    host = parsed.hostname or "localhost"
    port = parsed.port or 80
    try:
        sock = websocket.connect(host, port, timeout_s=5.0)
    except OSError as exc:
        print(f"[red]Could not connect to {web_url}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    sock.settimeout(None)
    try:
        while True:
            received = websocket.read_server_event(sock)
            if received is None:
                print("[yellow]Server closed the connection[/yellow]")
                return
            event, data = received
            if event == "initialLogs":
                for record in data or []:
                    print(format_record(record))
            elif event == "newLog" and isinstance(data, dict):
                print(format_record(data))
            elif event == "logsCleared":
                print("[yellow]-- logs cleared --[/yellow]")
    except KeyboardInterrupt:
        return
    finally:
        sock.close()
