from __future__ import annotations

import logging

import typer
from rich import print

from jarchi_logger.config import LoggerConfig
from jarchi_logger.server import create_servers, port_open

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        print(f"[red]Unknown log level: {level}[/red]")
        raise typer.Exit(code=1)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)


def serve_cmd(config: LoggerConfig, *, log_level: str) -> None:
    """Run the ingestion and viewer listeners until interrupted."""

    configure_logging(log_level)
    if config.api_port == config.web_port and config.api_port != 0:
        print("[red]API and web ports must differ[/red]")
        raise typer.Exit(code=1)
    for label, port in (("API", config.api_port), ("Web", config.web_port)):
        if port and port_open(config.host, port):
            print(f"[red]{label} port {port} is already in use on {config.host}[/red]")
            raise typer.Exit(code=1)

    try:
        servers = create_servers(config)
    except OSError as exc:
        print(f"[red]Could not bind listeners: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]API Server running on http://{config.host}:{servers.api_port}[/green]")
    print(f"[green]Web Server running on http://{config.host}:{servers.web_port}[/green]")
    try:
        servers.serve_forever()
    except KeyboardInterrupt:
        print("[yellow]Shutting down[/yellow]")
