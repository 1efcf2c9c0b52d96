from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from . import __version__
from .client import DEFAULT_API_URL, DEFAULT_WEB_URL, LogClient
from .commands.producer_cmds import clear_cmd, console_cmd, log_cmd, logs_cmd, tail_cmd
from .commands.server_cmds import serve_cmd
from .config import load_config, load_env_file

app = typer.Typer(help="jarchi-logger: collect and watch logs from jArchi scripts")


def _client(api_url: str = DEFAULT_API_URL, web_url: str = DEFAULT_WEB_URL) -> LogClient:
    return LogClient(api_url, web_url)


@app.command()
def serve(
    api_port: int | None = typer.Option(None, help="API server port (env API_PORT, default 4000)"),
    web_port: int | None = typer.Option(None, help="Web server port (env WEB_PORT, default 4001)"),
    host: str | None = typer.Option(None, help="Interface to bind (env JARCHI_LOGGER_HOST)"),
    log_level: str = typer.Option("INFO", help="Python logging level"),
    env_file: str | None = typer.Option(
        None, help=".env file with API_PORT, WEB_PORT, ... (default: nearest .env)"
    ),
) -> None:
    """Run the log API and the live viewer."""

    env_path = Path(env_file).expanduser() if env_file else None
    if env_path is not None and not env_path.is_file():
        print(f"[red]Env file not found: {env_path}[/red]")
        raise typer.Exit(code=1)
    load_env_file(str(env_path) if env_path else None)
    config = load_config(api_port=api_port, web_port=web_port, host=host)
    serve_cmd(config, log_level=log_level)


@app.command()
def log(
    message: str,
    application: str | None = typer.Option(None, help="Application name shown as a group"),
    module: str | None = typer.Option(None, help="Module name inside the application"),
    level: str | None = typer.Option(None, help="Severity label, e.g. INFO or ERROR"),
    data: str | None = typer.Option(None, help="Extra data as JSON (merged into the record)"),
    url: str = typer.Option(DEFAULT_API_URL, help="Log API base URL"),
) -> None:
    """Send one log record."""

    log_cmd(
        _client(api_url=url),
        message=message,
        application=application,
        module=module,
        level=level,
        data=data,
    )


@app.command()
def console(
    source: str = typer.Argument(..., help="Markdown file to send, or '-' for stdin"),
    url: str = typer.Option(DEFAULT_API_URL, help="Log API base URL"),
) -> None:
    """Send markdown to the console view."""

    console_cmd(_client(api_url=url), source=source)


@app.command()
def logs(
    url: str = typer.Option(DEFAULT_API_URL, help="Log API base URL"),
    limit: int | None = typer.Option(None, min=1, help="Only show the last N records"),
) -> None:
    """Print the buffered log history."""

    logs_cmd(_client(api_url=url), limit=limit)


@app.command()
def clear(url: str = typer.Option(DEFAULT_WEB_URL, help="Viewer base URL")) -> None:
    """Clear the log history on the server."""

    clear_cmd(_client(web_url=url))


@app.command()
def tail(url: str = typer.Option(DEFAULT_WEB_URL, help="Viewer base URL")) -> None:
    """Follow live logs from the viewer push channel."""

    tail_cmd(url)


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
