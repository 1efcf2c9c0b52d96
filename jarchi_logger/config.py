from __future__ import annotations

import os
import warnings
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

DEFAULT_HOST = "127.0.0.1"
DEFAULT_API_PORT = 4000
DEFAULT_WEB_PORT = 4001
DEFAULT_VIEWER_QUEUE_SIZE = 1024

CONFIG_ENV_OVERRIDES = {
    "host": "JARCHI_LOGGER_HOST",
    "api_port": "API_PORT",
    "web_port": "WEB_PORT",
    "viewer_queue_size": "JARCHI_LOGGER_VIEWER_QUEUE",
}


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class LoggerConfig:
    host: str = DEFAULT_HOST
    api_port: int = DEFAULT_API_PORT
    web_port: int = DEFAULT_WEB_PORT
    # Outbound frames buffered per viewer before it is dropped.
    viewer_queue_size: int = DEFAULT_VIEWER_QUEUE_SIZE

    @property
    def api_url(self) -> str:
        return f"http://{self.host}:{self.api_port}"

    @property
    def web_url(self) -> str:
        return f"http://{self.host}:{self.web_port}"


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_port(value: object, default: int, *, key: str) -> int:
    port = _parse_int(value, default, key=key)
    if not 0 <= port <= 65535:
        warnings.warn(f"Invalid port for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return port


def load_config(
    *,
    api_port: int | None = None,
    web_port: int | None = None,
    host: str | None = None,
) -> LoggerConfig:
    """Build the effective config: CLI flags win over environment, environment over defaults."""

    cfg = _apply_env(LoggerConfig())
    if host:
        cfg.host = host
    if api_port is not None:
        cfg.api_port = _parse_port(api_port, cfg.api_port, key="api_port")
    if web_port is not None:
        cfg.web_port = _parse_port(web_port, cfg.web_port, key="web_port")
    return cfg


def _apply_env(cfg: LoggerConfig) -> LoggerConfig:
    overrides = get_env_overrides()
    if overrides.get("host"):
        cfg.host = overrides["host"]
    if "api_port" in overrides:
        cfg.api_port = _parse_port(overrides["api_port"], cfg.api_port, key="api_port")
    if "web_port" in overrides:
        cfg.web_port = _parse_port(overrides["web_port"], cfg.web_port, key="web_port")
    if "viewer_queue_size" in overrides:
        queue_size = _parse_int(
            overrides["viewer_queue_size"],
            cfg.viewer_queue_size,
            key="viewer_queue_size",
        )
        cfg.viewer_queue_size = max(1, queue_size)
    return cfg


def load_env_file(path: str | None = None) -> bool:
    """Load KEY=VALUE lines from a .env file into the process environment.

    Variables that are already set keep their value. Without ``path`` the
    nearest ``.env`` from the working directory upwards is used, if any.
    """

    dotenv_path = path or find_dotenv(usecwd=True)
    if not dotenv_path:
        return False
    return load_dotenv(dotenv_path, override=False)
