from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field

from .api import ApiHandler
from .config import LoggerConfig
from .http_helpers import LoggerHTTPServer
from .store import LogStore
from .viewer import ViewerHandler

logger = logging.getLogger(__name__)


def port_open(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.2)
        try:
            return sock.connect_ex((host, port)) == 0
        except OSError:
            return False


@dataclass
class LoggerServers:
    """The ingestion and presentation listeners sharing one store."""

    api: LoggerHTTPServer
    web: LoggerHTTPServer
    store: LogStore
    _background: list[LoggerHTTPServer] = field(default_factory=list)

    @property
    def api_port(self) -> int:
        return int(self.api.server_address[1])

    @property
    def web_port(self) -> int:
        return int(self.web.server_address[1])

    def _spawn(self, server: LoggerHTTPServer, name: str) -> None:
        thread = threading.Thread(target=server.serve_forever, name=name, daemon=True)
        thread.start()
        self._background.append(server)

    def start(self) -> None:
        """Serve both listeners from background threads."""

        self._spawn(self.api, "jarchi-logger-api")
        self._spawn(self.web, "jarchi-logger-web")

    def serve_forever(self) -> None:
        """Serve the API in the background and the viewer in the calling thread."""

        self._spawn(self.api, "jarchi-logger-api")
        try:
            self.web.serve_forever()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.store.close_viewers()
        # shutdown() blocks until serve_forever returns, so only call it for
        # listeners running in a background thread.
        for server in self._background:
            server.shutdown()
        self._background.clear()
        for server in (self.api, self.web):
            server.server_close()


def create_servers(config: LoggerConfig, store: LogStore | None = None) -> LoggerServers:
    """Bind both listeners. A port already in use raises OSError."""

    store = store or LogStore()
    api = LoggerHTTPServer(
        (config.host, config.api_port),
        ApiHandler,
        store,
        viewer_queue_size=config.viewer_queue_size,
    )
    try:
        web = LoggerHTTPServer(
            (config.host, config.web_port),
            ViewerHandler,
            store,
            viewer_queue_size=config.viewer_queue_size,
        )
    except OSError:
        api.server_close()
        raise
    return LoggerServers(api=api, web=web, store=store)
