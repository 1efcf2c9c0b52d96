from __future__ import annotations

from urllib.parse import urlparse

from .http_helpers import StoreRequestHandler
from .routes import console as console_routes
from .routes import logs as log_routes


class ApiHandler(StoreRequestHandler):
    """Ingestion listener: producers post logs and console markdown here."""

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        try:
            if log_routes.handle_get(self, self.store, parsed.path):
                return
            if console_routes.handle_get(self, self.store, parsed.path):
                return
            self._send_not_found()
        except Exception as exc:  # pragma: no cover
            self._send_internal_error(exc)

    def do_POST(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        try:
            if log_routes.handle_post(self, self.store, parsed.path):
                return
            if console_routes.handle_post(self, self.store, parsed.path):
                return
            self._send_not_found()
        except Exception as exc:  # pragma: no cover
            self._send_internal_error(exc)
