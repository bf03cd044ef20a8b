"""HTTP request handler for the fleet status API.

Dispatches every request through the frozen route table and writes JSON
responses with CORS headers. Any unexpected exception is logged with its
traceback and answered with a generic 500.
"""

from __future__ import annotations

import json
import traceback
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from typing import Any, Optional, Type

from .endpoints import ApiRequest
from .errors import INTERNAL_ERROR_MESSAGE, ApiError
from .router import Router


def _log(msg: str) -> None:
    print(msg, flush=True)


class ApiRequestHandler(BaseHTTPRequestHandler):
    """JSON API handler.

    ``router`` is set on a subclass at startup (see ``bind_handler``);
    handler instances never share mutable state.
    """

    router: Optional[Router] = None
    server_version = "FleetStatus/0.1"

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def do_OPTIONS(self):
        self.send_response(HTTPStatus.NO_CONTENT)
        self._send_cors_headers()
        self.send_header("Access-Control-Allow-Methods", "GET,POST,OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Content-Length", "0")
        self.end_headers()

    # --- Dispatch ---

    def _dispatch(self, method: str):
        try:
            match = self.router.match(method, self.path) if self.router else None
            if match is None:
                request = ApiRequest.from_url(method, self.path)
                self._send_json(
                    {"error": "Not found", "path": request.path},
                    status_code=HTTPStatus.NOT_FOUND,
                )
                return
            request = ApiRequest.from_url(method, self.path, match.params)
            status, body = match.handler(request)
            self._send_json(body, status_code=status)
        except ApiError as exc:
            self._send_json(exc.to_dict(), status_code=exc.status)
        except Exception as exc:
            _log(f"[api] {method} {self.path} failed: {exc}")
            traceback.print_exc()
            self._send_json({"error": INTERNAL_ERROR_MESSAGE}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)

    # --- Helpers ---

    def _send_json(self, data: Any, *, status_code: HTTPStatus = HTTPStatus.OK):
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store, max-age=0")
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _send_cors_headers(self):
        self.send_header("Access-Control-Allow-Origin", "*")

    def log_message(self, format, *args):
        _log(f"[api] {self.address_string()} {format % args}")


def bind_handler(router: Router) -> Type[ApiRequestHandler]:
    """Handler class bound to one route table."""
    return type("BoundApiRequestHandler", (ApiRequestHandler,), {"router": router})
