"""The HTTP server exposing the fishermen API."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from fishermans import applications, clients, locations, statuses
from fishermans.context import db_provider, logger_provider
from fishermans.errors import RpcError, ServiceStopped, StatusCode
from fishermans.interceptors import (
    chain_interceptors,
    context_extender_interceptor,
    logger_interceptor,
    recovery_interceptor,
)
from fishermans.storage import MasterQ

SERVICE_NAME = "fishermans.FishermanService"
RPC_PREFIX = "/rpc/"

_ALLOWED_ORIGINS = ("http://localhost:5173",)
_ALLOWED_METHODS = "GET, POST, PATCH, DELETE, OPTIONS"
_ALLOWED_HEADERS = "Content-Type, Authorization"
_MAX_AGE = "300"

_HANDLERS = {
    "SubmitApplication": applications.submit_application,
    "UpdateApplication": applications.update_application,
    "DeleteApplication": applications.delete_application,
    "GetAllApplications": applications.get_all_applications,
    "GetApplicationById": applications.get_application_by_id,
    "SubmitApplicationStatus": statuses.submit_application_status,
    "UpdateApplicationStatus": statuses.update_application_status,
    "DeleteApplicationStatus": statuses.delete_application_status,
    "GetApplicationStatus": statuses.get_application_status,
    "GetAllApplicationStatuses": statuses.get_all_application_statuses,
    "SubmitClient": clients.submit_client,
    "UpdateClient": clients.update_client,
    "DeleteClient": clients.delete_client,
    "GetAllClients": clients.get_all_clients,
    "GetClientById": clients.get_client_by_id,
    "SubmitLocation": locations.submit_location,
    "UpdateLocation": locations.update_location,
    "DeleteLocation": locations.delete_location,
    "GetAllLocations": locations.get_all_locations,
    "GetLocationById": locations.get_location_by_id,
}

_HTTP_STATUS = {
    StatusCode.OK: 200,
    StatusCode.CANCELLED: 499,
    StatusCode.INVALID_ARGUMENT: 400,
    StatusCode.DEADLINE_EXCEEDED: 504,
    StatusCode.NOT_FOUND: 404,
    StatusCode.ALREADY_EXISTS: 409,
    StatusCode.PERMISSION_DENIED: 403,
    StatusCode.RESOURCE_EXHAUSTED: 429,
    StatusCode.FAILED_PRECONDITION: 400,
    StatusCode.ABORTED: 409,
    StatusCode.OUT_OF_RANGE: 400,
    StatusCode.UNIMPLEMENTED: 501,
    StatusCode.UNAVAILABLE: 503,
    StatusCode.UNAUTHENTICATED: 401,
}


def _parse_dates(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: _to_datetime(item) if key == "fishing_date" else _parse_dates(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_parse_dates(item) for item in value]
    return value


def _to_datetime(value: Any) -> Any:
    if isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(text)
        except ValueError as exc:
            raise RpcError(StatusCode.INVALID_ARGUMENT, f"fishing_date: {exc}") from exc
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"cannot encode {type(value).__name__}")


class Service:
    """Dispatches API calls through the interceptor chain and serves them over HTTP."""

    def __init__(self, grpc_listener, http_listener, logger: logging.Logger, db: MasterQ) -> None:
        self._grpc = grpc_listener
        self._http = http_listener
        self._logger = logger
        self._interceptors = [
            context_extender_interceptor(logger_provider(logger), db_provider(db)),
            logger_interceptor(logger),
            recovery_interceptor(logger),
        ]

    def handle(self, method, request):
        """Run one API method on a request and return its response."""
        try:
            handler = _HANDLERS[method]
        except KeyError:
            raise RpcError(StatusCode.UNIMPLEMENTED, f"unknown method {method}") from None
        call = chain_interceptors(self._interceptors, handler)
        return call({}, request, f"/{SERVICE_NAME}/{method}")

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        service = self

        class _Handler(BaseHTTPRequestHandler):
            def log_message(self, format, *args):
                service._logger.debug(format, *args)

            def _cors(self) -> None:
                origin = self.headers.get("Origin")
                if origin in _ALLOWED_ORIGINS:
                    self.send_header("Access-Control-Allow-Origin", origin)
                    self.send_header("Access-Control-Allow-Credentials", "true")
                    self.send_header("Vary", "Origin")

            def _reply(self, status: int, body: Any) -> None:
                payload = json.dumps(body, default=_json_default).encode("utf-8")
                self.send_response(status)
                self._cors()
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def _error(self, exc: RpcError) -> None:
                self._reply(
                    _HTTP_STATUS.get(exc.code, 500),
                    {"code": int(exc.code), "message": exc.message},
                )

            def _read_body(self) -> dict[str, Any]:
                length = int(self.headers.get("Content-Length") or 0)
                raw = self.rfile.read(length) if length else b""
                if not raw.strip():
                    return {}
                try:
                    body = json.loads(raw)
                except ValueError as exc:
                    raise RpcError(StatusCode.INVALID_ARGUMENT, f"invalid JSON: {exc}") from exc
                if not isinstance(body, dict):
                    raise RpcError(StatusCode.INVALID_ARGUMENT, "request body must be an object")
                return body

            def _dispatch(self, from_query: bool) -> None:
                parts = urlsplit(self.path)
                if not parts.path.startswith(RPC_PREFIX):
                    self._error(RpcError(StatusCode.NOT_FOUND, "Not Found"))
                    return
                method = parts.path[len(RPC_PREFIX):]
                try:
                    if from_query:
                        request = {
                            key: int(value) if value.isdigit() else value
                            for key, value in parse_qsl(parts.query)
                        }
                    else:
                        request = self._read_body()
                    result = service.handle(method, _parse_dates(request))
                except RpcError as exc:
                    self._error(exc)
                    return
                self._reply(200, result)

            def do_GET(self):
                self._dispatch(from_query=True)

            def do_POST(self):
                self._dispatch(from_query=False)

            def do_PATCH(self):
                self._dispatch(from_query=False)

            def do_DELETE(self):
                self._dispatch(from_query=False)

            def do_OPTIONS(self):
                self.send_response(204)
                self._cors()
                if self.headers.get("Origin") in _ALLOWED_ORIGINS:
                    self.send_header("Access-Control-Allow-Methods", _ALLOWED_METHODS)
                    self.send_header("Access-Control-Allow-Headers", _ALLOWED_HEADERS)
                    self.send_header("Access-Control-Max-Age", _MAX_AGE)
                self.send_header("Content-Length", "0")
                self.end_headers()

        return _Handler

    def run_http(self, stop_event):
        """Serve HTTP on the listener until the event is set."""
        server = ThreadingHTTPServer(
            self._http.getsockname()[:2], self._handler_class(), bind_and_activate=False
        )
        server.daemon_threads = True
        server.socket = self._http
        thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.1}, daemon=True)
        thread.start()
        self._logger.info("http serving started")
        try:
            stop_event.wait()
        finally:
            server.shutdown()
            server.server_close()
            thread.join()
        self._logger.info("http serving stopped: context canceled")


def run_server(config, stop_event):
    """Run the API until the event is set, then raise ServiceStopped."""
    logger = config.log()
    service = Service(
        config.grpc_listener(),
        config.http_listener(),
        logger.getChild("server"),
        MasterQ(config.db()),
    )
    try:
        service.run_http(stop_event)
    except Exception as exc:
        raise RuntimeError(f"error running server: {exc}") from exc
    finally:
        config.grpc_listener().close()
    raise ServiceStopped()