"""JSON HTTP surface for the action service."""

from __future__ import annotations

import json
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import structlog

from .exceptions import (
    ActionError,
    ActionNotFoundError,
    ConflictError,
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from .filters import ActionFilter
from .models import Action
from .service import ActionService

logger = structlog.get_logger()

USER_HEADER = "X-User-Id"

_ERRORS: list[tuple[type[ActionError], int, str]] = [
    (ValidationError, 400, "validation_error"),
    (ActionNotFoundError, 404, "not_found"),
    (InvalidTransitionError, 409, "invalid_transition"),
    (ConflictError, 409, "conflict"),
    (PersistenceError, 500, "persistence_error"),
]


class HTTPError(Exception):
    def __init__(self, status: int, kind: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.kind = kind


def error_status(exc: Exception) -> tuple[int, str]:
    """Map an exception to ``(http_status, error_kind)``."""
    if isinstance(exc, HTTPError):
        return exc.status, exc.kind
    for exc_type, status, kind in _ERRORS:
        if isinstance(exc, exc_type):
            return status, kind
    return 500, "internal_error"


def serialize_action(action: Action, now: datetime | None = None) -> dict[str, Any]:
    data = action.model_dump(mode="json")
    data["is_overdue"] = action.is_overdue(now)
    data["elapsed_minutes"] = action.elapsed_minutes(now)
    return data


class ActionServer(ThreadingHTTPServer):
    """HTTP server bound to one ActionService."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], service: ActionService) -> None:
        super().__init__(address, _Handler)
        self.service = service


Route = Callable[[str], tuple[int, Any]]


class _Handler(BaseHTTPRequestHandler):
    server: ActionServer

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("http_request", client=self.client_address[0], line=format % args)

    @property
    def service(self) -> ActionService:
        return self.server.service

    def do_GET(self) -> None:
        self._dispatch(self._get)

    def do_POST(self) -> None:
        self._dispatch(self._post)

    # ── Routing ──

    def _dispatch(self, route: Route) -> None:
        try:
            caller = self.headers.get(USER_HEADER, "").strip()
            if not caller:
                raise HTTPError(401, "unauthorized", f"Missing {USER_HEADER} header")
            status, data = route(caller)
        except Exception as exc:
            status, kind = error_status(exc)
            if status >= 500:
                logger.exception("http_request_failed", method=self.command, path=self.path)
            else:
                logger.info("http_request_rejected", method=self.command, path=self.path,
                            status=status, error=str(exc))
            body: dict[str, Any] = {"success": False, "error": kind, "message": str(exc)}
            if isinstance(exc, ValidationError) and exc.errors:
                body["errors"] = exc.errors
            _json_response(self, body, status)
            return
        _json_response(self, {"success": True, "data": data}, status)

    def _segments(self) -> tuple[list[str], dict[str, list[str]]]:
        parsed = urlparse(self.path)
        parts = [p for p in parsed.path.split("/") if p]
        if parts[:2] != ["api", "actions"]:
            raise HTTPError(404, "not_found", f"No route for {parsed.path}")
        return parts[2:], parse_qs(parsed.query)

    def _get(self, caller: str) -> tuple[int, Any]:
        parts, qs = self._segments()
        now = self.service.now()

        if not parts:
            actions = self.service.list_actions(ActionFilter.from_query_params(qs))
        elif parts == ["overdue"]:
            actions = self.service.list_overdue()
        elif parts == ["mine"]:
            status = qs.get("status", [None])[0]
            actions = self.service.list_assigned_to(caller, status)
        elif len(parts) == 1:
            return 200, serialize_action(self.service.get(parts[0]), now)
        else:
            raise HTTPError(404, "not_found", f"No route for {self.path}")
        return 200, [serialize_action(a, now) for a in actions]

    def _post(self, caller: str) -> tuple[int, Any]:
        parts, _ = self._segments()
        body = _read_body(self)

        if not parts:
            action = self.service.create(body, created_by=caller)
            return 201, serialize_action(action, self.service.now())
        if len(parts) != 2:
            raise HTTPError(404, "not_found", f"No route for {self.path}")

        action_id, operation = parts
        match operation:
            case "start":
                action = self.service.start(action_id)
            case "complete":
                action = self.service.complete(action_id, body or None)
            case "fail":
                action = self.service.fail(action_id, body.get("error"))
            case "cancel":
                action = self.service.cancel(action_id, body.get("reason"))
            case "logs":
                if "message" not in body:
                    raise ValidationError("message: field required")
                action = self.service.add_log(
                    action_id,
                    body.get("level", "info"),
                    body["message"],
                    body.get("details"),
                )
            case "progress":
                if "progress" not in body:
                    raise ValidationError("progress: field required")
                action = self.service.update_progress(action_id, body["progress"])
            case "approve":
                action = self.service.approve(action_id, caller, body.get("comments"))
            case _:
                raise HTTPError(404, "not_found", f"Unknown operation: {operation}")
        return 200, serialize_action(action, self.service.now())


def _json_response(handler: BaseHTTPRequestHandler, data: Any, status: int = 200) -> None:
    body = json.dumps(data, default=str).encode()
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _read_body(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    raw_length = handler.headers.get("Content-Length", "0")
    try:
        length = int(raw_length)
    except ValueError:
        raise ValidationError(f"Invalid Content-Length: {raw_length!r}") from None
    if length < 0:
        raise ValidationError(f"Invalid Content-Length: {raw_length!r}")
    if length == 0:
        return {}
    try:
        data = json.loads(handler.rfile.read(length))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Malformed JSON body: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def make_server(service: ActionService, host: str = "127.0.0.1", port: int = 8992) -> ActionServer:
    """Bind a server without starting it. Port 0 picks a free port."""
    return ActionServer((host, port), service)


def serve(service: ActionService, host: str = "127.0.0.1", port: int = 8992) -> None:
    """Serve the action API until interrupted."""
    server = make_server(service, host, port)
    bound_host, bound_port = server.server_address[:2]
    logger.info("server_started", url=f"http://{bound_host}:{bound_port}/api/actions")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("server_stopping")
    finally:
        server.server_close()
