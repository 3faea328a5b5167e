"""API handlers for fishing applications."""

from __future__ import annotations

import logging
from typing import Any

from fishermans.context import get_db, get_logger
from fishermans.errors import (
    InvalidForeignKeyError,
    RpcError,
    StatusCode,
    UniqueViolationError,
    internal_error,
)
from fishermans.models import Application, to_application
from fishermans.validation import ValidationError, collect, required, validate, validate_positive_id


def _check(fields: dict[str, str | None]) -> None:
    try:
        collect(fields)
    except ValidationError as exc:
        raise RpcError(StatusCode.INVALID_ARGUMENT, str(exc)) from exc


def _write_failure(exc: Exception, log: logging.Logger, message: str) -> RpcError:
    if isinstance(exc, InvalidForeignKeyError):
        return RpcError(StatusCode.INVALID_ARGUMENT, str(exc))
    if isinstance(exc, UniqueViolationError):
        return RpcError(StatusCode.ALREADY_EXISTS, "application already exists")
    log.error(message, exc_info=exc)
    return internal_error()


def _find(ctx: Any, log: logging.Logger, application_id: int) -> Application:
    try:
        app = get_db(ctx).application_q().filter_by_id(int(application_id)).get()
    except Exception as exc:
        log.error("query application %d", application_id, exc_info=exc)
        raise internal_error() from exc
    if app is None:
        raise RpcError(StatusCode.NOT_FOUND, "application not found")
    return app


def _application_checks(request: dict[str, Any]) -> dict[str, str | None]:
    application = request.get("application") or {}
    return {
        "application": validate(request.get("application"), required),
        "client_id": validate(application.get("client_id"), required, validate_positive_id),
        "fishing_date": validate(application.get("fishing_date"), required),
        "location_id": validate(application.get("location_id"), required, validate_positive_id),
        "status_id": validate(application.get("status_id"), required, validate_positive_id),
    }


def submit_application(ctx, request):
    """Store a new application and return its id."""
    _check(_application_checks(request))
    fields = request["application"]

    repo = get_db(ctx)
    log = get_logger(ctx)
    app = Application(
        fishing_date=fields["fishing_date"],
        client_id=fields["client_id"],
        location_id=fields["location_id"],
        status_id=fields["status_id"],
    )

    response: dict[str, int] = {}

    def store(data):
        response["application_id"] = repo.application_q().insert(data)

    try:
        repo.transaction(store, app)
    except Exception as exc:
        raise _write_failure(exc, log, "insert application failed") from exc
    return response


def update_application(ctx, request):
    """Overwrite the mutable fields of an existing application."""
    application = request.get("application") or {}
    checks = _application_checks(request)
    checks["id"] = validate(application.get("id"), required, validate_positive_id)
    _check(checks)

    repo = get_db(ctx)
    log = get_logger(ctx)
    app_id = application["id"]
    app = _find(ctx, log, app_id)

    app.fishing_date = application["fishing_date"]
    app.client_id = application["client_id"]
    app.location_id = application["location_id"]
    app.status_id = application["status_id"]

    try:
        repo.transaction(lambda data: repo.application_q().filter_by_id(int(app_id)).update(data), app)
    except Exception as exc:
        raise _write_failure(exc, log, "update application failed") from exc
    return {}


def delete_application(ctx, request):
    """Remove an application by id."""
    app_id = request.get("application_id")
    _check({"applicationId": validate(app_id, required, validate_positive_id)})

    repo = get_db(ctx)
    log = get_logger(ctx)
    _find(ctx, log, app_id)

    try:
        repo.transaction(lambda data: repo.application_q().delete(data), app_id)
    except Exception as exc:
        log.error("delete application failed", exc_info=exc)
        raise internal_error() from exc
    return {}


def get_all_applications(ctx, request):
    """Every stored application."""
    log = get_logger(ctx)
    try:
        apps = get_db(ctx).application_q().get_all()
    except Exception as exc:
        log.error("get all applications failed", exc_info=exc)
        raise internal_error() from exc
    return {"applications": [to_application(app) for app in apps]}


def get_application_by_id(ctx, request):
    """A single application by id."""
    app_id = request.get("application_id")
    _check({"applicationId": validate(app_id, required, validate_positive_id)})
    log = get_logger(ctx)
    return {"application": to_application(_find(ctx, log, app_id))}