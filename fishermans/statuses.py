"""API handlers for application statuses."""

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
from fishermans.models import ApplicationStatus, to_application_status
from fishermans.validation import ValidationError, collect, required, validate, validate_positive_id


def _check(fields: dict[str, str | None]) -> None:
    try:
        collect(fields)
    except ValidationError as exc:
        raise RpcError(StatusCode.INVALID_ARGUMENT, str(exc)) from exc


def _validate_status(name: Any) -> None:
    _check({"name": validate(name, required)})


def _write_failure(exc: Exception, log: logging.Logger, message: str) -> RpcError:
    if isinstance(exc, InvalidForeignKeyError):
        return RpcError(StatusCode.INVALID_ARGUMENT, str(exc))
    if isinstance(exc, UniqueViolationError):
        return RpcError(StatusCode.ALREADY_EXISTS, "application_status already exists")
    log.error(message, exc_info=exc)
    return internal_error()


def _find(query: Any, log: logging.Logger) -> ApplicationStatus:
    try:
        status = query.get()
    except Exception as exc:
        log.error("get application_status failed", exc_info=exc)
        raise internal_error() from exc
    if status is None:
        raise RpcError(StatusCode.NOT_FOUND, "application_status not found")
    return status


def submit_application_status(ctx, request):
    """Store a new status and return its id."""
    log = get_logger(ctx)
    db = get_db(ctx).application_status_q()
    name = request.get("name")
    _validate_status(name)

    try:
        status_id = db.insert(ApplicationStatus(name=name))
    except Exception as exc:
        raise _write_failure(exc, log, "insert application_status failed") from exc
    return {"id": status_id}


def update_application_status(ctx, request):
    """Rename an existing status."""
    fields = request.get("application_status") or {}
    log = get_logger(ctx)
    db = get_db(ctx).application_status_q().filter_by_id(int(fields.get("id") or 0))
    _validate_status(fields.get("name"))

    status = _find(db, log)
    status.name = fields["name"]

    try:
        db.update(status)
    except Exception as exc:
        raise _write_failure(exc, log, "update application_status failed") from exc
    return {}


def delete_application_status(ctx, request):
    """Remove a status by id."""
    status_id = request.get("id")
    _check({"id": validate(status_id, required, validate_positive_id)})
    log = get_logger(ctx)
    db = get_db(ctx).application_status_q().filter_by_id(int(status_id))

    _find(db, log)
    try:
        db.delete(int(status_id))
    except Exception as exc:
        log.error("delete application_status failed", exc_info=exc)
        raise internal_error() from exc
    return {}


def get_application_status(ctx, request):
    """A single status by id."""
    status_id = request.get("id")
    _check({"id": validate(status_id, required, validate_positive_id)})
    log = get_logger(ctx)
    db = get_db(ctx).application_status_q().filter_by_id(int(status_id))
    return {"application_status": to_application_status(_find(db, log))}


def get_all_application_statuses(ctx, request):
    """Every stored status."""
    log = get_logger(ctx)
    try:
        statuses = get_db(ctx).application_status_q().get_all()
    except Exception as exc:
        log.error("get application_status failed", exc_info=exc)
        raise internal_error() from exc
    return {"application_statuses": [to_application_status(status) for status in statuses]}