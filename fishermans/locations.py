"""API handlers for fishing locations."""

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
from fishermans.models import Location, to_location
from fishermans.validation import ValidationError, collect, required, validate, validate_positive_id


def _check(fields: dict[str, str | None]) -> None:
    try:
        collect(fields)
    except ValidationError as exc:
        raise RpcError(StatusCode.INVALID_ARGUMENT, str(exc)) from exc


def _write_failure(exc: Exception, log: logging.Logger, exists: str, message: str) -> RpcError:
    if isinstance(exc, InvalidForeignKeyError):
        return RpcError(StatusCode.INVALID_ARGUMENT, str(exc))
    if isinstance(exc, UniqueViolationError):
        return RpcError(StatusCode.ALREADY_EXISTS, exists)
    log.error(message, exc_info=exc)
    return internal_error()


def _location_checks(request: dict[str, Any]) -> dict[str, str | None]:
    fields = request.get("location") or {}
    return {
        "location": validate(request.get("location"), required),
        "name": validate(fields.get("name"), required),
        "description": validate(fields.get("description"), required),
    }


def _find(ctx: Any, log: logging.Logger, location_id: int) -> Location:
    try:
        location = get_db(ctx).location_q().filter_by_id(int(location_id)).get()
    except Exception as exc:
        log.error("get location failed", exc_info=exc)
        raise internal_error() from exc
    if location is None:
        raise RpcError(StatusCode.NOT_FOUND, "location not found")
    return location


def submit_location(ctx, request):
    """Store a new location and return its id."""
    log = get_logger(ctx)
    repo = get_db(ctx)
    _check(_location_checks(request))
    fields = request["location"]

    response: dict[str, int] = {}

    def store(data):
        response["location_id"] = repo.location_q().insert(data)

    location = Location(
        name=fields["name"],
        description=fields["description"],
        photo=fields.get("photo") or "",
    )
    try:
        repo.transaction(store, location)
    except Exception as exc:
        raise _write_failure(exc, log, "location already exists", "insert location failed") from exc
    return response


def update_location(ctx, request):
    """Overwrite the fields of an existing location."""
    log = get_logger(ctx)
    repo = get_db(ctx)
    fields = request.get("location") or {}
    checks = _location_checks(request)
    checks["id"] = validate(fields.get("id"), required, validate_positive_id)
    _check(checks)

    location_id = int(fields["id"])
    location = _find(ctx, log, location_id)
    location.name = fields["name"]
    location.description = fields["description"]
    location.photo = fields.get("photo") or ""

    try:
        repo.transaction(lambda data: repo.location_q().filter_by_id(location_id).update(data), location)
    except Exception as exc:
        raise _write_failure(exc, log, "client already exists", "update location failed") from exc
    return {}


def delete_location(ctx, request):
    """Remove a location by id."""
    log = get_logger(ctx)
    location_id = request.get("location_id")
    _check({"locationId": validate(location_id, required, validate_positive_id)})

    _find(ctx, log, location_id)
    repo = get_db(ctx)
    try:
        repo.transaction(lambda data: repo.location_q().delete(int(location_id)), request)
    except Exception as exc:
        log.error("delete location failed", exc_info=exc)
        raise internal_error() from exc
    return {}


def get_all_locations(ctx, request):
    """Every stored location."""
    log = get_logger(ctx)
    try:
        locations = get_db(ctx).location_q().get_all()
    except Exception as exc:
        log.error("get locations failed", exc_info=exc)
        raise internal_error() from exc
    return {"locations": [to_location(location) for location in locations]}


def get_location_by_id(ctx, request):
    """A single location by id."""
    log = get_logger(ctx)
    location_id = request.get("location_id")
    _check({"locationId": validate(location_id, required, validate_positive_id)})
    return {"location": to_location(_find(ctx, log, location_id))}