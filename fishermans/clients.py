"""API handlers for clients."""

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
from fishermans.models import Client, to_client
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
        return RpcError(StatusCode.ALREADY_EXISTS, "client already exists")
    log.error(message, exc_info=exc)
    return internal_error()


def _client_checks(fields: dict[str, Any]) -> dict[str, str | None]:
    return {
        "name": validate(fields.get("name"), required),
        "surname": validate(fields.get("surname"), required),
        "contact": validate(fields.get("contact"), required),
        "photo": validate(fields.get("photo"), required),
    }


def _find(ctx: Any, log: logging.Logger, client_id: int, failure: str) -> Client:
    try:
        client = get_db(ctx).client_q().filter_by_id(int(client_id)).get()
    except Exception as exc:
        log.error(failure, exc_info=exc)
        raise internal_error() from exc
    if client is None:
        raise RpcError(StatusCode.NOT_FOUND, "client not found")
    return client


def submit_client(ctx, request):
    """Store a new client and return its id."""
    log = get_logger(ctx)
    repo = get_db(ctx)
    fields = request.get("client") or {}
    _check(_client_checks(fields))

    response: dict[str, int] = {}

    def store(data):
        response["client_id"] = repo.client_q().insert(
            Client(
                first_name=data["name"],
                last_name=data["surname"],
                contact=data["contact"],
                photo=data["photo"],
            )
        )

    try:
        repo.transaction(store, fields)
    except Exception as exc:
        raise _write_failure(exc, log, "insert client failed") from exc
    return response


def update_client(ctx, request):
    """Overwrite the fields of an existing client."""
    log = get_logger(ctx)
    repo = get_db(ctx)
    fields = request.get("client") or {}
    checks = {"id": validate(fields.get("id"), required, validate_positive_id)}
    checks.update(_client_checks(fields))
    _check(checks)

    client_id = int(fields["id"])
    client = _find(ctx, log, client_id, "failed to get client to update client")
    client.first_name = fields["name"]
    client.last_name = fields["surname"]
    client.contact = fields["contact"]
    client.photo = fields["photo"]

    try:
        repo.transaction(lambda data: repo.client_q().filter_by_id(client_id).update(data), client)
    except Exception as exc:
        raise _write_failure(exc, log, "update client failed") from exc
    return {}


def delete_client(ctx, request):
    """Remove a client by id."""
    log = get_logger(ctx)
    repo = get_db(ctx)
    client_id = request.get("client_id")
    _check({"clientId": validate(client_id, required, validate_positive_id)})

    _find(ctx, log, client_id, "failed to get client to delete client")
    try:
        repo.transaction(lambda data: repo.client_q().delete(int(data)), client_id)
    except Exception as exc:
        log.error("failed to delete client", exc_info=exc)
        raise internal_error() from exc
    return {}


def get_all_clients(ctx, request):
    """Every stored client."""
    log = get_logger(ctx)
    try:
        clients = get_db(ctx).client_q().get_all()
    except Exception as exc:
        log.error("failed to get clients", exc_info=exc)
        raise internal_error() from exc
    return {"clients": [to_client(client) for client in clients]}


def get_client_by_id(ctx, request):
    """A single client by id."""
    log = get_logger(ctx)
    client_id = request.get("client_id")
    _check({"clientId": validate(client_id, required, validate_positive_id)})
    return {"client": to_client(_find(ctx, log, client_id, "failed to get client to get client"))}