"""Error types shared by the storage layer and the API handlers."""

from __future__ import annotations

import enum

from sqlalchemy.exc import DBAPIError

_PG_UNIQUE_VIOLATION = "23505"
_PG_FOREIGN_KEY_VIOLATION = "23503"


class StatusCode(enum.IntEnum):
    """RPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @property
    def label(self) -> str:
        """The code's display name, e.g. ``InvalidArgument``."""
        if self is StatusCode.OK:
            return "OK"
        return "".join(part.capitalize() for part in self.name.split("_"))


class RpcError(Exception):
    """An error carrying an RPC status code and a description."""

    def __init__(self, code: StatusCode, message: str) -> None:
        super().__init__(code, message)
        self.code = StatusCode(code)
        self.message = message

    def __str__(self) -> str:
        return f"rpc error: code = {self.code.label} desc = {self.message}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RpcError):
            return NotImplemented
        return (self.code, self.message) == (other.code, other.message)

    def __hash__(self) -> int:
        return hash((self.code, self.message))


class _ConstraintError(Exception):
    description = ""

    def __init__(self, constraint: str = "") -> None:
        self.constraint = constraint
        text = f"{constraint}: {self.description}" if constraint else self.description
        super().__init__(text)


class InvalidForeignKeyError(_ConstraintError):
    """A row refers to a row that does not exist."""

    description = "invalid foreign key"


class UniqueViolationError(_ConstraintError):
    """A row would duplicate a unique value."""

    description = "unique constraint violation"


class ServiceStopped(Exception):
    """The service was stopped on request."""

    def __init__(self, message: str = "service stopped") -> None:
        super().__init__(message)


def internal_error() -> RpcError:
    """The error reported to callers when something unexpected went wrong."""
    return RpcError(StatusCode.INTERNAL, "internal server error")


def _classify(orig: BaseException | None) -> tuple[str | None, str]:
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        diag = getattr(orig, "diag", None)
        return str(code), getattr(diag, "constraint_name", None) or ""
    message = str(orig)
    if message.startswith("UNIQUE constraint failed"):
        return _PG_UNIQUE_VIOLATION, message.partition(":")[2].strip()
    if "FOREIGN KEY constraint failed" in message:
        return _PG_FOREIGN_KEY_VIOLATION, ""
    return None, ""


def parse_db_error(err: BaseException) -> BaseException:
    """Map a database error to the error the API layer understands.

    Unique and foreign-key violations become :class:`UniqueViolationError`
    and :class:`InvalidForeignKeyError`; other database errors are returned
    unchanged; anything that is not a database error becomes an internal
    :class:`RpcError`.
    """
    if not isinstance(err, DBAPIError):
        return RpcError(StatusCode.INTERNAL, f"DB error: {err}")
    code, constraint = _classify(err.orig)
    if code == _PG_UNIQUE_VIOLATION:
        return UniqueViolationError(constraint)
    if code == _PG_FOREIGN_KEY_VIOLATION:
        return InvalidForeignKeyError(constraint)
    return err