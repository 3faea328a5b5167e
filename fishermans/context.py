"""Request context carrying the logger and the database handle."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

Context = Mapping[Any, Any]

_LOGGER_KEY = object()
_DB_KEY = object()


def logger_provider(logger: logging.Logger) -> Callable[[Context], Context]:
    """A context extender that attaches the logger."""

    def extend(ctx: Context) -> Context:
        return {**ctx, _LOGGER_KEY: logger}

    return extend


def db_provider(db: Any) -> Callable[[Context], Context]:
    """A context extender that attaches the master query."""

    def extend(ctx: Context) -> Context:
        return {**ctx, _DB_KEY: db}

    return extend


def get_logger(ctx: Context) -> logging.Logger:
    """The logger attached to the context."""
    return ctx[_LOGGER_KEY]


def get_db(ctx: Context) -> Any:
    """A fresh master query from the one attached to the context."""
    return ctx[_DB_KEY].new()