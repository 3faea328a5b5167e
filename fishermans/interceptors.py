"""Wrappers run around every API handler."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from fishermans.errors import RpcError, StatusCode, internal_error

Handler = Callable[[Any, Any], Any]
Interceptor = Callable[[Any, Any, str, Handler], Any]


def context_extender_interceptor(*extenders: Callable[[Any], Any]) -> Interceptor:
    """Pass the context through every extender before calling the handler."""

    def interceptor(ctx, request, method, handler):
        ctx = functools.reduce(lambda acc, extend: extend(acc), extenders, ctx)
        return handler(ctx, request)

    return interceptor


def _status_of(exc: BaseException | None) -> StatusCode:
    if exc is None:
        return StatusCode.OK
    if isinstance(exc, RpcError):
        return exc.code
    return StatusCode.UNKNOWN


def logger_interceptor(logger: logging.Logger) -> Interceptor:
    """Log the start and end of every request with its duration and status."""

    def interceptor(ctx, request, method, handler):
        start = time.monotonic()
        logger.info("request started: method=%s", method)
        failure: BaseException | None = None
        try:
            return handler(ctx, request)
        except Exception as exc:
            failure = exc
            raise
        finally:
            logger.info(
                "request finished: method=%s duration=%.6fs status=%s",
                method,
                time.monotonic() - start,
                _status_of(failure).label,
            )

    return interceptor


def recovery_interceptor(logger: logging.Logger) -> Interceptor:
    """Turn unexpected handler failures into an internal error."""

    def interceptor(ctx, request, method, handler):
        try:
            return handler(ctx, request)
        except RpcError:
            raise
        except Exception as exc:
            logger.error("handler panicked: method=%s", method, exc_info=exc)
            raise internal_error() from exc

    return interceptor


def _bind(interceptor: Interceptor, method: str, inner: Handler) -> Handler:
    return lambda ctx, request: interceptor(ctx, request, method, inner)


def chain_interceptors(interceptors: Iterable[Interceptor], handler: Handler) -> Callable[[Any, Any, str], Any]:
    """Combine interceptors around a handler; the first one runs outermost."""
    ordered = list(interceptors)

    def call(ctx, request, method):
        chained = functools.reduce(
            lambda inner, interceptor: _bind(interceptor, method, inner),
            reversed(ordered),
            handler,
        )
        return chained(ctx, request)

    return call