"""Field validation for API requests."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sized
from typing import Any

Rule = Callable[[Any], None]


class ValidationError(ValueError):
    """One or more request fields failed validation."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.errors:
            return ""
        return "; ".join(f"{key}: {message}" for key, message in sorted(self.errors.items())) + "."

    def __str__(self) -> str:
        return self._render()


def required(value: Any) -> None:
    """Reject a missing or empty value."""
    blank = (
        value is None
        or value is False
        or (isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0)
        or (isinstance(value, Sized) and len(value) == 0)
    )
    if blank:
        raise ValueError("cannot be blank")


def validate_positive_id(value: Any) -> None:
    """Reject anything that is not a positive integer id."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("value is not int64")
    if value == 0:
        raise ValueError("value is must be more than 0")


def validate(value: Any, *rules: Rule) -> str | None:
    """Apply the rules in order; return the first failure message, or None."""
    for rule in rules:
        try:
            rule(value)
        except ValueError as exc:
            return str(exc)
    return None


def collect(results: Mapping[str, str | None]) -> None:
    """Raise ValidationError for every field whose result is a failure message."""
    errors = {key: message for key, message in results.items() if message is not None}
    if errors:
        raise ValidationError(errors)