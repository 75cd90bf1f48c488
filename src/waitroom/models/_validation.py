"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods and record parsers in sibling model modules to enforce runtime
type constraints, null-byte safety and timestamp normalization.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from typing import Any


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-blank ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value.strip():
        raise ValueError(f"{name} must not be empty")


def validate_mapping(value: Any, name: str) -> None:
    """Raise ``TypeError`` if *value* is not a ``Mapping``."""
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be a Mapping, got {type(value).__name__}")


def normalize_optional_text(value: Any, name: str) -> str | None:
    """Trim *value*, mapping ``None`` and blank strings to ``None``."""
    if value is None:
        return None
    validate_str_no_null(value, name)
    stripped: str = value.strip()
    return stripped or None


def parse_timestamp(value: Any, name: str) -> datetime.datetime:
    """Coerce *value* into a timezone-aware ``datetime``.

    Accepts ``datetime`` instances (naive values are taken as UTC),
    ISO-8601 strings (a trailing ``Z`` is accepted) and Unix timestamps.

    Raises:
        TypeError: If *value* has an unsupported type.
        ValueError: If a string cannot be parsed.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"{name} is not an ISO-8601 timestamp: {value!r}") from e
    elif isinstance(value, int | float) and not isinstance(value, bool):
        parsed = datetime.datetime.fromtimestamp(value, tz=datetime.UTC)
    else:
        raise TypeError(f"{name} must be a datetime, str or number, got {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed
