"""Structured log fields and their conversion into ``logging`` extras."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, NamedTuple

from .meta import ObjectMarshaler

# Attributes set by ``logging.LogRecord`` itself; ``extra`` may not override them.
_RESERVED = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class Field(NamedTuple):
    """A single named value attached to a log entry."""

    name: str
    value: Any


def string(name: str, value: str) -> Field:
    """Build a string-valued field."""

    return Field(name, str(value))


def obj(name: str, marshaler: ObjectMarshaler) -> Field:
    """Build an object-valued field serialised through ``marshal_log_object``."""

    if not isinstance(marshaler, ObjectMarshaler):
        raise TypeError(f"{type(marshaler).__name__} does not implement marshal_log_object")
    return Field(name, marshaler)


def any_field(name: str, value: Any) -> Field:
    """Build a field from any value; object marshalers inside it are still expanded."""

    return Field(name, value)


def as_extra(fields: Iterable[Field]) -> dict[str, Any]:
    """Convert an ordered field list into a mapping for ``Logger.log(extra=...)``.

    Later fields win when names repeat. Names that would clash with the
    attributes of ``LogRecord`` are prefixed with ``field_``.
    """

    extra: dict[str, Any] = {}
    for name, value in fields:
        if name in _RESERVED:
            name = f"field_{name}"
        extra[name] = value
    return extra


__all__ = ["Field", "any_field", "as_extra", "obj", "string"]
