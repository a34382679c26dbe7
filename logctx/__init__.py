"""Decorate structured log entries with metadata attached to the execution context."""

from .context import (  # noqa: F401
    CONTEXT_FIELD,
    bind_meta,
    decorate,
    extra,
    get_meta,
    run_with_meta,
    with_meta,
)
from .fields import Field, any_field, as_extra, obj, string  # noqa: F401
from .meta import Meta, ObjectEncoder, ObjectMarshaler  # noqa: F401

__all__ = [
    "CONTEXT_FIELD",
    "Field",
    "Meta",
    "ObjectEncoder",
    "ObjectMarshaler",
    "any_field",
    "as_extra",
    "bind_meta",
    "decorate",
    "extra",
    "get_meta",
    "obj",
    "run_with_meta",
    "string",
    "with_meta",
]
