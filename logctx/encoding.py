"""JSON rendering of stdlib log records through structlog's processor chain."""
from __future__ import annotations

from typing import Any

from structlog.processors import EventRenamer, JSONRenderer, TimeStamper, format_exc_info
from structlog.stdlib import ProcessorFormatter, add_log_level, add_logger_name
from structlog.typing import EventDict, WrappedLogger

from .fields import _RESERVED
from .meta import ObjectMarshaler

# Keys owned by the rendered entry; record fields with these names get prefixed.
ENTRY_KEYS = frozenset({"level", "logger", "ts", "msg", "event", "exception"})

# Attributes the logging setup adds to every record for the text formats.
_INTERNAL = frozenset({"context_text"})


class DictEncoder:
    """Collect the members written by an :class:`ObjectMarshaler` into a dict."""

    def __init__(self) -> None:
        self.fields: dict[str, Any] = {}

    def add_string(self, key: str, value: str) -> None:
        self.fields[key] = value


def encode_value(value: Any) -> Any:
    """Replace object marshalers, including nested ones, with plain dicts."""

    if isinstance(value, ObjectMarshaler):
        encoder = DictEncoder()
        value.marshal_log_object(encoder)
        return encoder.fields
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    return value


def add_record_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Copy the fields passed through ``extra=`` from the log record.

    A field whose name the entry already uses for itself is kept under a
    ``field_`` prefix.
    """

    record = event_dict.get("_record")
    if record is None:
        return event_dict
    for key, value in record.__dict__.items():
        if key in _RESERVED or key in _INTERNAL or key.startswith("_"):
            continue
        if key in ENTRY_KEYS or key in event_dict:
            key = f"field_{key}"
        event_dict[key] = value
    return event_dict


def marshal_objects(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    return {key: encode_value(value) for key, value in event_dict.items()}


class JsonFormatter(ProcessorFormatter):
    """Render each stdlib record as one JSON object per line.

    Entries carry ``level``, ``ts`` (ISO 8601, UTC), ``logger``, ``msg``,
    every field passed through ``extra=`` and, for failures, ``exception``.
    """

    def __init__(self) -> None:
        super().__init__(
            foreign_pre_chain=[
                add_log_level,
                add_logger_name,
                TimeStamper(fmt="iso", utc=True, key="ts"),
                add_record_fields,
            ],
            processors=[
                ProcessorFormatter.remove_processors_meta,
                marshal_objects,
                format_exc_info,
                EventRenamer("msg"),
                JSONRenderer(default=str, ensure_ascii=False),
            ],
        )


__all__ = [
    "DictEncoder",
    "ENTRY_KEYS",
    "JsonFormatter",
    "add_record_fields",
    "encode_value",
    "marshal_objects",
]
