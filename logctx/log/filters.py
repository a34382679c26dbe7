"""Logging filter that enriches records with the ambient metadata."""
from __future__ import annotations

import logging

from ..context import CONTEXT_FIELD, get_meta
from ..meta import Meta


def render_text(meta: Meta | None) -> str:
    if not meta:
        return ""
    return " ".join(f"{k}={v}" for k, v in meta.items()) + " "


class ContextFilter(logging.Filter):
    """Attach the metadata of the current context to log records.

    Records that already carry a ``context`` field (passed explicitly through
    ``extra=``) keep it. A record is only enriched once, so the filter can sit
    on both a queue handler and the handlers behind its listener.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, "context_text"):
            return True

        meta = getattr(record, CONTEXT_FIELD, None)
        if not isinstance(meta, Meta):
            meta = get_meta()
            if meta is not None and not hasattr(record, CONTEXT_FIELD):
                setattr(record, CONTEXT_FIELD, meta)
        record.context_text = render_text(meta)
        return True


__all__ = ["ContextFilter", "render_text"]
