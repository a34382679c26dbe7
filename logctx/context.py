"""Attach metadata to an execution context and fold it into log fields.

Metadata lives in a single private :class:`contextvars.ContextVar`. Contexts
form a tree: every :func:`contextvars.copy_context` (and every asyncio task,
which copies the context it is created in) sees the metadata of the context
it was derived from.

Decorate a call tree with some data::

    def do_business_logic(ctx, user_id):
        ctx = logctx.with_meta(ctx, {"user_id": user_id})
        ctx.run(get_resource, ctx)

    def get_resource(ctx):
        ctx = logctx.with_meta(ctx, {"something_else": "xyz"})
        ...

and when logging, pass the accumulated metadata along::

    logger.info("i am doing the thing", extra=logctx.extra(ctx, string("event", "x")))

which, with the JSON formatter, produces
``{"level": "info", "msg": "i am doing the thing", "event": "x",
"context": {"user_id": "...", "something_else": "xyz"}}``.
"""
from __future__ import annotations

import contextvars
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Optional, TypeVar

from .fields import Field, as_extra
from .meta import Meta

T = TypeVar("T")

CONTEXT_FIELD = "context"

_META_VAR: contextvars.ContextVar[Meta] = contextvars.ContextVar("logctx_meta")


def _resolve(ctx: Optional[contextvars.Context]) -> contextvars.Context:
    return ctx if ctx is not None else contextvars.copy_context()


def get_meta(ctx: Optional[contextvars.Context] = None) -> Meta | None:
    """Return the metadata visible from ``ctx``, or ``None`` if none was attached."""

    value = _resolve(ctx).get(_META_VAR)
    if isinstance(value, Meta):
        return value
    return None


def with_meta(
    ctx: Optional[contextvars.Context],
    data: Optional[Mapping[str, str]] = None,
    /,
    **values: str,
) -> contextvars.Context:
    """Derive a context whose metadata includes ``data``.

    Existing keys are kept, keys in ``data`` overwrite them. Metadata is
    never stacked. The input context is left untouched; the returned context
    is a copy. Attaching nothing leaves the metadata exactly as it was.
    """

    incoming = Meta(data, **values)
    child = _resolve(ctx).copy()
    if not incoming:
        return child

    existing = get_meta(child)
    merged = existing.merged(incoming) if existing is not None else incoming
    child.run(_META_VAR.set, merged)
    return child


def run_with_meta(
    data: Mapping[str, str], fn: Callable[..., T], /, *args: Any, **kwargs: Any
) -> T:
    """Call ``fn`` inside a copy of the current context carrying ``data``."""

    return with_meta(None, data).run(fn, *args, **kwargs)


@contextmanager
def bind_meta(data: Optional[Mapping[str, str]] = None, /, **values: str) -> Iterator[Meta]:
    """Merge metadata into the current context for the duration of the block."""

    incoming = Meta(data, **values)
    existing = get_meta()
    merged = existing.merged(incoming) if existing is not None else incoming
    token = _META_VAR.set(merged)
    try:
        yield merged
    finally:
        _META_VAR.reset(token)


def decorate(ctx: Optional[contextvars.Context], *fields: Field) -> list[Field]:
    """Append a ``context`` field carrying the metadata of ``ctx``.

    If ``ctx`` has no metadata the fields come back unchanged.
    """

    meta = get_meta(ctx)
    if meta is None:
        return list(fields)
    return [*fields, Field(CONTEXT_FIELD, meta)]


def extra(ctx: Optional[contextvars.Context] = None, *fields: Field) -> dict[str, Any]:
    """Shortcut for ``as_extra(decorate(ctx, *fields))``."""

    return as_extra(decorate(ctx, *fields))


__all__ = [
    "CONTEXT_FIELD",
    "bind_meta",
    "decorate",
    "extra",
    "get_meta",
    "run_with_meta",
    "with_meta",
]
