"""ASGI middleware that binds per-request metadata for every log line."""
from __future__ import annotations

from uuid import uuid4

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .config import get_settings
from .context import bind_meta


class RequestMetaMiddleware:
    """Bind ``request_id``, ``method`` and ``path`` while a request is handled.

    The request id is read from the configured header (``x-request-id`` by
    default) and generated when missing. Everything logged by the
    application during the request, including from tasks it spawns, carries
    these keys in its ``context`` field.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        header_name: str | None = None,
        echo_header: bool = True,
    ) -> None:
        self.app = app
        self.header_name = (header_name or get_settings().request_id_header).lower()
        self.echo_header = echo_header

    def _request_id(self, scope: Scope) -> str:
        headers = dict(scope.get("headers", []))
        raw = headers.get(self.header_name.encode("latin-1"), b"").decode("latin-1").strip()
        return raw or uuid4().hex

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        request_id = self._request_id(scope)
        meta = {"request_id": request_id, "path": scope.get("path", "")}
        if scope["type"] == "http":
            meta["method"] = scope.get("method", "")

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.setdefault(self.header_name, request_id)
            await send(message)

        with bind_meta(meta):
            await self.app(scope, receive, send_with_request_id if self.echo_header else send)


__all__ = ["RequestMetaMiddleware"]
