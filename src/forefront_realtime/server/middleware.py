"""Request middleware (request ids, access logging)."""

import logging
import secrets
import time

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def get_client_ip(scope: Scope) -> str:
    """Best-effort client address, honouring X-Forwarded-For."""
    for name, value in scope.get("headers", []):
        if name == b"x-forwarded-for":
            return value.decode("latin-1").split(",")[0].strip()

    client = scope.get("client")
    return client[0] if client else "unknown"


class RequestContextMiddleware:
    """Tag each request with an id and log it when the response starts.

    Written as plain ASGI so long-lived event streams pass through untouched.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = secrets.token_hex(8)
        scope.setdefault("state", {})["request_id"] = request_id
        started = time.perf_counter()

        async def send_with_context(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.append(REQUEST_ID_HEADER, request_id)
                elapsed = (time.perf_counter() - started) * 1000
                logger.info(
                    f"{scope['method']} {scope['path']} -> {message['status']} "
                    f"({elapsed:.1f}ms, {get_client_ip(scope)}, {request_id})"
                )
            await send(message)

        await self.app(scope, receive, send_with_context)
