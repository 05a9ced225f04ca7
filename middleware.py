"""
Per-request context for both backends.

`RequestContextMiddleware` wraps the whole application: it tags the request
with an id (the caller's ``X-Request-ID`` or a fresh one), writes one access
line when the response is done, and turns any exception that escapes the
routes into a 500 error body. Because it sits outside the exception handlers,
every response, including that 500, carries the same id in its body and header.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("hunter.access")

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def error_body(error: str, message: str, **extra: Any) -> Dict[str, Any]:
    """The JSON shape every failed request answers with."""
    return {"error": error, "message": message, **extra, "request_id": request_id_var.get()}


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestContextMiddleware:

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = Headers(scope=scope).get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        scope.setdefault("state", {})["request_id"] = rid

        started = time.perf_counter()
        status_code = 500
        response_started = False

        async def send_with_id(message: Message) -> None:
            nonlocal status_code, response_started
            if message["type"] == "http.response.start":
                response_started = True
                status_code = message["status"]
                message.setdefault("headers", [])
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = rid
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        except Exception:
            logger.exception("Unexpected error on %s %s", scope["method"], scope["path"])
            if response_started:
                raise
            response = JSONResponse(
                status_code=500,
                content=error_body("internal_server_error", "An unexpected error occurred."),
            )
            await response(scope, receive, send_with_id)
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            client = scope.get("client")
            access_logger.log(
                _level_for(status_code),
                "%s %s %d %.1fms [%s] from %s",
                scope["method"],
                scope["path"],
                status_code,
                duration_ms,
                rid,
                client[0] if client else "unknown",
            )
            request_id_var.reset(token)
