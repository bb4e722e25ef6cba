"""ASGI middleware for the gateway: per-client rate limiting and access logging."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from healthbar.api.envelope import error_response
from healthbar.gateway.ratelimit import RateLimiter

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("healthbar.gateway.access")


def client_key(scope: Scope) -> str:
    """Left-most X-Forwarded-For entry, then X-Real-IP, then the peer address."""
    headers = Headers(raw=scope.get("headers", []))
    forwarded = headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    client = scope.get("client")
    return client[0] if client else "unknown"


class RateLimitMiddleware:
    def __init__(self, app: ASGIApp, limiter: RateLimiter, exempt_paths: Iterable[str] = ()):
        self.app = app
        self.limiter = limiter
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return

        key = client_key(scope)
        if not self.limiter.allow(key):
            logger.info("Rate limit exceeded for %s on %s", key, scope["path"])
            response = error_response(429, "Rate limit exceeded. Too many requests.")
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)


class AccessLogMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            access_logger.info(
                "%s %s %s %d %.1fms",
                scope["method"],
                scope["path"],
                client_key(scope),
                status,
                elapsed_ms,
            )
