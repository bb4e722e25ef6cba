"""
Health Bar API gateway.

Single public entry point: rate-limits each client, routes /api/<service>
paths to the matching backend and aggregates backend health.

Run locally:  uvicorn healthbar.gateway.main:app --port 8000
         or:  python -m healthbar.gateway.main
"""

from __future__ import annotations

import logging

import requests
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from healthbar.api.envelope import envelope, error_response
from healthbar.api.factory import configure_logging
from healthbar.config import settings
from healthbar.gateway.middleware import AccessLogMiddleware, RateLimitMiddleware
from healthbar.gateway.proxy import Backend, ProxyHandler, RouteTable, default_backends
from healthbar.gateway.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
UNLIMITED_PATHS = ("/health", "/")


def create_app(
    backends: list[Backend] | None = None,
    limiter: RateLimiter | None = None,
    session: requests.Session | None = None,
    cleanup_interval: float | None = None,
) -> FastAPI:
    configure_logging()

    routes = RouteTable(backends if backends is not None else default_backends())
    if limiter is None:
        limiter = RateLimiter(settings.RATE_LIMIT_PER_SECOND, settings.RATE_LIMIT_BURST)
    proxy = ProxyHandler(routes, session=session)
    interval = settings.RATE_LIMIT_CLEANUP_SECONDS if cleanup_interval is None else cleanup_interval

    app = FastAPI(
        title="Health Bar API Gateway",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.limiter = limiter
    app.state.proxy = proxy
    app.state.cleanup_interval = interval

    # Last added is outermost: access log -> rate limit -> CORS -> routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=PROXY_METHODS,
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(RateLimitMiddleware, limiter=limiter, exempt_paths=UNLIMITED_PATHS)
    app.add_middleware(AccessLogMiddleware)

    @app.on_event("startup")
    def start_sweeper():
        limiter.start_cleanup(interval)
        logger.info("Gateway routing %s", ", ".join(b.prefix for b in routes.backends))

    @app.on_event("shutdown")
    def stop_sweeper():
        limiter.stop_cleanup()
        proxy.session.close()

    @app.get("/health")
    def health_check():
        status_code, body = proxy.health_check()
        return JSONResponse(body, status_code=status_code)

    @app.get("/")
    def gateway_info():
        return envelope(
            200,
            "Health Bar API Gateway",
            {
                "version": app.version,
                "services": {b.name: b.prefix for b in routes.backends},
                "rate_limit": {"per_second": limiter.rate, "burst": limiter.burst},
            },
        )

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def proxy_request(request: Request, path: str):
        backend = routes.resolve(request.url.path)
        if backend is None:
            return error_response(404, "Service not found")
        return await proxy.forward(request, backend)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "healthbar.gateway.main:app",
        host="0.0.0.0",
        port=int(settings.PORT or 8000),
        log_level=settings.LOG_LEVEL.lower(),
    )
