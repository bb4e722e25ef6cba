"""
Reverse proxy from the gateway to the backend services.

- Path-prefix routing: longest matching prefix, matched on segment boundaries
- The request body is streamed from the client into the upstream call
- Status, headers and body come back verbatim (no content decoding)
- Transport failures become a 503 envelope; nothing is retried
- Health aggregation probes every backend in parallel
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Iterator

import anyio.from_thread
import requests
from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response, StreamingResponse

from healthbar.api.envelope import error_response
from healthbar.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
# X-User-* are written only by the backend's credential check.
DROPPED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {
    "host",
    "content-length",
    "x-forwarded-for",
    "x-user-id",
    "x-user-email",
    "x-user-role",
}


@dataclass(frozen=True)
class Backend:
    name: str
    prefix: str
    base_url: str

    @property
    def health_url(self) -> str:
        return self.base_url.rstrip("/") + "/health"


def default_backends() -> list[Backend]:
    return [
        Backend("auth", "/api/auth", settings.AUTH_SERVICE_URL),
        Backend("patient", "/api/patients", settings.PATIENT_SERVICE_URL),
        Backend("doctor", "/api/doctors", settings.DOCTOR_SERVICE_URL),
        Backend("timeline", "/api/timeline", settings.TIMELINE_SERVICE_URL),
        Backend("prescription", "/api/prescriptions", settings.PRESCRIPTION_SERVICE_URL),
    ]


class RouteTable:
    def __init__(self, backends: Iterable[Backend]):
        self.backends = sorted(backends, key=lambda b: len(b.prefix), reverse=True)

    def resolve(self, path: str) -> Backend | None:
        for backend in self.backends:
            if path == backend.prefix or path.startswith(backend.prefix + "/"):
                return backend
        return None


def _has_body(request: Request) -> bool:
    if "transfer-encoding" in request.headers:
        return True
    return request.headers.get("content-length", "0") not in ("", "0")


def _client_body(request: Request) -> Iterator[bytes]:
    """Pull the client body chunk by chunk; runs on a worker thread."""
    stream = request.stream()

    async def next_chunk():
        try:
            return await stream.__anext__()
        except StopAsyncIteration:
            return None

    while (chunk := anyio.from_thread.run(next_chunk)) is not None:
        if chunk:
            yield chunk


def _relay(upstream: requests.Response) -> Iterator[bytes]:
    # An upstream failure mid-body propagates and aborts the client
    # connection; the status line has already been sent.
    try:
        yield from upstream.raw.stream(CHUNK_SIZE, decode_content=False)
    finally:
        upstream.close()


class ProxyHandler:
    def __init__(
        self,
        routes: RouteTable,
        session: requests.Session | None = None,
        timeout: tuple[float, float] | None = None,
        probe_timeout: float | None = None,
    ):
        self.routes = routes
        self.session = requests.Session() if session is None else session
        if timeout is None:
            timeout = (settings.UPSTREAM_CONNECT_TIMEOUT, settings.UPSTREAM_READ_TIMEOUT)
        self.timeout = timeout
        self.probe_timeout = settings.HEALTH_PROBE_TIMEOUT if probe_timeout is None else probe_timeout

    # -- forwarding ---------------------------------------------------------

    def upstream_headers(self, request: Request) -> dict[str, str]:
        headers: dict[str, str] = {}
        for name, value in request.headers.items():
            if name in DROPPED_REQUEST_HEADERS:
                continue
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
        headers["x-forwarded-for"] = request.client.host if request.client else "unknown"
        return headers

    def upstream_url(self, request: Request, backend: Backend) -> str:
        raw_path = request.scope.get("raw_path")
        path = raw_path.decode("latin-1") if raw_path else request.url.path
        url = backend.base_url.rstrip("/") + path
        query = request.scope.get("query_string", b"").decode("latin-1")
        return f"{url}?{query}" if query else url

    async def forward(self, request: Request, backend: Backend) -> Response:
        url = self.upstream_url(request, backend)
        body = _client_body(request) if _has_body(request) else None

        try:
            upstream = await run_in_threadpool(
                self.session.request,
                request.method,
                url,
                headers=self.upstream_headers(request),
                data=body,
                stream=True,
                allow_redirects=False,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Error forwarding %s %s to %s: %s", request.method, url, backend.name, exc)
            return error_response(503, "Service unavailable")

        response = StreamingResponse(_relay(upstream), status_code=upstream.status_code)
        response.raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in upstream.raw.headers.iteritems()
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]
        return response

    # -- health -------------------------------------------------------------

    def probe(self, backend: Backend) -> bool:
        try:
            response = self.session.get(backend.health_url, timeout=self.probe_timeout)
        except requests.RequestException as exc:
            logger.warning("Health probe for %s failed: %s", backend.name, exc)
            return False
        try:
            return response.status_code < 500
        finally:
            response.close()

    def health_check(self) -> tuple[int, dict]:
        backends = self.routes.backends
        with ThreadPoolExecutor(max_workers=max(1, len(backends))) as pool:
            results = list(pool.map(self.probe, backends))

        services = {b.name: ("healthy" if ok else "unhealthy") for b, ok in zip(backends, results)}
        all_healthy = all(results)
        return (200 if all_healthy else 503), {"success": all_healthy, "services": services}
