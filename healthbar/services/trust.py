"""
Trust propagation from the bearer credential to the handler.

Two pieces run on every backend service:

- ``TrustHeadersMiddleware`` drops client-supplied ``X-User-*`` headers from
  every request before routing, so nothing downstream can see a spoofed value.
- ``require_claims`` verifies the ``Authorization: Bearer`` credential and
  produces the per-request ``Claims`` value that handlers and the guard
  consume. It also writes the verified claims back into the request as
  ``X-User-ID`` / ``X-User-Email`` / ``X-User-Role``; it is the only writer
  of those headers.

Protected routers declare ``require_claims`` as a router-level dependency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from healthbar.models.records import ROLE_DOCTOR, ROLE_PATIENT
from healthbar.services.credentials import InvalidCredential, verify_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
TRUSTED_HEADERS = (b"x-user-id", b"x-user-email", b"x-user-role")


@dataclass(frozen=True)
class Claims:
    user_id: str
    email: str
    role: str

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    @property
    def is_doctor(self) -> bool:
        return self.role == ROLE_DOCTOR


def strip_trusted_headers(raw_headers) -> list[tuple[bytes, bytes]]:
    return [(name, value) for name, value in raw_headers if name.lower() not in TRUSTED_HEADERS]


class TrustHeadersMiddleware:
    """ASGI middleware removing reserved identity headers from every request."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] in ("http", "websocket"):
            scope = dict(scope)
            scope["headers"] = strip_trusted_headers(scope.get("headers", []))
        await self.app(scope, receive, send)


def require_claims(request: Request) -> Claims:
    """FastAPI dependency: verified claims for the caller, or 401."""
    authorization = request.headers.get("authorization", "")
    if not authorization.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Authorization header required")

    try:
        payload = verify_token(authorization[len(BEARER_PREFIX):].strip())
    except InvalidCredential as exc:
        logger.info("Rejected bearer credential: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token")

    claims = Claims(user_id=payload["user_id"], email=payload["email"], role=payload["role"])
    request.state.claims = claims

    # In place: request.headers caches this same list object.
    raw = request.scope["headers"]
    raw[:] = strip_trusted_headers(raw) + [
        (b"x-user-id", claims.user_id.encode()),
        (b"x-user-email", claims.email.encode()),
        (b"x-user-role", claims.role.encode()),
    ]
    return claims


def require_role(role: str):
    """Dependency factory: the caller's verified role must equal ``role``."""

    def dependency(claims: Claims = Depends(require_claims)) -> Claims:
        if claims.role != role:
            raise HTTPException(status_code=403, detail=f"Only {role}s can access this endpoint")
        return claims

    return dependency


require_patient = require_role(ROLE_PATIENT)
require_doctor = require_role(ROLE_DOCTOR)
