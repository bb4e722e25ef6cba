"""
Bearer credentials and password digests.

A credential is an HS256 JWT carrying the claim set ``user_id``, ``email``
and ``role``. The role is copied from the user row when the token is issued
and is never re-read afterwards.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from healthbar.config import settings
from healthbar.models.records import ROLES

JWT_ALGO = "HS256"
REQUIRED_CLAIMS = ("user_id", "email", "role", "exp")
# bcrypt hashes at most 72 bytes of input
MAX_PASSWORD_BYTES = 72


class InvalidCredential(Exception):
    """The token is malformed, tampered with, expired or carries bad claims."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # stored digest is not a bcrypt hash
        return False


def issue_token(
    user_id: str,
    email: str,
    role: str,
    *,
    secret: str | None = None,
    expires_in: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=settings.JWT_EXPIRATION_HOURS)),
    }
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=JWT_ALGO)


def verify_token(token: str, *, secret: str | None = None) -> dict[str, Any]:
    """Return the verified claim set or raise ``InvalidCredential``."""
    try:
        payload = jwt.decode(
            token,
            secret or settings.JWT_SECRET,
            algorithms=[JWT_ALGO],
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except jwt.PyJWTError as exc:
        raise InvalidCredential(str(exc)) from exc

    if payload.get("role") not in ROLES:
        raise InvalidCredential(f"Unsupported role: {payload.get('role')!r}")
    for claim in ("user_id", "email"):
        if not isinstance(payload.get(claim), str) or not payload[claim]:
            raise InvalidCredential(f"Missing claim: {claim}")
    return payload
