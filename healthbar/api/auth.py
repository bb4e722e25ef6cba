"""
Auth service routes: registration, login and caller echo.

Register and login are the only public routes of the backend services.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope
from healthbar.models.database import get_db
from healthbar.models.records import User
from healthbar.schemas.api import AuthResult, UserOut
from healthbar.schemas.contracts import LOGIN_SCHEMA, REGISTER_SCHEMA
from healthbar.services.credentials import MAX_PASSWORD_BYTES, check_password, hash_password, issue_token
from healthbar.services.trust import Claims, require_claims
from healthbar.services.validation import require_valid

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/api/auth", tags=["auth"])
router = APIRouter(prefix="/api/auth", tags=["auth"], dependencies=[Depends(require_claims)])


def _auth_result(user: User) -> AuthResult:
    return AuthResult(
        token=issue_token(user.id, user.email, user.role),
        user=UserOut.model_validate(user),
    )


@public_router.post("/register")
def register(payload: Any = Body(None), db: Session = Depends(get_db)):
    body = require_valid(payload, REGISTER_SCHEMA)
    if len(body["password"].encode()) > MAX_PASSWORD_BYTES:
        raise HTTPException(
            status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        )

    user = User(
        email=body["email"],
        password_hash=hash_password(body["password"]),
        role=body["role"],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already exists")
    db.refresh(user)

    logger.info("Registered %s user %s", user.role, user.id)
    return envelope(201, "User registered successfully", _auth_result(user))


@public_router.post("/login")
def login(payload: Any = Body(None), db: Session = Depends(get_db)):
    body = require_valid(payload, LOGIN_SCHEMA)

    user = db.scalar(select(User).where(User.email == body["email"]))
    if user is None or not check_password(body["password"], user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return envelope(200, "Login successful", _auth_result(user))


@router.get("/me")
def me(claims: Claims = Depends(require_claims), db: Session = Depends(get_db)):
    user = db.get(User, claims.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return envelope(200, "User retrieved", UserOut.model_validate(user))
