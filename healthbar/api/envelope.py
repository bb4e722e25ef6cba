"""
Uniform response envelope.

Every JSON body from every service is ``{success, message?, data?, error?}``.
Handlers build successes with ``envelope()`` and signal failures by raising
``HTTPException``; the handlers installed here turn every failure into the
``{"success": false, "error": ...}`` shape.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from healthbar.schemas.api import Envelope

logger = logging.getLogger(__name__)


def envelope(status_code: int = 200, message: str | None = None, data: Any = None) -> JSONResponse:
    body = Envelope(success=True, message=message, data=jsonable_encoder(data))
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


def error_response(status_code: int, error: str, headers: dict[str, str] | None = None) -> JSONResponse:
    body = Envelope(success=False, error=error)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
    return error_response(400, "Invalid request body")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
