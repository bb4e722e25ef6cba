"""
JSON Schema validation for request bodies.

Errors are collected rather than failing on the first one, so a client
sees every problem with its payload in a single 400 response.
"""

from datetime import date
from typing import Any

import jsonschema
from fastapi import HTTPException


def validate_against_schema(data: Any, schema: dict[str, Any]) -> list[str]:
    """
    Validate a decoded JSON body against a schema.
    Returns a list of error messages (empty list = valid).
    """
    validator = jsonschema.Draft7Validator(schema)
    messages = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
        field = ".".join(str(part) for part in error.path)
        messages.append(f"{field}: {error.message}" if field else error.message)
    return messages


def require_valid(data: Any, schema: dict[str, Any]) -> dict[str, Any]:
    """Return ``data`` unchanged or raise a 400 listing every violation."""
    if data is None:
        raise HTTPException(status_code=400, detail="Invalid request body")
    errors = validate_against_schema(data, schema)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return data


def parse_iso_date(value: str) -> date:
    # the schema pattern admits 2024-13-45, fromisoformat does not
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")
