"""
JSON schemas for request bodies accepted by the services.

Every body is checked against one of these before a handler touches the
database; all violations are reported together in the 400 envelope.
"""

ISO_DATE_PATTERN = "^\\d{4}-\\d{2}-\\d{2}$"

_NON_EMPTY = {"type": "string", "minLength": 1}
_OPTIONAL_TEXT = {"type": "string"}

REGISTER_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Register user",
    "type": "object",
    "required": ["email", "password", "role"],
    "properties": {
        "email": _NON_EMPTY,
        "password": _NON_EMPTY,
        "role": {
            "type": "string",
            "enum": ["patient", "doctor"],
            "description": "Fixed for the lifetime of the account.",
        },
    },
}

LOGIN_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Login",
    "type": "object",
    "required": ["email", "password"],
    "properties": {
        "email": {"type": "string"},
        "password": {"type": "string"},
    },
}

PATIENT_PROFILE_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Patient profile",
    "type": "object",
    "required": ["full_name", "date_of_birth"],
    "properties": {
        "full_name": _NON_EMPTY,
        "date_of_birth": {
            "type": "string",
            "pattern": ISO_DATE_PATTERN,
            "description": "ISO 8601 date (YYYY-MM-DD).",
        },
        "gender": _OPTIONAL_TEXT,
        "phone": _OPTIONAL_TEXT,
        "address": _OPTIONAL_TEXT,
    },
}

DOCTOR_PROFILE_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Doctor profile",
    "type": "object",
    "required": ["full_name"],
    "properties": {
        "full_name": _NON_EMPTY,
        "specialization": _OPTIONAL_TEXT,
        "license_number": _OPTIONAL_TEXT,
        "phone": _OPTIONAL_TEXT,
    },
}

GRANT_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Grant doctor access",
    "type": "object",
    "required": ["doctor_id"],
    "properties": {
        "doctor_id": {
            "type": "string",
            "minLength": 1,
            "description": "Doctor profile id, not the doctor's user id.",
        },
    },
}

VISIT_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Hospital visit",
    "type": "object",
    "required": ["hospital_name", "visit_date", "reason"],
    "properties": {
        "hospital_name": _NON_EMPTY,
        "visit_date": {"type": "string", "pattern": ISO_DATE_PATTERN},
        "reason": _NON_EMPTY,
        "notes": _OPTIONAL_TEXT,
    },
}
