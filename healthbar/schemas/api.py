"""Pydantic models for API response serialization."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

class Envelope(BaseModel):
    """Shape shared by every JSON response of every service."""
    success: bool
    message: str | None = None
    data: Any = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class UserOut(_ORMModel):
    id: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


class AuthResult(BaseModel):
    token: str
    user: UserOut


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

class PatientProfileOut(_ORMModel):
    id: str
    user_id: str
    full_name: str
    date_of_birth: date
    gender: str | None = ""
    phone: str | None = ""
    address: str | None = ""
    created_at: datetime
    updated_at: datetime


class DoctorProfileOut(_ORMModel):
    id: str
    user_id: str
    full_name: str
    specialization: str | None = ""
    license_number: str | None = ""
    phone: str | None = ""
    created_at: datetime
    updated_at: datetime


class AccessGrantOut(_ORMModel):
    id: str
    patient_id: str
    doctor_id: str
    granted_at: datetime
    revoked_at: datetime | None = None
    is_active: bool


# ---------------------------------------------------------------------------
# Patient-owned records
# ---------------------------------------------------------------------------

class HospitalVisitOut(_ORMModel):
    id: str
    patient_id: str
    hospital_name: str
    visit_date: date
    reason: str
    notes: str | None = ""
    created_at: datetime
    updated_at: datetime


class PrescriptionOut(_ORMModel):
    id: str
    patient_id: str
    file_name: str
    file_type: str
    file_size: int
    file_path: str
    upload_date: datetime
    created_at: datetime


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthStatus(BaseModel):
    service: str
    environment: str
    database: str = "connected"
