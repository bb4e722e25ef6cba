"""
Relational model for the health record back end.

- Users carry a role; each user owns at most one profile matching it
- Patients own visits, prescriptions and the access grants they issue
- A doctor's view of patient data is derived from an active grant
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)

from healthbar.models.database import Base

ROLE_PATIENT = "patient"
ROLE_DOCTOR = "doctor"
ROLES = (ROLE_PATIENT, ROLE_DOCTOR)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# User – login identity
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(Enum(*ROLES, name="user_role_enum"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Profiles – one per user, matching the user's role
# ---------------------------------------------------------------------------
class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(32), default="")
    phone = Column(String(64), default="")
    address = Column(Text, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    specialization = Column(String(255), default="")
    license_number = Column(String(128), default="")
    phone = Column(String(64), default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Access grant – a patient's revocable permission for one doctor
# ---------------------------------------------------------------------------
class AccessGrant(Base):
    __tablename__ = "doctor_access_permissions"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patient_profiles.id"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("doctor_profiles.id"), nullable=False)
    granted_at = Column(DateTime, default=utcnow, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("patient_id", "doctor_id", name="uq_grant_patient_doctor"),
        CheckConstraint(
            "(is_active AND revoked_at IS NULL) OR (NOT is_active AND revoked_at IS NOT NULL)",
            name="ck_grant_active_revoked",
        ),
        Index("ix_grant_doctor", "doctor_id"),
    )


# ---------------------------------------------------------------------------
# Patient-owned records
# ---------------------------------------------------------------------------
class HospitalVisit(Base):
    __tablename__ = "hospital_visits"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patient_profiles.id"), nullable=False)
    hospital_name = Column(String(255), nullable=False)
    visit_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    notes = Column(Text, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_visits_patient", "patient_id"),)


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patient_profiles.id"), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(16), nullable=False, comment="Lower-case extension incl. dot")
    file_size = Column(BigInteger, nullable=False)
    file_path = Column(String(512), unique=True, nullable=False, comment="Storage key under the upload root")
    upload_date = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_prescriptions_patient", "patient_id"),)
