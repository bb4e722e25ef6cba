"""Doctor service routes: own profile and the patients a doctor may read."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope
from healthbar.models.database import get_db
from healthbar.models.records import DoctorProfile, PatientProfile
from healthbar.schemas.api import DoctorProfileOut, PatientProfileOut
from healthbar.schemas.contracts import DOCTOR_PROFILE_SCHEMA
from healthbar.services.guard import AccessGuard, Mode, get_guard
from healthbar.services.permissions import PermissionStore
from healthbar.services.trust import Claims, require_claims, require_doctor
from healthbar.services.validation import require_valid

router = APIRouter(
    prefix="/api/doctors",
    tags=["doctors"],
    dependencies=[Depends(require_claims), Depends(require_doctor)],
)


def _profile_fields(payload: Any) -> dict[str, Any]:
    body = require_valid(payload, DOCTOR_PROFILE_SCHEMA)
    return {
        "full_name": body["full_name"],
        "specialization": body.get("specialization", ""),
        "license_number": body.get("license_number", ""),
        "phone": body.get("phone", ""),
    }


def _own_profile(db: Session, claims: Claims) -> DoctorProfile:
    profile = db.scalar(select(DoctorProfile).where(DoctorProfile.user_id == claims.user_id))
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("/profile")
def create_profile(
    payload: Any = Body(None),
    claims: Claims = Depends(require_claims),
    db: Session = Depends(get_db),
):
    profile = DoctorProfile(user_id=claims.user_id, **_profile_fields(payload))
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Profile already exists")
    db.refresh(profile)
    return envelope(201, "Profile created successfully", DoctorProfileOut.model_validate(profile))


@router.get("/profile")
def get_my_profile(claims: Claims = Depends(require_claims), db: Session = Depends(get_db)):
    profile = _own_profile(db, claims)
    return envelope(200, "Profile retrieved", DoctorProfileOut.model_validate(profile))


@router.put("/profile")
def update_profile(
    payload: Any = Body(None),
    claims: Claims = Depends(require_claims),
    db: Session = Depends(get_db),
):
    profile = _own_profile(db, claims)
    for name, value in _profile_fields(payload).items():
        setattr(profile, name, value)
    db.commit()
    db.refresh(profile)
    return envelope(200, "Profile updated successfully", DoctorProfileOut.model_validate(profile))


@router.get("/patients")
def list_accessible_patients(guard: AccessGuard = Depends(get_guard), db: Session = Depends(get_db)):
    doctor_id = guard.require_own_doctor_profile()
    patients = PermissionStore(db).accessible_patients(doctor_id)
    return envelope(200, "Patients retrieved", [PatientProfileOut.model_validate(p) for p in patients])


@router.get("/patients/view")
def view_patient_profile(
    patient_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    if not patient_id:
        raise HTTPException(status_code=400, detail="Patient ID is required")
    guard.require(patient_id, Mode.READ)

    profile = db.get(PatientProfile, patient_id)
    return envelope(200, "Patient profile retrieved", PatientProfileOut.model_validate(profile))
