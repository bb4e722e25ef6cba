"""
Patient service routes: the caller's own profile and the access grants
the caller issues to doctors.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope
from healthbar.models.database import get_db
from healthbar.models.records import DoctorProfile, PatientProfile
from healthbar.schemas.api import AccessGrantOut, PatientProfileOut
from healthbar.schemas.contracts import GRANT_SCHEMA, PATIENT_PROFILE_SCHEMA
from healthbar.services.guard import AccessGuard, Mode, get_guard
from healthbar.services.permissions import PermissionStore
from healthbar.services.trust import Claims, require_claims, require_patient
from healthbar.services.validation import parse_iso_date, require_valid

router = APIRouter(
    prefix="/api/patients",
    tags=["patients"],
    dependencies=[Depends(require_claims), Depends(require_patient)],
)


def _profile_fields(payload: Any) -> dict[str, Any]:
    body = require_valid(payload, PATIENT_PROFILE_SCHEMA)
    return {
        "full_name": body["full_name"],
        "date_of_birth": parse_iso_date(body["date_of_birth"]),
        "gender": body.get("gender", ""),
        "phone": body.get("phone", ""),
        "address": body.get("address", ""),
    }


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------

@router.post("/profile")
def create_profile(
    payload: Any = Body(None),
    claims: Claims = Depends(require_claims),
    db: Session = Depends(get_db),
):
    profile = PatientProfile(user_id=claims.user_id, **_profile_fields(payload))
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Profile already exists")
    db.refresh(profile)
    return envelope(201, "Profile created successfully", PatientProfileOut.model_validate(profile))


@router.get("/profile")
def get_my_profile(guard: AccessGuard = Depends(get_guard), db: Session = Depends(get_db)):
    profile_id = guard.own_patient_profile_id()
    if profile_id is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    guard.require(profile_id, Mode.READ)

    profile = db.get(PatientProfile, profile_id)
    return envelope(200, "Profile retrieved", PatientProfileOut.model_validate(profile))


@router.put("/profile")
def update_profile(
    payload: Any = Body(None),
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    profile_id = guard.own_patient_profile_id()
    if profile_id is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    guard.require(profile_id, Mode.WRITE)

    fields = _profile_fields(payload)
    profile = db.get(PatientProfile, profile_id)
    for name, value in fields.items():
        setattr(profile, name, value)
    db.commit()
    db.refresh(profile)
    return envelope(200, "Profile updated successfully", PatientProfileOut.model_validate(profile))


# ---------------------------------------------------------------------------
# Access grants
# ---------------------------------------------------------------------------

@router.post("/permissions/grant")
def grant_access(
    payload: Any = Body(None),
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.WRITE)
    doctor_id = require_valid(payload, GRANT_SCHEMA)["doctor_id"]

    if db.get(DoctorProfile, doctor_id) is None:
        raise HTTPException(status_code=404, detail="Doctor not found")

    PermissionStore(db).grant(patient_id, doctor_id)
    db.commit()
    return envelope(200, "Access granted successfully")


@router.delete("/permissions/revoke")
def revoke_access(
    doctor_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.WRITE)
    if not doctor_id:
        raise HTTPException(status_code=400, detail="Doctor ID is required")

    PermissionStore(db).revoke(patient_id, doctor_id)
    db.commit()
    return envelope(200, "Access revoked successfully")


@router.get("/permissions")
def list_permissions(guard: AccessGuard = Depends(get_guard), db: Session = Depends(get_db)):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.READ)

    grants = PermissionStore(db).list_for_patient(patient_id)
    return envelope(
        200, "Permissions retrieved", [AccessGrantOut.model_validate(g) for g in grants]
    )
