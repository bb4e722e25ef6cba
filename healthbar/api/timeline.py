"""
Timeline service routes – hospital visits owned by a patient.

Reads go through the guard in READ mode, so a doctor with an active grant
can see a patient's timeline; every mutation uses WRITE mode, which only
the owning patient passes.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope
from healthbar.models.database import get_db
from healthbar.models.records import HospitalVisit
from healthbar.schemas.api import HospitalVisitOut
from healthbar.schemas.contracts import VISIT_SCHEMA
from healthbar.services.guard import AccessGuard, Mode, get_guard
from healthbar.services.trust import require_claims, require_patient
from healthbar.services.validation import parse_iso_date, require_valid

router = APIRouter(prefix="/api/timeline", tags=["timeline"], dependencies=[Depends(require_claims)])


def _visit_fields(payload: Any) -> dict[str, Any]:
    body = require_valid(payload, VISIT_SCHEMA)
    return {
        "hospital_name": body["hospital_name"],
        "visit_date": parse_iso_date(body["visit_date"]),
        "reason": body["reason"],
        "notes": body.get("notes", ""),
    }


def _visits_for(db: Session, patient_id: str) -> list[HospitalVisitOut]:
    visits = db.scalars(
        select(HospitalVisit)
        .where(HospitalVisit.patient_id == patient_id)
        .order_by(HospitalVisit.visit_date.desc(), HospitalVisit.created_at.desc())
    )
    return [HospitalVisitOut.model_validate(v) for v in visits]


def _load_visit(db: Session, guard: AccessGuard, visit_id: str | None, mode: Mode) -> HospitalVisit:
    """Load a visit the caller may access; a missing visit is denied like a foreign one."""
    if not visit_id:
        raise HTTPException(status_code=400, detail="Visit ID is required")
    visit = db.get(HospitalVisit, visit_id)
    guard.require(visit.patient_id if visit is not None else None, mode)
    return visit


@router.post("/visits", dependencies=[Depends(require_patient)])
def create_visit(
    payload: Any = Body(None),
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.WRITE)

    visit = HospitalVisit(patient_id=patient_id, **_visit_fields(payload))
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return envelope(201, "Visit added successfully", HospitalVisitOut.model_validate(visit))


@router.get("/my", dependencies=[Depends(require_patient)])
def get_my_timeline(guard: AccessGuard = Depends(get_guard), db: Session = Depends(get_db)):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.READ)
    return envelope(200, "Timeline retrieved", _visits_for(db, patient_id))


@router.get("/patient")
def get_patient_timeline(
    patient_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    if not patient_id:
        raise HTTPException(status_code=400, detail="Patient ID is required")
    guard.require(patient_id, Mode.READ)
    return envelope(200, "Timeline retrieved", _visits_for(db, patient_id))


@router.get("/visit")
def get_visit(
    visit_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    visit = _load_visit(db, guard, visit_id, Mode.READ)
    return envelope(200, "Visit retrieved", HospitalVisitOut.model_validate(visit))


@router.put("/visit")
def update_visit(
    visit_id: str | None = None,
    payload: Any = Body(None),
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    visit = _load_visit(db, guard, visit_id, Mode.WRITE)

    for name, value in _visit_fields(payload).items():
        setattr(visit, name, value)
    db.commit()
    db.refresh(visit)
    return envelope(200, "Visit updated successfully", HospitalVisitOut.model_validate(visit))


@router.delete("/visit")
def delete_visit(
    visit_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    visit = _load_visit(db, guard, visit_id, Mode.WRITE)

    db.delete(visit)
    db.commit()
    return envelope(200, "Visit deleted successfully")
