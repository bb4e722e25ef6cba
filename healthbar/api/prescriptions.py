"""
Prescription service routes – uploaded files plus their metadata rows.

The blob is written first and the row second; if the row cannot be
written the blob is removed again, so a failed upload leaves nothing behind.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from healthbar.api.envelope import envelope
from healthbar.models.database import get_db
from healthbar.models.records import Prescription
from healthbar.schemas.api import PrescriptionOut
from healthbar.services.blobstore import (
    ALLOWED_EXTENSIONS,
    BlobStore,
    UploadTooLarge,
    content_type_for,
    extension_of,
    get_blob_store,
)
from healthbar.services.guard import AccessGuard, Mode, get_guard
from healthbar.services.trust import require_claims, require_patient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/prescriptions", tags=["prescriptions"], dependencies=[Depends(require_claims)]
)


def _prescriptions_for(db: Session, patient_id: str) -> list[PrescriptionOut]:
    rows = db.scalars(
        select(Prescription)
        .where(Prescription.patient_id == patient_id)
        .order_by(Prescription.upload_date.desc())
    )
    return [PrescriptionOut.model_validate(p) for p in rows]


def _load_prescription(
    db: Session, guard: AccessGuard, prescription_id: str | None, mode: Mode
) -> Prescription:
    """Load a prescription the caller may access; a missing row is denied like a foreign one."""
    if not prescription_id:
        raise HTTPException(status_code=400, detail="Prescription ID is required")
    prescription = db.get(Prescription, prescription_id)
    guard.require(prescription.patient_id if prescription is not None else None, mode)
    return prescription


@router.post("/upload", dependencies=[Depends(require_patient)])
def upload_prescription(
    file: UploadFile | None = File(None),
    guard: AccessGuard = Depends(get_guard),
    store: BlobStore = Depends(get_blob_store),
    db: Session = Depends(get_db),
):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.WRITE)

    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    extension = extension_of(file.filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PDF, JPG, JPEG, and PNG are allowed",
        )

    key = store.new_key(patient_id, extension)
    try:
        size = store.save(key, file.file)
    except UploadTooLarge:
        limit_mb = store.max_bytes // (1 << 20)
        raise HTTPException(status_code=400, detail=f"File too large. Max size is {limit_mb}MB")

    prescription = Prescription(
        patient_id=patient_id,
        file_name=file.filename,
        file_type=extension,
        file_size=size,
        file_path=key,
    )
    db.add(prescription)
    try:
        db.commit()
    except Exception:
        db.rollback()
        store.delete(key)
        logger.exception("Failed to record prescription %s; blob removed", key)
        raise HTTPException(status_code=500, detail="Failed to save prescription record")
    db.refresh(prescription)

    return envelope(201, "Prescription uploaded successfully", PrescriptionOut.model_validate(prescription))


@router.get("/my", dependencies=[Depends(require_patient)])
def get_my_prescriptions(guard: AccessGuard = Depends(get_guard), db: Session = Depends(get_db)):
    patient_id = guard.require_own_patient_profile()
    guard.require(patient_id, Mode.READ)
    return envelope(200, "Prescriptions retrieved", _prescriptions_for(db, patient_id))


@router.get("/patient")
def get_patient_prescriptions(
    patient_id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    db: Session = Depends(get_db),
):
    if not patient_id:
        raise HTTPException(status_code=400, detail="Patient ID is required")
    guard.require(patient_id, Mode.READ)
    return envelope(200, "Prescriptions retrieved", _prescriptions_for(db, patient_id))


@router.get("/download")
def download_prescription(
    id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    store: BlobStore = Depends(get_blob_store),
    db: Session = Depends(get_db),
):
    prescription = _load_prescription(db, guard, id, Mode.READ)

    if not store.exists(prescription.file_path):
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(
        store.path_for(prescription.file_path),
        media_type=content_type_for(prescription.file_type),
        filename=prescription.file_name,
    )


@router.delete("", dependencies=[Depends(require_patient)])
def delete_prescription(
    id: str | None = None,
    guard: AccessGuard = Depends(get_guard),
    store: BlobStore = Depends(get_blob_store),
    db: Session = Depends(get_db),
):
    prescription = _load_prescription(db, guard, id, Mode.WRITE)

    key = prescription.file_path
    db.delete(prescription)
    db.commit()
    store.delete(key)
    return envelope(200, "Prescription deleted successfully")
