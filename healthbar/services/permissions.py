"""
Permission store: patient-issued access grants to doctors.

One row per (patient, doctor) pair, enforced by ``uq_grant_patient_doctor``.
``grant`` is an insert that falls back to an update on that constraint, so a
revoked grant is reactivated in place instead of duplicated.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from healthbar.models.records import AccessGrant, PatientProfile, new_id, utcnow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UnsupportedDatabase(RuntimeError):
    """The configured database has no upsert the permission store can issue."""


class PermissionStore:
    def __init__(self, db: Session):
        self.db = db

    def grant(self, patient_id: str, doctor_id: str) -> None:
        """Create or reactivate the grant; ``granted_at`` is reset either way."""
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise UnsupportedDatabase(f"Grants need PostgreSQL or SQLite, not {dialect!r}")
        now = utcnow()
        stmt = insert(AccessGrant).values(
            id=new_id(),
            patient_id=patient_id,
            doctor_id=doctor_id,
            granted_at=now,
            revoked_at=None,
            is_active=True,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AccessGrant.patient_id, AccessGrant.doctor_id],
            set_={"is_active": True, "revoked_at": None, "granted_at": now},
        )
        self.db.execute(stmt)
        logger.info("Granted doctor %s access to patient %s", doctor_id, patient_id)

    def revoke(self, patient_id: str, doctor_id: str) -> None:
        """Deactivate the grant. Revoking a grant that never existed is a no-op."""
        result = self.db.execute(
            update(AccessGrant)
            .where(AccessGrant.patient_id == patient_id, AccessGrant.doctor_id == doctor_id)
            .values(is_active=False, revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Revoked doctor %s access to patient %s (%d row)", doctor_id, patient_id, result.rowcount
        )

    def is_active(self, patient_id: str, doctor_id: str) -> bool:
        active = self.db.scalar(
            select(AccessGrant.is_active).where(
                AccessGrant.patient_id == patient_id,
                AccessGrant.doctor_id == doctor_id,
            )
        )
        return bool(active)

    def list_for_patient(self, patient_id: str) -> list[AccessGrant]:
        """All grants issued by a patient, newest first, revoked ones included."""
        return list(
            self.db.scalars(
                select(AccessGrant)
                .where(AccessGrant.patient_id == patient_id)
                .order_by(AccessGrant.granted_at.desc())
                .execution_options(populate_existing=True)
            )
        )

    def accessible_patients(self, doctor_id: str) -> list[PatientProfile]:
        return list(
            self.db.scalars(
                select(PatientProfile)
                .join(AccessGrant, AccessGrant.patient_id == PatientProfile.id)
                .where(AccessGrant.doctor_id == doctor_id, AccessGrant.is_active.is_(True))
                .order_by(PatientProfile.full_name)
            )
        )
