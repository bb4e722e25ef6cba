"""
Access-check guard for patient-owned resources.

Decision table:

    patient / read or write  -> allow iff the target is the caller's own profile
    doctor  / read           -> allow iff an active grant (target, caller) exists
    doctor  / write          -> never
    any other role           -> never

A guard instance lives for one request and resolves the caller's own
profile id at most once.
"""

from __future__ import annotations

import enum
import logging

from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from healthbar.models.database import get_db
from healthbar.models.records import DoctorProfile, PatientProfile
from healthbar.services.permissions import PermissionStore
from healthbar.services.trust import Claims, require_claims

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class Mode(str, enum.Enum):
    READ = "read"
    WRITE = "write"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"
    NOT_FOUND = "not_found"


class AccessGuard:
    def __init__(self, db: Session, claims: Claims):
        self.db = db
        self.claims = claims
        self.permissions = PermissionStore(db)
        self._patient_profile_id = _UNRESOLVED
        self._doctor_profile_id = _UNRESOLVED

    # -- caller resolution --------------------------------------------------

    def own_patient_profile_id(self) -> str | None:
        if self._patient_profile_id is _UNRESOLVED:
            self._patient_profile_id = self.db.scalar(
                select(PatientProfile.id).where(PatientProfile.user_id == self.claims.user_id)
            )
        return self._patient_profile_id

    def own_doctor_profile_id(self) -> str | None:
        if self._doctor_profile_id is _UNRESOLVED:
            self._doctor_profile_id = self.db.scalar(
                select(DoctorProfile.id).where(DoctorProfile.user_id == self.claims.user_id)
            )
        return self._doctor_profile_id

    def require_own_patient_profile(self) -> str:
        profile_id = self.own_patient_profile_id()
        if profile_id is None:
            raise HTTPException(status_code=404, detail="Patient profile not found")
        return profile_id

    def require_own_doctor_profile(self) -> str:
        profile_id = self.own_doctor_profile_id()
        if profile_id is None:
            raise HTTPException(status_code=404, detail="Doctor profile not found")
        return profile_id

    # -- decisions ----------------------------------------------------------

    def check(self, target_patient_id: str | None, mode: Mode) -> Decision:
        if not target_patient_id:
            return Decision.NOT_FOUND

        if self.claims.is_patient:
            own = self.own_patient_profile_id()
            if own is not None and own == target_patient_id:
                return Decision.ALLOW
            return self._deny_or_missing(target_patient_id)

        if self.claims.is_doctor:
            if mode is not Mode.READ:
                return Decision.DENY
            doctor_id = self.own_doctor_profile_id()
            if doctor_id is not None and self.permissions.is_active(target_patient_id, doctor_id):
                return Decision.ALLOW
            return self._deny_or_missing(target_patient_id)

        return Decision.DENY

    def require(self, target_patient_id: str | None, mode: Mode) -> None:
        """Raise 403 unless allowed. Missing targets are reported as denials."""
        decision = self.check(target_patient_id, mode)
        if decision is not Decision.ALLOW:
            logger.info(
                "Guard %s: user=%s role=%s target=%s mode=%s",
                decision.value,
                self.claims.user_id,
                self.claims.role,
                target_patient_id,
                mode.value,
            )
            raise HTTPException(status_code=403, detail="Access denied")

    def _deny_or_missing(self, target_patient_id: str) -> Decision:
        exists = self.db.scalar(select(PatientProfile.id).where(PatientProfile.id == target_patient_id))
        return Decision.DENY if exists else Decision.NOT_FOUND


def get_guard(db: Session = Depends(get_db), claims: Claims = Depends(require_claims)) -> AccessGuard:
    """FastAPI dependency: one guard per request."""
    return AccessGuard(db, claims)
