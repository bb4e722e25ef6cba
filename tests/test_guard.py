"""Tests for the access-check guard decision table."""

from datetime import date

import pytest
from fastapi import HTTPException

from healthbar.models.records import DoctorProfile, PatientProfile, User
from healthbar.services.guard import AccessGuard, Decision, Mode
from healthbar.services.permissions import PermissionStore
from healthbar.services.trust import Claims


def _user(db, email, role):
    user = User(email=email, password_hash="x", role=role)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def world(db):
    owner = _user(db, "owner@example.com", "patient")
    other = _user(db, "other@example.com", "patient")
    doc = _user(db, "doc@example.com", "doctor")
    bare_doc = _user(db, "bare@example.com", "doctor")

    owner_profile = PatientProfile(user_id=owner.id, full_name="Owner", date_of_birth=date(1980, 5, 5))
    other_profile = PatientProfile(user_id=other.id, full_name="Other", date_of_birth=date(1981, 6, 6))
    doc_profile = DoctorProfile(user_id=doc.id, full_name="Dr. Doc")
    db.add_all([owner_profile, other_profile, doc_profile])
    db.commit()

    return {
        "owner": Claims(owner.id, owner.email, "patient"),
        "other": Claims(other.id, other.email, "patient"),
        "doctor": Claims(doc.id, doc.email, "doctor"),
        "bare_doctor": Claims(bare_doc.id, bare_doc.email, "doctor"),
        "patient_id": owner_profile.id,
        "doctor_id": doc_profile.id,
    }


def test_patient_owns_own_profile(db, world):
    guard = AccessGuard(db, world["owner"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.ALLOW
    assert guard.check(world["patient_id"], Mode.WRITE) is Decision.ALLOW


def test_other_patient_denied(db, world):
    guard = AccessGuard(db, world["other"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.DENY
    assert guard.check(world["patient_id"], Mode.WRITE) is Decision.DENY


def test_doctor_without_grant_denied(db, world):
    guard = AccessGuard(db, world["doctor"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.DENY


def test_doctor_with_grant_reads_but_never_writes(db, world):
    PermissionStore(db).grant(world["patient_id"], world["doctor_id"])
    db.commit()

    guard = AccessGuard(db, world["doctor"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.ALLOW
    assert guard.check(world["patient_id"], Mode.WRITE) is Decision.DENY


def test_revoked_grant_denies(db, world):
    store = PermissionStore(db)
    store.grant(world["patient_id"], world["doctor_id"])
    store.revoke(world["patient_id"], world["doctor_id"])
    db.commit()

    guard = AccessGuard(db, world["doctor"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.DENY


def test_doctor_without_profile_fails_closed(db, world):
    guard = AccessGuard(db, world["bare_doctor"])
    assert guard.check(world["patient_id"], Mode.READ) is Decision.DENY


def test_unknown_role_denied(db, world):
    guard = AccessGuard(db, Claims("someone", "x@example.com", "nurse"))
    assert guard.check(world["patient_id"], Mode.READ) is Decision.DENY


def test_missing_target_is_not_found(db, world):
    guard = AccessGuard(db, world["owner"])
    assert guard.check("no-such-patient", Mode.READ) is Decision.NOT_FOUND
    assert guard.check("", Mode.READ) is Decision.NOT_FOUND


def test_require_reports_missing_target_as_denial(db, world):
    guard = AccessGuard(db, world["doctor"])
    with pytest.raises(HTTPException) as missing:
        guard.require("no-such-patient", Mode.READ)
    with pytest.raises(HTTPException) as denied:
        guard.require(world["patient_id"], Mode.READ)

    assert missing.value.status_code == denied.value.status_code == 403
    assert missing.value.detail == denied.value.detail == "Access denied"


def test_own_profile_resolved_once(db, world, monkeypatch):
    guard = AccessGuard(db, world["owner"])
    first = guard.own_patient_profile_id()

    calls = []
    original = db.scalar
    monkeypatch.setattr(db, "scalar", lambda *a, **kw: calls.append(a) or original(*a, **kw))
    assert guard.own_patient_profile_id() == first
    assert calls == []


def test_require_own_patient_profile_missing(db, world):
    guard = AccessGuard(db, world["bare_doctor"])
    with pytest.raises(HTTPException) as exc:
        guard.require_own_patient_profile()
    assert exc.value.status_code == 404
