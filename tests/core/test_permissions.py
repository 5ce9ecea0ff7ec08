"""
Tests for the role-based access gate.
"""
import pytest

from prescripto.auth.models import UserRole
from prescripto.core.permissions import (
    Caller,
    Permission,
    authorize,
    get_permissions_for_role,
    has_permission,
)
from prescripto.exceptions import AuthorizationException, NotFoundException


def test_doctors_write_records():
    assert has_permission(UserRole.DOCTOR, Permission.CREATE_RECORDS)
    assert has_permission(UserRole.DOCTOR, Permission.UPDATE_RECORDS)
    assert not has_permission(UserRole.DOCTOR, Permission.READ_ALL_RECORDS)


def test_patients_only_read():
    assert get_permissions_for_role(UserRole.PATIENT) == {
        Permission.READ_OWN_RECORDS,
        Permission.READ_RECORD,
    }


def test_every_role_reads_single_records():
    for role in UserRole:
        assert has_permission(role, Permission.READ_RECORD)


def test_admin_permissions():
    for permission in (
        Permission.READ_ALL_RECORDS,
        Permission.VIEW_RECORD_STATS,
        Permission.REGISTER_DOCTOR,
        Permission.VIEW_AUDIT_LOGS,
    ):
        assert has_permission(UserRole.ADMIN, permission)
    assert not has_permission(UserRole.ADMIN, Permission.CREATE_RECORDS)


def test_authorize_returns_the_caller():
    caller = Caller(user_id=1, role=UserRole.DOCTOR, doctor_id=7)
    assert authorize(caller, Permission.CREATE_RECORDS) is caller


def test_authorize_rejects_missing_permission():
    caller = Caller(user_id=2, role=UserRole.PATIENT, patient_id=3)
    with pytest.raises(AuthorizationException) as exc_info:
        authorize(caller, Permission.VIEW_RECORD_STATS)
    assert exc_info.value.code == "not_authorized"


def test_caller_profile_ids():
    caller = Caller(user_id=1, role=UserRole.DOCTOR, doctor_id=7)
    assert caller.require_doctor_id() == 7
    with pytest.raises(NotFoundException):
        caller.require_patient_id()
