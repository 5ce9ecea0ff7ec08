"""
Core permissions utilities for role-based access control.

Route handlers resolve the caller from the bearer token and then call
``authorize`` explicitly with the permission the operation needs. The
return value is the same caller, checked; a denial raises
``AuthorizationException``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Set, Optional
import logging

from ..auth.models import UserRole
from ..exceptions import AuthorizationException, NotFoundException

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    """
    Permission types for role-based access control.
    """
    # Medical record permissions
    CREATE_RECORDS = "create_records"
    UPDATE_RECORDS = "update_records"
    READ_OWN_RECORDS = "read_own_records"
    READ_AUTHORED_RECORDS = "read_authored_records"
    READ_ALL_RECORDS = "read_all_records"
    READ_RECORD = "read_record"
    VIEW_RECORD_STATS = "view_record_stats"

    # Admin permissions
    REGISTER_DOCTOR = "register_doctor"
    VIEW_AUDIT_LOGS = "view_audit_logs"


# Role-based permission mapping
ROLE_PERMISSIONS: Dict[UserRole, List[Permission]] = {
    UserRole.ADMIN: [
        Permission.READ_ALL_RECORDS,
        Permission.READ_RECORD,
        Permission.VIEW_RECORD_STATS,
        Permission.REGISTER_DOCTOR,
        Permission.VIEW_AUDIT_LOGS,
    ],
    UserRole.DOCTOR: [
        # Doctors write records and read what they authored
        Permission.CREATE_RECORDS,
        Permission.UPDATE_RECORDS,
        Permission.READ_AUTHORED_RECORDS,
        Permission.READ_RECORD,
    ],
    UserRole.PATIENT: [
        # Patients read their own records
        Permission.READ_OWN_RECORDS,
        Permission.READ_RECORD,
    ],
}


@dataclass(frozen=True)
class Caller:
    """
    Identity of the user making a request.

    Attributes:
        user_id: ID of the authenticated user
        role: The user's role
        patient_id: Patient profile ID, for patients
        doctor_id: Doctor profile ID, for doctors
    """
    user_id: int
    role: UserRole
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None

    def require_patient_id(self) -> int:
        if self.patient_id is None:
            raise NotFoundException("Patient profile not found")
        return self.patient_id

    def require_doctor_id(self) -> int:
        if self.doctor_id is None:
            raise NotFoundException("Doctor profile not found")
        return self.doctor_id


def get_permissions_for_role(role: UserRole) -> Set[Permission]:
    """
    Get permissions for a specific role.

    Args:
        role: User role

    Returns:
        Set[Permission]: Set of permissions for the role
    """
    return set(ROLE_PERMISSIONS.get(role, []))


def has_permission(role: UserRole, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: User role
        permission: Permission to check

    Returns:
        bool: True if the role has the permission
    """
    return permission in get_permissions_for_role(role)


def authorize(caller: Caller, permission: Permission) -> Caller:
    """
    Check that a caller holds a permission.

    Args:
        caller: Resolved caller identity
        permission: Permission the operation requires

    Returns:
        Caller: The same caller, now known to hold the permission

    Raises:
        AuthorizationException: If the caller's role lacks the permission
    """
    if not has_permission(caller.role, permission):
        logger.warning(f"User {caller.user_id} ({caller.role.value}) denied {permission.value}")
        raise AuthorizationException("Not authorized to perform this action")
    return caller
