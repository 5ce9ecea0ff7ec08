"""
Authentication routes for the medical clinic system.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from typing import Optional

from ..database import get_db
from ..core.audit_service import get_audit_entries
from ..core.permissions import Caller, Permission
from .models import User
from .schemas import (
    PatientRegistration, DoctorRegistration, UserLogin, LoginResponse, AuditLogResponse
)
from .dependencies import get_current_user, require
from .service import register_patient, register_doctor, login_user, build_user_response

# Set up logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

@router.post("/register/patient", response_model=LoginResponse, summary="Patient Self-Registration")
def register_patient_route(
    patient_data: PatientRegistration,
    db: Session = Depends(get_db)
):
    """
    Patient self-registration endpoint.

    Args:
        patient_data: Patient registration data
        db: Database session

    Returns:
        LoginResponse with an access token for the new account
    """
    result = register_patient(db, patient_data)
    return LoginResponse(message="Registration successful", **result)

@router.post("/register/doctor", summary="Admin Adds a Doctor")
def register_doctor_route(
    doctor_data: DoctorRegistration,
    caller: Caller = Depends(require(Permission.REGISTER_DOCTOR)),
    db: Session = Depends(get_db)
):
    """
    Create a doctor account. Admin only.

    Args:
        doctor_data: Doctor registration data
        caller: Authorized admin
        db: Database session

    Returns:
        Dict with the created doctor user
    """
    user = register_doctor(db, doctor_data, created_by=caller.user_id)
    return {"success": True, "message": "Doctor added", "user": user}

@router.post("/login", response_model=LoginResponse, summary="User Login")
def login_route(
    login_data: UserLogin,
    db: Session = Depends(get_db)
):
    """
    User login endpoint.

    Args:
        login_data: User login credentials
        db: Database session

    Returns:
        LoginResponse with access token and user information
    """
    result = login_user(db, email=login_data.email, password=login_data.password)
    return LoginResponse(**result)

@router.get("/me", summary="Get Current User Profile")
def get_current_user_profile(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return {"success": True, "user": build_user_response(current_user)}

@router.get("/admin/audit-logs", summary="Admin Retrieves Audit Logs")
def get_audit_logs_route(
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    caller: Caller = Depends(require(Permission.VIEW_AUDIT_LOGS)),
    db: Session = Depends(get_db)
):
    """Retrieves audit logs. Admins can filter by action."""
    entries = get_audit_entries(db, action=action, limit=limit)
    return {
        "success": True,
        "audit_logs": [AuditLogResponse.model_validate(entry) for entry in entries]
    }
