"""
Authentication service layer for business logic.
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, Any

from ..core.security import hash_password, verify_password, create_access_token
from ..doctors.models import Doctor
from ..exceptions import AuthenticationException, PersistenceException, ValidationException
from ..patients.models import Patient
from .models import User, UserRole
from .schemas import PatientRegistration, DoctorRegistration, UserResponse

# Set up logging
logger = logging.getLogger(__name__)

def build_user_response(user: User) -> UserResponse:
    """
    Build the user profile returned to clients.

    Args:
        user: User with its profile relationships

    Returns:
        UserResponse: Profile including patient/doctor profile IDs
    """
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        patient_id=user.patient_profile.id if user.patient_profile else None,
        doctor_id=user.doctor_profile.id if user.doctor_profile else None,
        created_at=user.created_at
    )

def issue_token(user: User) -> str:
    """Create an access token identifying a user and their role."""
    return create_access_token({"sub": str(user.id), "role": user.role.value})

def _ensure_email_available(db: Session, email: str) -> None:
    if db.query(User).filter(User.email == email).first():
        raise ValidationException("Email already registered")

def _save_user(db: Session, user: User, profile) -> User:
    email = user.email
    db.add(user)
    try:
        db.flush()
        profile.user_id = user.id
        db.add(profile)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error registering {email}: {str(e)}")
        raise PersistenceException("An error occurred during registration")
    db.refresh(user)
    return user

def register_patient(db: Session, data: PatientRegistration) -> Dict[str, Any]:
    """
    Register a new patient account.

    Args:
        db: Database session
        data: Registration details

    Returns:
        Dict with the access token and the created user

    Raises:
        ValidationException: If the email is already registered
        PersistenceException: If the account could not be saved
    """
    _ensure_email_available(db, data.email)

    user = User(
        email=data.email,
        full_name=data.full_name,
        password_hash=hash_password(data.password),
        role=UserRole.PATIENT
    )
    profile = Patient(date_of_birth=data.date_of_birth, gender=data.gender, phone=data.phone)
    user = _save_user(db, user, profile)
    logger.info(f"Patient registered: {user.email}")

    return {"token": issue_token(user), "user": build_user_response(user)}

def register_doctor(db: Session, data: DoctorRegistration, created_by: int) -> UserResponse:
    """
    Create a doctor account. Only admins call this.

    Args:
        db: Database session
        data: Doctor details
        created_by: ID of the admin creating the account

    Returns:
        UserResponse: The created doctor user
    """
    _ensure_email_available(db, data.email)

    user = User(
        email=data.email,
        full_name=data.full_name,
        password_hash=hash_password(data.password),
        role=UserRole.DOCTOR
    )
    profile = Doctor(specialization=data.specialization, phone=data.phone)
    user = _save_user(db, user, profile)
    logger.info(f"Doctor {user.email} registered by admin {created_by}")

    return build_user_response(user)

def login_user(db: Session, email: str, password: str) -> Dict[str, Any]:
    """
    Authenticate a user by email and password.

    Args:
        db: Database session
        email: User's email
        password: User's password

    Returns:
        Dict with the access token and the user

    Raises:
        AuthenticationException: If the credentials are invalid
    """
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for {email}")
        raise AuthenticationException("Invalid credentials")

    logger.info(f"User {user.id} logged in")
    return {"token": issue_token(user), "user": build_user_response(user)}
