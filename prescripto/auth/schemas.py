"""
Authentication schemas for registration, login and the current user profile.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any
from datetime import date, datetime
from .models import UserRole

class UserBase(BaseModel):
    """Base user schema with common fields"""
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=100)

class UserCreate(UserBase):
    """Base schema for user creation with password"""
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")

class PatientRegistration(UserCreate):
    """
    Patient Registration Schema - Used for patient self-registration

    Fields:
    - date_of_birth: Used to compute the patient's age on prescriptions
    - gender: Patient's gender
    - phone: Contact number
    """
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        """Configuration for Pydantic model"""
        json_schema_extra = {
            "example": {
                "email": "patient@example.com",
                "full_name": "Jane Doe",
                "password": "SecurePassword123!",
                "date_of_birth": "2000-06-15",
                "gender": "Female",
                "phone": "+1-555-0100"
            }
        }

class DoctorRegistration(UserCreate):
    """Doctor Registration Schema - Used by admins to add a doctor"""
    specialization: str = Field(..., min_length=2)
    phone: Optional[str] = None

class UserLogin(BaseModel):
    """User Login Schema"""
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    """
    User Response Schema - Current user with resolved profile IDs

    Fields:
    - id: User ID
    - email, full_name, role: Account details
    - patient_id: Patient profile ID (patients only)
    - doctor_id: Doctor profile ID (doctors only)
    """
    id: int
    email: EmailStr
    full_name: str
    role: UserRole
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    created_at: Optional[datetime] = None

class LoginResponse(BaseModel):
    """Login Response Schema - Returned by login and patient registration"""
    success: bool = True
    message: Optional[str] = None
    token: str
    token_type: str = "bearer"
    user: UserResponse

class AuditLogResponse(BaseModel):
    """Audit Log Response Schema"""
    id: int
    user_id: Optional[int] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True
