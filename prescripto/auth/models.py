"""
User Model - Stores login identities and their role in the system.

Patients and doctors keep their role-specific details in profile tables
(``patients`` and ``doctors``) linked one-to-one to a user.
"""
from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from ..database import Base

class UserRole(str, enum.Enum):
    """
    Enumeration for user roles.

    Roles:
    - PATIENT: Patients who read their own prescriptions and test results
    - DOCTOR: Medical practitioners who author medical records
    - ADMIN: Administrators with read access to every record and statistics
    """
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"

class User(Base):
    """
    User Model - Stores all user information in the system

    Fields:
    - id: Primary key for user identification
    - email: Unique email address for login
    - full_name: User's complete name
    - password_hash: Securely hashed password (never store raw passwords)
    - role: User role (patient, doctor, admin)
    - created_at: Timestamp when user was created
    - updated_at: Timestamp when user was last updated
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.PATIENT, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    patient_profile = relationship("Patient", back_populates="user", uselist=False)
    doctor_profile = relationship("Doctor", back_populates="user", uselist=False)

    def __repr__(self):
        """String representation of the User model"""
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
