"""
Patient Model - Stores patient-specific information.

This model extends the base User model with the demographic fields that
prescriptions copy at creation time.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Date, func
from sqlalchemy.orm import relationship
from ..database import Base

class Patient(Base):
    """
    Patient Model - Stores patient-specific information

    Fields:
    - id: Primary key for patient profile
    - user_id: Foreign key to User model
    - date_of_birth: Patient's date of birth, used to compute age on prescriptions
    - gender: Patient's gender
    - phone: Contact number
    - created_at: When the patient profile was created
    - updated_at: When the patient profile was last updated
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="patient_profile", uselist=False)
    appointments = relationship("Appointment", back_populates="patient")
    prescriptions = relationship("Prescription", back_populates="patient")
    test_results = relationship("TestResult", back_populates="patient")

    def __repr__(self):
        """String representation of the Patient model"""
        return f"<Patient(id={self.id}, user_id={self.user_id})>"

    @property
    def full_name(self) -> str:
        """Get patient's full name from associated user"""
        return self.user.full_name if self.user else None

    @property
    def email(self) -> str:
        """Get patient's email from associated user"""
        return self.user.email if self.user else None
