"""
Doctor Model - Stores doctor-specific information.

This model extends the base User model with the fields shown on the records
a doctor authors.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from ..database import Base

class Doctor(Base):
    """
    Doctor Model - Stores doctor-specific information

    Fields:
    - id: Primary key for doctor profile
    - user_id: Foreign key to User model
    - specialization: Doctor's medical specialization
    - phone: Contact number
    - created_at: When the doctor profile was created
    - updated_at: When the doctor profile was last updated
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialization = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor_profile", uselist=False)
    appointments = relationship("Appointment", back_populates="doctor")
    prescriptions = relationship("Prescription", back_populates="doctor")
    test_results = relationship("TestResult", back_populates="doctor")

    def __repr__(self):
        """String representation of the Doctor model"""
        return f"<Doctor(id={self.id}, user_id={self.user_id}, specialization='{self.specialization}')>"

    @property
    def full_name(self) -> str:
        """Get doctor's full name from associated user"""
        return self.user.full_name if self.user else None
