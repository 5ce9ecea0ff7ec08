"""
Appointment Model - Stores the booked slot a prescription can refer to.

Booking itself is handled elsewhere; records only need to resolve the slot
date and time of the visit they were written for.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base

class AppointmentStatus(str, enum.Enum):
    """Enum for appointment status"""
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class Appointment(Base):
    """
    Appointment Model - Stores appointment information

    Fields:
    - id: Primary key for appointment
    - doctor_id: Foreign key to Doctor model
    - patient_id: Foreign key to Patient model
    - slot_date: Date of the appointment
    - slot_time: Time slot label (e.g. "10:30 AM")
    - status: Current status of the appointment
    - created_at: When the appointment was created
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String, nullable=False)
    status = Column(Enum(AppointmentStatus, name="appointment_status"), default=AppointmentStatus.SCHEDULED)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    doctor = relationship("Doctor", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")

    def __repr__(self):
        """String representation of the Appointment model"""
        return f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, patient_id={self.patient_id}, slot='{self.slot_date} {self.slot_time}')>"
