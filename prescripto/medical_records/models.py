"""
Medical Record Models - Prescriptions and lab test results.

Both variants share the record identity columns from ``MedicalRecordMixin``:
a human-readable ``record_id`` of the form ``<PREFIX>-<YYYYMMDD>-<NNN>``
assigned once at creation, and creation/update timestamps. Patient and doctor
display fields are copied onto the record when it is written.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, JSON, Enum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from ..database import Base

class PrescriptionStatus(str, enum.Enum):
    """Enum for prescription status"""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class TestResultStatus(str, enum.Enum):
    """Enum for test result status"""
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class TestType(str, enum.Enum):
    """Kinds of lab tests a result can be recorded for"""
    BLOOD_TEST = "Blood Test"
    URINE_TEST = "Urine Test"
    X_RAY = "X-Ray"
    MRI = "MRI"
    CT_SCAN = "CT Scan"
    ECG = "ECG"
    ULTRASOUND = "Ultrasound"
    OTHER = "Other"

class Priority(str, enum.Enum):
    """Urgency of a test result or a recommended test"""
    ROUTINE = "Routine"
    URGENT = "Urgent"
    EMERGENCY = "Emergency"


class MedicalRecordMixin:
    """
    Columns and behaviour shared by every medical record variant.

    Fields:
    - id: Primary key
    - record_id: Human-readable unique identifier, immutable after creation
    - created_at: When the record was created (UTC), immutable
    - updated_at: When the record was last changed (UTC)
    """
    ID_PREFIX = None
    LABEL = None
    OPEN_STATUS = None
    COMPLETED_STATUS = None

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(String(32), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def touch(self, now: datetime = None) -> None:
        """
        Refresh the update timestamp

        Args:
            now: Timestamp to record, defaults to the current UTC time
        """
        self.updated_at = now or datetime.now(timezone.utc)


class Prescription(MedicalRecordMixin, Base):
    """
    Prescription Model - A doctor's prescription for a patient

    Fields:
    - patient_id / patient_name / patient_age / patient_gender: Patient at time of writing
    - doctor_id / doctor_name / doctor_specialization: Authoring doctor
    - appointment_id: Optional appointment the prescription was written for
    - diagnosis: Medical diagnosis
    - symptoms: List of symptom strings
    - medications: List of medication dicts (name, dosage, frequency, duration,
      instructions, before_after_meal)
    - tests_recommended: List of recommended test dicts (test_name,
      test_description, urgency)
    - instructions: Free-text instructions
    - follow_up_date: Optional follow-up date
    - status: Active, Completed or Cancelled
    """
    __tablename__ = "prescriptions"

    ID_PREFIX = "PRES"
    LABEL = "Prescription"
    OPEN_STATUS = PrescriptionStatus.ACTIVE
    COMPLETED_STATUS = PrescriptionStatus.COMPLETED

    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_name = Column(String, nullable=False)
    patient_age = Column(Integer, nullable=True)
    patient_gender = Column(String, nullable=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_name = Column(String, nullable=False)
    doctor_specialization = Column(String, nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    diagnosis = Column(Text, nullable=False)
    symptoms = Column(JSON, nullable=False, default=list)
    medications = Column(JSON, nullable=False, default=list)
    tests_recommended = Column(JSON, nullable=False, default=list)
    instructions = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)
    status = Column(Enum(PrescriptionStatus, name="prescription_status"), nullable=False, default=PrescriptionStatus.ACTIVE)

    # Relationships
    patient = relationship("Patient", back_populates="prescriptions")
    doctor = relationship("Doctor", back_populates="prescriptions")
    appointment = relationship("Appointment")

    def __repr__(self):
        """String representation of the Prescription model"""
        return f"<Prescription(record_id='{self.record_id}', patient_id={self.patient_id}, doctor_id={self.doctor_id})>"


class TestResult(MedicalRecordMixin, Base):
    """
    Test Result Model - Lab results recorded for a patient

    Fields:
    - patient_id / patient_name: Patient the test was run for
    - doctor_id / doctor_name: Doctor responsible, optional
    - test_name, test_type: What was tested
    - test_date: When the sample was taken
    - result_date: When the result was recorded
    - results: List of parameter dicts (parameter, value, unit, normal_range,
      status, remarks)
    - laboratory_name, laboratory_address: Where the test was run
    - report_file: URL of the uploaded report file
    - images: URLs of uploaded images
    - analysis, comments, recommendations: Free-text notes
    - priority: Routine, Urgent or Emergency
    - status: Pending, Completed or Cancelled
    """
    __tablename__ = "test_results"

    ID_PREFIX = "TEST"
    LABEL = "Test result"
    OPEN_STATUS = TestResultStatus.PENDING
    COMPLETED_STATUS = TestResultStatus.COMPLETED

    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_name = Column(String, nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True, index=True)
    doctor_name = Column(String, nullable=True)
    test_name = Column(String, nullable=False)
    test_type = Column(Enum(TestType, name="test_type"), nullable=False)
    test_date = Column(Date, nullable=False)
    result_date = Column(DateTime(timezone=True), nullable=False)
    results = Column(JSON, nullable=False, default=list)
    laboratory_name = Column(String, nullable=True)
    laboratory_address = Column(String, nullable=True)
    report_file = Column(String, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    analysis = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)
    priority = Column(Enum(Priority, name="test_priority"), nullable=False, default=Priority.ROUTINE)
    status = Column(Enum(TestResultStatus, name="test_result_status"), nullable=False, default=TestResultStatus.PENDING)

    # Relationships
    patient = relationship("Patient", back_populates="test_results")
    doctor = relationship("Doctor", back_populates="test_results")

    def __repr__(self):
        """String representation of the TestResult model"""
        return f"<TestResult(record_id='{self.record_id}', patient_id={self.patient_id}, test_name='{self.test_name}')>"


class RecordSequence(Base):
    """
    Record Sequence Model - Per-variant, per-day counter for record IDs

    Fields:
    - prefix: Record variant prefix (PRES or TEST)
    - day: UTC calendar day the counter belongs to
    - last_value: Last sequence number handed out for that day
    """
    __tablename__ = "record_sequences"

    prefix = Column(String(8), primary_key=True)
    day = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<RecordSequence(prefix='{self.prefix}', day='{self.day}', last_value={self.last_value})>"
