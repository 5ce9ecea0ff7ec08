"""
Medical Record Schemas - Pydantic models for prescription and test result data.

Create schemas leave the business-required fields optional: presence is
checked by ``MedicalRecordStore`` so that a missing diagnosis or medication
list is reported as a record validation failure before anything is written.
"""
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
import enum

from .models import PrescriptionStatus, TestResultStatus, TestType, Priority

class MealTiming(str, enum.Enum):
    """When a medication should be taken relative to meals"""
    BEFORE_MEAL = "Before Meal"
    AFTER_MEAL = "After Meal"
    EMPTY_STOMACH = "Empty Stomach"
    AS_NEEDED = "As Needed"

class ParameterStatus(str, enum.Enum):
    """Interpretation of a single measured parameter"""
    NORMAL = "Normal"
    HIGH = "High"
    LOW = "Low"
    CRITICAL = "Critical"


# ============================================================================
# PAYLOAD ITEMS
# ============================================================================

class Medication(BaseModel):
    """
    Schema for a prescribed medication

    Fields:
    - name: Medication name
    - dosage: Dose per intake (e.g. "500mg")
    - frequency: How often to take it (e.g. "Twice a day")
    - duration: How long to take it (e.g. "5 days")
    - instructions: Extra instructions
    - before_after_meal: Timing relative to meals
    """
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    instructions: str = ""
    before_after_meal: MealTiming = MealTiming.AFTER_MEAL

class RecommendedTest(BaseModel):
    """Schema for a test recommended on a prescription"""
    test_name: str = Field(..., min_length=1)
    test_description: str = ""
    urgency: Priority = Priority.ROUTINE

class TestParameterResult(BaseModel):
    """
    Schema for one measured parameter of a test result

    Fields:
    - parameter: What was measured (e.g. "Hemoglobin")
    - value: Measured value
    - unit: Unit of the value
    - normal_range: Reference range
    - status: Normal, High, Low or Critical
    - remarks: Free-text remarks
    """

    parameter: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)
    unit: str = ""
    normal_range: str = ""
    status: ParameterStatus = ParameterStatus.NORMAL
    remarks: str = ""


# ============================================================================
# PRESCRIPTIONS
# ============================================================================

class PrescriptionCreate(BaseModel):
    """
    Prescription Create Schema - Used when a doctor writes a prescription

    Fields:
    - patient_id: Patient profile the prescription is for (required)
    - appointment_id: Appointment the prescription belongs to (optional)
    - diagnosis: Medical diagnosis (required, non-empty)
    - symptoms: Reported symptoms
    - medications: Prescribed medications (required, at least one)
    - tests_recommended: Tests the patient should take
    - instructions: General instructions
    - follow_up_date: Date of the follow-up visit
    """
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None
    diagnosis: Optional[str] = None
    symptoms: List[str] = Field(default_factory=list)
    medications: Optional[List[Medication]] = None
    tests_recommended: List[RecommendedTest] = Field(default_factory=list)
    instructions: str = ""
    follow_up_date: Optional[date] = None

    class Config:
        """Configuration for Pydantic model"""
        json_schema_extra = {
            "example": {
                "patient_id": 1,
                "appointment_id": 3,
                "diagnosis": "Acute bronchitis",
                "symptoms": ["Cough", "Mild fever"],
                "medications": [{
                    "name": "Amoxicillin",
                    "dosage": "500mg",
                    "frequency": "Three times a day",
                    "duration": "7 days",
                    "before_after_meal": "After Meal"
                }],
                "follow_up_date": "2024-06-21"
            }
        }

class PrescriptionUpdate(BaseModel):
    """
    Prescription Update Schema - Fields the authoring doctor may change

    Record identity, patient, doctor and creation time are not patchable.
    """
    diagnosis: Optional[str] = Field(None, min_length=1)
    symptoms: Optional[List[str]] = None
    medications: Optional[List[Medication]] = Field(None, min_length=1)
    tests_recommended: Optional[List[RecommendedTest]] = None
    instructions: Optional[str] = None
    follow_up_date: Optional[date] = None
    status: Optional[PrescriptionStatus] = None


# ============================================================================
# TEST RESULTS
# ============================================================================

class TestResultCreate(BaseModel):
    """
    Test Result Create Schema - Sent as the JSON ``payload`` form field

    Fields:
    - patient_id, test_name, test_type, test_date, results: Required
    - laboratory_name, laboratory_address: Where the test was run
    - analysis, comments, recommendations: Free-text notes
    - priority: Routine, Urgent or Emergency
    - status: Initial status, Pending or Completed (Pending unless given)
    """

    patient_id: Optional[int] = None
    test_name: Optional[str] = None
    test_type: Optional[TestType] = None
    test_date: Optional[date] = None
    results: Optional[List[TestParameterResult]] = None
    laboratory_name: str = ""
    laboratory_address: str = ""
    analysis: str = ""
    comments: str = ""
    recommendations: str = ""
    priority: Priority = Priority.ROUTINE
    status: TestResultStatus = TestResultStatus.PENDING

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v):
        """A new test result is either pending or already completed"""
        if v == TestResultStatus.CANCELLED:
            raise ValueError("A test result cannot be created as Cancelled")
        return v

class TestResultUpdate(BaseModel):
    """Test Result Update Schema - Fields the responsible doctor may change"""

    test_name: Optional[str] = Field(None, min_length=1)
    test_type: Optional[TestType] = None
    test_date: Optional[date] = None
    results: Optional[List[TestParameterResult]] = Field(None, min_length=1)
    laboratory_name: Optional[str] = None
    laboratory_address: Optional[str] = None
    analysis: Optional[str] = None
    comments: Optional[str] = None
    recommendations: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TestResultStatus] = None


# ============================================================================
# RESPONSES
# ============================================================================

class PatientSummary(BaseModel):
    """Patient reference resolved on admin listings and record details"""
    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True

class DoctorSummary(BaseModel):
    """Doctor reference resolved on admin listings and record details"""
    id: int
    full_name: Optional[str] = None
    specialization: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True

class AppointmentSummary(BaseModel):
    """Appointment slot resolved on prescription details"""
    id: int
    slot_date: date
    slot_time: str

    class Config:
        from_attributes = True

class PrescriptionResponse(BaseModel):
    """Prescription Response Schema - Used when returning prescription data"""
    id: int
    record_id: str
    patient_id: int
    patient_name: str
    patient_age: Optional[int] = None
    patient_gender: Optional[str] = None
    doctor_id: int
    doctor_name: str
    doctor_specialization: str
    appointment_id: Optional[int] = None
    diagnosis: str
    symptoms: List[str] = []
    medications: List[Medication] = []
    tests_recommended: List[RecommendedTest] = []
    instructions: Optional[str] = None
    follow_up_date: Optional[date] = None
    status: PrescriptionStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True

class PrescriptionWithReferences(PrescriptionResponse):
    """Prescription with patient, doctor and appointment references resolved"""
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None
    appointment: Optional[AppointmentSummary] = None

class TestResultResponse(BaseModel):
    """Test Result Response Schema - Used when returning test result data"""

    id: int
    record_id: str
    patient_id: int
    patient_name: str
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    test_name: str
    test_type: TestType
    test_date: date
    result_date: datetime
    results: List[TestParameterResult] = []
    laboratory_name: Optional[str] = None
    laboratory_address: Optional[str] = None
    report_file: Optional[str] = None
    images: List[str] = []
    analysis: Optional[str] = None
    comments: Optional[str] = None
    recommendations: Optional[str] = None
    priority: Priority
    status: TestResultStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True

class TestResultWithReferences(TestResultResponse):
    """Test result with patient and doctor references resolved"""
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None

class MonthlyCount(BaseModel):
    """Number of records created in one calendar month"""
    year: int
    month: int
    count: int

class RecordStats(BaseModel):
    """
    Record Statistics Schema

    Fields:
    - total: All records of the variant
    - active: Records still open (Active prescriptions, Pending test results)
    - completed: Completed records
    - monthly_stats: Records per (year, month) over the trailing window, oldest first
    """
    total: int
    active: int
    completed: int
    monthly_stats: List[MonthlyCount]


# ============================================================================
# ENVELOPES
# ============================================================================

class PrescriptionEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    prescription: PrescriptionWithReferences

class PrescriptionListEnvelope(BaseModel):
    """Own prescriptions of a patient or doctor"""
    success: bool = True
    prescriptions: List[PrescriptionResponse]

class PrescriptionDirectoryEnvelope(BaseModel):
    """All prescriptions with patient and doctor resolved (admin)"""
    success: bool = True
    prescriptions: List[PrescriptionWithReferences]

class TestResultEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    test_result: TestResultWithReferences

class TestResultListEnvelope(BaseModel):
    """Own test results of a patient or doctor"""
    success: bool = True
    test_results: List[TestResultResponse]

class TestResultDirectoryEnvelope(BaseModel):
    """All test results with patient and doctor resolved (admin)"""
    success: bool = True
    test_results: List[TestResultWithReferences]

class StatsEnvelope(BaseModel):
    success: bool = True
    stats: RecordStats
