"""
Medical record routes - prescriptions and test results.

Each route resolves the caller, checks the permission it needs and delegates
to ``MedicalRecordStore``. Responses are built while the request's session
is still open so that lazily loaded references can be resolved.
"""
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from typing import List, Optional, Type
import logging

from ..auth.dependencies import require
from ..core.cloudinary import CloudinaryStorage, get_file_storage
from ..core.permissions import Caller, Permission
from ..database import get_db
from ..exceptions import ValidationException
from .models import Prescription, TestResult
from .schemas import (
    PrescriptionCreate, PrescriptionUpdate, PrescriptionResponse, PrescriptionWithReferences,
    PrescriptionEnvelope, PrescriptionListEnvelope, PrescriptionDirectoryEnvelope,
    TestResultCreate, TestResultUpdate, TestResultResponse, TestResultWithReferences,
    TestResultEnvelope, TestResultListEnvelope, TestResultDirectoryEnvelope,
    RecordStats, StatsEnvelope
)
from .service import MedicalRecordStore

# Set up logging
logger = logging.getLogger(__name__)

prescriptions_router = APIRouter(prefix="/api/v1/prescriptions", tags=["Prescriptions"])
test_results_router = APIRouter(prefix="/api/v1/test-results", tags=["Test Results"])


def get_record_store(
    request: Request,
    db: Session = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_file_storage)
) -> MedicalRecordStore:
    """Record store dependency bound to the request's session."""
    return MedicalRecordStore(
        db,
        storage=storage,
        ip_address=getattr(request.state, "client_ip", None)
    )


def parse_payload(payload: str, schema: Type[BaseModel]) -> BaseModel:
    """
    Parse the JSON ``payload`` form field of a multipart request.

    Raises:
        ValidationException: If the payload is not valid JSON for the schema
    """
    try:
        return schema.model_validate_json(payload)
    except ValidationError as e:
        fields = [".".join(str(part) for part in error["loc"]) or "payload" for error in e.errors()]
        raise ValidationException(f"Invalid input: {', '.join(fields)}")


def _files(uploads: Optional[List[UploadFile]]) -> list:
    # Browsers send an empty part for a file input left blank
    return [upload.file for upload in uploads or [] if upload.filename]


def _file(upload: Optional[UploadFile]):
    if upload is None or not upload.filename:
        return None
    return upload.file


# ============================================================================
# PRESCRIPTIONS
# ============================================================================

@prescriptions_router.post("", response_model=PrescriptionEnvelope, summary="Write a Prescription")
def create_prescription_route(
    prescription_data: PrescriptionCreate,
    caller: Caller = Depends(require(Permission.CREATE_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """
    Create a prescription authored by the calling doctor.

    Args:
        prescription_data: Prescription fields
        caller: Authorized doctor
        store: Record store

    Returns:
        PrescriptionEnvelope with the created prescription
    """
    prescription = store.create(Prescription, prescription_data, caller.require_doctor_id())
    return PrescriptionEnvelope(
        message="Prescription created successfully",
        prescription=PrescriptionWithReferences.model_validate(prescription)
    )

@prescriptions_router.get("/stats", response_model=StatsEnvelope, summary="Prescription Statistics")
def prescription_stats_route(
    caller: Caller = Depends(require(Permission.VIEW_RECORD_STATS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """Aggregate prescription counts. Admin only."""
    return StatsEnvelope(stats=RecordStats(**store.stats(Prescription)))

@prescriptions_router.get("/patient", response_model=PrescriptionListEnvelope, summary="My Prescriptions")
def patient_prescriptions_route(
    caller: Caller = Depends(require(Permission.READ_OWN_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """List the calling patient's prescriptions, newest first."""
    records = store.get_by_patient(Prescription, caller.require_patient_id())
    return PrescriptionListEnvelope(
        prescriptions=[PrescriptionResponse.model_validate(record) for record in records]
    )

@prescriptions_router.get("/doctor", response_model=PrescriptionListEnvelope, summary="Prescriptions I Wrote")
def doctor_prescriptions_route(
    caller: Caller = Depends(require(Permission.READ_AUTHORED_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """List the prescriptions written by the calling doctor, newest first."""
    records = store.get_by_doctor(Prescription, caller.require_doctor_id())
    return PrescriptionListEnvelope(
        prescriptions=[PrescriptionResponse.model_validate(record) for record in records]
    )

@prescriptions_router.get("", response_model=PrescriptionDirectoryEnvelope, summary="All Prescriptions")
def all_prescriptions_route(
    caller: Caller = Depends(require(Permission.READ_ALL_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """List every prescription with patient and doctor resolved. Admin only."""
    records = store.get_all(Prescription)
    return PrescriptionDirectoryEnvelope(
        prescriptions=[PrescriptionWithReferences.model_validate(record) for record in records]
    )

@prescriptions_router.get("/{record_id}", response_model=PrescriptionEnvelope, summary="Get a Prescription")
def get_prescription_route(
    record_id: str,
    caller: Caller = Depends(require(Permission.READ_RECORD)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """Get one prescription by its record ID, with references resolved."""
    prescription = store.get_by_id(Prescription, record_id)
    return PrescriptionEnvelope(prescription=PrescriptionWithReferences.model_validate(prescription))

@prescriptions_router.put("/{record_id}", response_model=PrescriptionEnvelope, summary="Update a Prescription")
def update_prescription_route(
    record_id: str,
    prescription_update: PrescriptionUpdate,
    caller: Caller = Depends(require(Permission.UPDATE_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """
    Update a prescription. Only the doctor who wrote it may change it.

    Args:
        record_id: Prescription record ID
        prescription_update: Fields to change
        caller: Authorized doctor
        store: Record store

    Returns:
        PrescriptionEnvelope with the updated prescription
    """
    prescription = store.update(Prescription, record_id, caller.require_doctor_id(), prescription_update)
    return PrescriptionEnvelope(
        message="Prescription updated successfully",
        prescription=PrescriptionWithReferences.model_validate(prescription)
    )


# ============================================================================
# TEST RESULTS
# ============================================================================

@test_results_router.post("", response_model=TestResultEnvelope, summary="Record a Test Result")
def create_test_result_route(
    payload: str = Form(..., description="TestResultCreate as JSON"),
    report_file: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    caller: Caller = Depends(require(Permission.CREATE_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """
    Create a test result from a multipart form.

    Args:
        payload: Test result fields as a JSON string
        report_file: Optional report file (PDF or image)
        images: Optional images, at most five
        caller: Authorized doctor
        store: Record store

    Returns:
        TestResultEnvelope with the created test result
    """
    data = parse_payload(payload, TestResultCreate)
    test_result = store.create(
        TestResult,
        data,
        caller.require_doctor_id(),
        report_file=_file(report_file),
        images=_files(images)
    )
    return TestResultEnvelope(
        message="Test result created successfully",
        test_result=TestResultWithReferences.model_validate(test_result)
    )

@test_results_router.get("/stats", response_model=StatsEnvelope, summary="Test Result Statistics")
def test_result_stats_route(
    caller: Caller = Depends(require(Permission.VIEW_RECORD_STATS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """Aggregate test result counts. Admin only."""
    return StatsEnvelope(stats=RecordStats(**store.stats(TestResult)))

@test_results_router.get("/patient", response_model=TestResultListEnvelope, summary="My Test Results")
def patient_test_results_route(
    caller: Caller = Depends(require(Permission.READ_OWN_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    records = store.get_by_patient(TestResult, caller.require_patient_id())
    return TestResultListEnvelope(
        test_results=[TestResultResponse.model_validate(record) for record in records]
    )

@test_results_router.get("/doctor", response_model=TestResultListEnvelope, summary="Test Results I Recorded")
def doctor_test_results_route(
    caller: Caller = Depends(require(Permission.READ_AUTHORED_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    records = store.get_by_doctor(TestResult, caller.require_doctor_id())
    return TestResultListEnvelope(
        test_results=[TestResultResponse.model_validate(record) for record in records]
    )

@test_results_router.get("", response_model=TestResultDirectoryEnvelope, summary="All Test Results")
def all_test_results_route(
    caller: Caller = Depends(require(Permission.READ_ALL_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    records = store.get_all(TestResult)
    return TestResultDirectoryEnvelope(
        test_results=[TestResultWithReferences.model_validate(record) for record in records]
    )

@test_results_router.get("/{record_id}", response_model=TestResultEnvelope, summary="Get a Test Result")
def get_test_result_route(
    record_id: str,
    caller: Caller = Depends(require(Permission.READ_RECORD)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    test_result = store.get_by_id(TestResult, record_id)
    return TestResultEnvelope(test_result=TestResultWithReferences.model_validate(test_result))

@test_results_router.put("/{record_id}", response_model=TestResultEnvelope, summary="Update a Test Result")
def update_test_result_route(
    record_id: str,
    payload: str = Form("{}", description="TestResultUpdate as JSON"),
    report_file: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None),
    caller: Caller = Depends(require(Permission.UPDATE_RECORDS)),
    store: MedicalRecordStore = Depends(get_record_store)
):
    """
    Update a test result, optionally replacing its attachments.

    Only the responsible doctor may change a test result; one recorded
    without a doctor may be updated by any doctor.
    """
    patch = parse_payload(payload, TestResultUpdate)
    test_result = store.update(
        TestResult,
        record_id,
        caller.require_doctor_id(),
        patch,
        report_file=_file(report_file),
        images=_files(images)
    )
    return TestResultEnvelope(
        message="Test result updated successfully",
        test_result=TestResultWithReferences.model_validate(test_result)
    )
