"""
Medical Record Service - Business logic for prescriptions and test results.

``MedicalRecordStore`` is built per request around a database session and
the file storage client created at startup. Every operation takes the record
variant (``Prescription`` or ``TestResult``) as its first argument where both
variants behave the same way.
"""
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Sequence, Type
from datetime import date, datetime, timezone
import calendar
import logging

from pydantic import BaseModel
from sqlalchemy import extract, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..appointments.models import Appointment
from ..core.audit_service import record_audit_entry
from ..core.cloudinary import CloudinaryStorage
from ..config import settings
from ..doctors.models import Doctor
from ..exceptions import (
    AuthorizationException,
    NotFoundException,
    PersistenceException,
    UploadException,
    ValidationException
)
from ..patients.models import Patient
from .id_generator import RecordIdGenerator
from .models import MedicalRecordMixin, Prescription, PrescriptionStatus, TestResult
from .schemas import PrescriptionCreate, TestResultCreate

# Set up logging
logger = logging.getLogger(__name__)

RecordVariant = Type[MedicalRecordMixin]

PRESCRIPTION_REQUIRED = ("patient_id", "diagnosis", "medications")
TEST_RESULT_REQUIRED = ("patient_id", "test_name", "test_type", "test_date", "results")

# Columns holding lists of payload items, stored as JSON
JSON_LIST_FIELDS = {"symptoms", "medications", "tests_recommended", "results", "images"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_age(date_of_birth: Optional[date], on: date) -> Optional[int]:
    """
    Whole years between a date of birth and a given day.

    One year is taken off when the birthday has not yet been reached in the
    year of ``on``.

    Args:
        date_of_birth: Date of birth, or None when unknown
        on: Day the age is computed for

    Returns:
        Age in years, or None when the date of birth is unknown
    """
    if date_of_birth is None:
        return None
    age = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def months_before(moment: datetime, months: int) -> datetime:
    """
    Same instant ``months`` calendar months earlier.

    The day of month is clamped to the length of the target month
    (e.g. 31 August minus 6 months is 28/29 February).
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def utc_timestamp(column, dialect_name: str):
    """
    Read a timezone-aware timestamp column as UTC wall-clock time.

    PostgreSQL evaluates ``extract()`` on ``timestamptz`` in the session time
    zone; SQLite stores the UTC value as written.
    """
    if dialect_name == "postgresql":
        return func.timezone("UTC", column)
    return column


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _audit_name(variant: RecordVariant) -> str:
    return variant.LABEL.upper().replace(" ", "_")


def _to_column_value(field: str, value: Any) -> Any:
    if field in JSON_LIST_FIELDS and value is not None:
        return [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in value]
    return value


class MedicalRecordStore:
    """
    Persists prescriptions and test results with role-scoped read/write rules.

    Args:
        db: Database session; the store commits on successful writes and
            rolls back on failures
        storage: File storage used for test result attachments
        clock: Returns the current time as an aware UTC datetime
        id_generator: Assigns record identifiers
        max_images: Maximum number of images per test result
        stats_window_months: Months covered by monthly statistics
        ip_address: Client address recorded on audit entries
    """

    def __init__(
        self,
        db: Session,
        storage: Optional[CloudinaryStorage] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_generator: Optional[RecordIdGenerator] = None,
        max_images: Optional[int] = None,
        stats_window_months: Optional[int] = None,
        ip_address: Optional[str] = None
    ):
        self.db = db
        self.storage = storage
        self.clock = clock or utc_now
        self.id_generator = id_generator or RecordIdGenerator(settings.record_id_strategy)
        self.max_images = settings.max_test_images if max_images is None else max_images
        self.stats_window_months = (
            settings.stats_window_months if stats_window_months is None else stats_window_months
        )
        self.ip_address = ip_address

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        variant: RecordVariant,
        payload: BaseModel,
        author_doctor_id: int,
        report_file: Optional[BinaryIO] = None,
        images: Optional[Sequence[BinaryIO]] = None
    ) -> MedicalRecordMixin:
        """
        Create a record of the given variant authored by a doctor.

        Raises:
            ValidationException: If required fields are missing
            NotFoundException: If the patient, doctor or appointment is absent
            UploadException: If an attachment could not be uploaded
            PersistenceException: If the record could not be saved
        """
        if variant is Prescription:
            return self.create_prescription(payload, author_doctor_id)
        if variant is TestResult:
            return self.create_test_result(payload, author_doctor_id, report_file, images)
        raise ValueError(f"Unsupported record variant: {variant!r}")

    def create_prescription(self, data: PrescriptionCreate, author_doctor_id: int) -> Prescription:
        """
        Create a prescription.

        Patient name, gender and age (at the time of writing) and the doctor's
        name and specialization are copied onto the record.

        Args:
            data: Prescription fields
            author_doctor_id: Doctor profile ID of the author

        Returns:
            Prescription: The saved prescription
        """
        self._require(data, PRESCRIPTION_REQUIRED)

        patient = self._get_patient(data.patient_id)
        doctor = self._get_doctor(author_doctor_id)
        if data.appointment_id is not None:
            self._get_appointment(data.appointment_id)

        now = self.clock()
        prescription = Prescription(
            patient_id=patient.id,
            patient_name=patient.full_name,
            patient_age=compute_age(patient.date_of_birth, now.date()),
            patient_gender=patient.gender,
            doctor_id=doctor.id,
            doctor_name=doctor.full_name,
            doctor_specialization=doctor.specialization,
            appointment_id=data.appointment_id,
            diagnosis=data.diagnosis,
            symptoms=list(data.symptoms),
            medications=_to_column_value("medications", data.medications),
            tests_recommended=_to_column_value("tests_recommended", data.tests_recommended),
            instructions=data.instructions,
            follow_up_date=data.follow_up_date,
            status=PrescriptionStatus.ACTIVE,
            created_at=now,
            updated_at=now
        )
        return self._insert(prescription, user_id=doctor.user_id)

    def create_test_result(
        self,
        data: TestResultCreate,
        author_doctor_id: int,
        report_file: Optional[BinaryIO] = None,
        images: Optional[Sequence[BinaryIO]] = None
    ) -> TestResult:
        """
        Create a test result, uploading its attachments first.

        Args:
            data: Test result fields
            author_doctor_id: Doctor profile ID of the author
            report_file: Optional report file to upload
            images: Optional images to upload

        Returns:
            TestResult: The saved test result
        """
        self._require(data, TEST_RESULT_REQUIRED)
        images = list(images or [])
        self._check_image_count(images)

        patient = self._get_patient(data.patient_id)
        doctor = self._get_doctor(author_doctor_id)

        report_url = self._upload_report(report_file) if report_file is not None else None
        image_urls = self._upload_images(images)

        now = self.clock()
        test_result = TestResult(
            patient_id=patient.id,
            patient_name=patient.full_name,
            doctor_id=doctor.id,
            doctor_name=doctor.full_name,
            test_name=data.test_name,
            test_type=data.test_type,
            test_date=data.test_date,
            result_date=now,
            results=_to_column_value("results", data.results),
            laboratory_name=data.laboratory_name,
            laboratory_address=data.laboratory_address,
            report_file=report_url,
            images=image_urls,
            analysis=data.analysis,
            comments=data.comments,
            recommendations=data.recommendations,
            priority=data.priority,
            status=data.status,
            created_at=now,
            updated_at=now
        )
        return self._insert(test_result, user_id=doctor.user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_patient(self, variant: RecordVariant, patient_id: int) -> List[MedicalRecordMixin]:
        """Records of a patient, newest first."""
        return self._newest_first(
            self.db.query(variant).filter(variant.patient_id == patient_id),
            variant
        ).all()

    def get_by_doctor(self, variant: RecordVariant, doctor_id: int) -> List[MedicalRecordMixin]:
        """Records authored by a doctor, newest first."""
        return self._newest_first(
            self.db.query(variant).filter(variant.doctor_id == doctor_id),
            variant
        ).all()

    def get_all(self, variant: RecordVariant) -> List[MedicalRecordMixin]:
        """All records with patient and doctor resolved, newest first."""
        query = self.db.query(variant).options(*self._reference_loads(variant))
        return self._newest_first(query, variant).all()

    def get_by_id(self, variant: RecordVariant, record_id: str) -> MedicalRecordMixin:
        """
        Get one record with its references resolved.

        Args:
            variant: Record variant
            record_id: Human-readable record identifier

        Raises:
            NotFoundException: If no such record exists
        """
        record = (
            self.db.query(variant)
            .options(*self._reference_loads(variant))
            .filter(variant.record_id == record_id)
            .first()
        )
        if not record:
            raise NotFoundException(f"{variant.LABEL} not found")
        return record

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update(
        self,
        variant: RecordVariant,
        record_id: str,
        caller_doctor_id: int,
        patch: BaseModel,
        report_file: Optional[BinaryIO] = None,
        images: Optional[Sequence[BinaryIO]] = None
    ) -> MedicalRecordMixin:
        """
        Apply a patch to a record on behalf of its authoring doctor.

        Test results without an assigned doctor may be updated by any doctor.
        New attachments replace the stored report file and image list.

        Args:
            variant: Record variant
            record_id: Human-readable record identifier
            caller_doctor_id: Doctor profile ID of the caller
            patch: Update schema; only fields that were set are applied
            report_file: Optional replacement report file (test results)
            images: Optional replacement images (test results)

        Returns:
            The updated record

        Raises:
            NotFoundException: If the record does not exist
            AuthorizationException: If the caller is not the record's doctor
            ValidationException: If the patch clears a required field
            UploadException: If an attachment could not be uploaded
            PersistenceException: If the change could not be saved
        """
        record = self.db.query(variant).filter(variant.record_id == record_id).first()
        if not record:
            raise NotFoundException(f"{variant.LABEL} not found")

        if record.doctor_id is not None and record.doctor_id != caller_doctor_id:
            logger.warning(f"Doctor {caller_doctor_id} tried to update {record_id} authored by doctor {record.doctor_id}")
            raise AuthorizationException(f"Not authorized to update this {variant.LABEL.lower()}")

        changes = self._collect_changes(variant, patch)

        if variant is TestResult:
            images = list(images or [])
            self._check_image_count(images)
            if report_file is not None:
                changes["report_file"] = self._upload_report(report_file)
            if images:
                changes["images"] = self._upload_images(images)
        elif report_file is not None or images:
            raise ValidationException(f"{variant.LABEL} records do not take attachments")

        for field, value in changes.items():
            setattr(record, field, value)
        record.touch(self.clock())

        caller = self.db.query(Doctor).filter(Doctor.id == caller_doctor_id).first()
        record_audit_entry(
            self.db,
            action=f"{_audit_name(variant)}_UPDATED",
            user_id=caller.user_id if caller else None,
            ip_address=self.ip_address,
            details={
                "record_id": record.record_id,
                "caller_doctor_id": caller_doctor_id,
                "fields": sorted(changes)
            }
        )
        self._commit(f"Error updating {record_id}")
        self.db.refresh(record)
        logger.info(f"{variant.LABEL} {record_id} updated by doctor {caller_doctor_id}: {sorted(changes)}")
        return record

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self, variant: RecordVariant) -> Dict[str, Any]:
        """
        Aggregate counts for a record variant.

        Returns:
            Dict with ``total``, ``active`` (open records), ``completed`` and
            ``monthly_stats``: one ``{year, month, count}`` entry per calendar
            month with records in the trailing window, oldest first
        """
        count = func.count(variant.id)
        total = self.db.query(count).scalar()
        active = self.db.query(count).filter(variant.status == variant.OPEN_STATUS).scalar()
        completed = self.db.query(count).filter(variant.status == variant.COMPLETED_STATUS).scalar()

        window_start = months_before(self.clock(), self.stats_window_months)
        created_at = utc_timestamp(variant.created_at, self.db.get_bind().dialect.name)
        year = extract("year", created_at)
        month = extract("month", created_at)
        rows = (
            self.db.query(year.label("year"), month.label("month"), count.label("count"))
            .filter(variant.created_at >= window_start)
            .group_by(year, month)
            .order_by(year, month)
            .all()
        )

        return {
            "total": total or 0,
            "active": active or 0,
            "completed": completed or 0,
            "monthly_stats": [
                {"year": int(row_year), "month": int(row_month), "count": row_count}
                for row_year, row_month, row_count in rows
            ]
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require(data: BaseModel, fields: Sequence[str]) -> None:
        missing = [field for field in fields if _is_blank(getattr(data, field, None))]
        if missing:
            raise ValidationException(f"Missing required fields: {', '.join(missing)}")

    def _check_image_count(self, images: Sequence[BinaryIO]) -> None:
        if len(images) > self.max_images:
            raise ValidationException(f"At most {self.max_images} images can be attached")

    @staticmethod
    def _collect_changes(variant: RecordVariant, patch: BaseModel) -> Dict[str, Any]:
        columns = variant.__table__.columns
        changes = {}
        for field in patch.model_fields_set:
            value = getattr(patch, field)
            if value is None and not columns[field].nullable:
                raise ValidationException(f"Field '{field}' cannot be empty")
            changes[field] = _to_column_value(field, value)
        return changes

    def _get_patient(self, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise NotFoundException("Patient not found")
        return patient

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundException("Doctor not found")
        return doctor

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFoundException("Appointment not found")
        return appointment

    def _require_storage(self) -> CloudinaryStorage:
        if self.storage is None:
            raise UploadException("File storage is not configured")
        return self.storage

    def _upload_report(self, report_file: BinaryIO) -> str:
        return self._require_storage().upload_report(report_file)

    def _upload_images(self, images: Sequence[BinaryIO]) -> List[str]:
        if not images:
            return []
        storage = self._require_storage()
        return [storage.upload_image(image) for image in images]

    @staticmethod
    def _newest_first(query, variant: RecordVariant):
        # id breaks ties between records created in the same instant
        return query.order_by(variant.created_at.desc(), variant.id.desc())

    @staticmethod
    def _reference_loads(variant: RecordVariant) -> list:
        loads = [
            joinedload(variant.patient).joinedload(Patient.user),
            joinedload(variant.doctor).joinedload(Doctor.user)
        ]
        if variant is Prescription:
            loads.append(joinedload(Prescription.appointment))
        return loads

    def _insert(self, record: MedicalRecordMixin, user_id: Optional[int]) -> MedicalRecordMixin:
        variant = type(record)
        try:
            record.record_id = self.id_generator.next_id(self.db, variant, record.created_at)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error assigning {variant.LABEL.lower()} id: {str(e)}")
            raise PersistenceException(f"Could not save {variant.LABEL.lower()}")

        self.db.add(record)
        record_audit_entry(
            self.db,
            action=f"{_audit_name(variant)}_CREATED",
            user_id=user_id,
            ip_address=self.ip_address,
            details={"record_id": record.record_id, "patient_id": record.patient_id}
        )
        self._commit(f"Could not save {variant.LABEL.lower()}")
        self.db.refresh(record)
        logger.info(f"{variant.LABEL} {record.record_id} created for patient {record.patient_id}")
        return record

    def _commit(self, failure_message: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{failure_message}: {str(e)}")
            raise PersistenceException(failure_message)
