"""
Test configuration for the records backend.
"""
import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
    os.environ.pop(name, None)

import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prescripto.auth.models import User, UserRole
from prescripto.auth.service import issue_token
from prescripto.core.cloudinary import get_file_storage
from prescripto.core.security import hash_password
from prescripto.database import Base, get_db
from prescripto.doctors.models import Doctor
from prescripto.exceptions import UploadException
from prescripto.main import app
from prescripto.patients.models import Patient

# In-memory test database shared by every connection
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Password123!"
# Hashing is slow; every test user shares one hash
PASSWORD_HASH = hash_password(PASSWORD)


class FakeStorage:
    """
    Stands in for Cloudinary: remembers uploads and returns predictable URLs.
    """
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.reports = []
        self.images = []

    def upload_report(self, file) -> str:
        if self.fail:
            raise UploadException("Upload to test-reports failed")
        self.reports.append(file.read())
        return f"https://files.example.com/test-reports/{len(self.reports)}"

    def upload_image(self, file) -> str:
        if self.fail:
            raise UploadException("Upload to test-images failed")
        self.images.append(file.read())
        return f"https://files.example.com/test-images/{len(self.images)}"


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def storage():
    return FakeStorage()


@pytest.fixture
def failing_storage():
    return FakeStorage(fail=True)


@pytest.fixture(scope="function")
def client(db, storage):
    """
    Create a test client with a test database session and fake file storage.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = {}


def _create_user(db, email: str, full_name: str, role: UserRole) -> User:
    user = User(email=email, full_name=full_name, password_hash=PASSWORD_HASH, role=role)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def make_patient(db):
    """Factory creating a patient user and profile."""
    def _make(email="patient@example.com", full_name="Jane Doe",
              date_of_birth=date(2000, 6, 15), gender="Female", phone="+1-555-0100"):
        user = _create_user(db, email, full_name, UserRole.PATIENT)
        patient = Patient(user_id=user.id, date_of_birth=date_of_birth, gender=gender, phone=phone)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient
    return _make


@pytest.fixture
def make_doctor(db):
    """Factory creating a doctor user and profile."""
    def _make(email="doctor@example.com", full_name="Dr. Gregory House",
              specialization="General physician", phone="+1-555-0200"):
        user = _create_user(db, email, full_name, UserRole.DOCTOR)
        doctor = Doctor(user_id=user.id, specialization=specialization, phone=phone)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor
    return _make


@pytest.fixture
def admin(db):
    user = _create_user(db, "admin@example.com", "Clinic Admin", UserRole.ADMIN)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def auth_headers():
    """Build bearer token headers for a user."""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_token(user)}"}
    return _headers
