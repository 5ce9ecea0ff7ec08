"""
Tests for the prescription and test result endpoints.
"""
import json

import pytest

from prescripto.medical_records import models

PRESCRIPTIONS = "/api/v1/prescriptions"
TEST_RESULTS = "/api/v1/test-results"


def prescription_body(patient_id, **overrides):
    body = {
        "patient_id": patient_id,
        "diagnosis": "Migraine",
        "symptoms": ["Headache", "Nausea"],
        "medications": [{
            "name": "Ibuprofen",
            "dosage": "400mg",
            "frequency": "Twice a day",
            "duration": "5 days",
            "before_after_meal": "After Meal"
        }],
        "tests_recommended": [{"test_name": "MRI", "urgency": "Routine"}]
    }
    body.update(overrides)
    return body


def result_form(patient_id, **overrides):
    payload = {
        "patient_id": patient_id,
        "test_name": "Urinalysis",
        "test_type": "Urine Test",
        "test_date": "2024-06-13",
        "results": [{"parameter": "pH", "value": "6.0", "normal_range": "4.5-8"}],
        "laboratory_name": "Central Lab"
    }
    payload.update(overrides)
    return {"payload": json.dumps(payload)}


@pytest.fixture
def doctor_headers(doctor, auth_headers):
    return auth_headers(doctor.user)


@pytest.fixture
def patient_headers(patient, auth_headers):
    return auth_headers(patient.user)


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def prescription(client, patient, doctor_headers):
    response = client.post(PRESCRIPTIONS, json=prescription_body(patient.id), headers=doctor_headers)
    return response.json()["prescription"]


def test_doctor_creates_prescription(client, patient, doctor, doctor_headers):
    response = client.post(PRESCRIPTIONS, json=prescription_body(patient.id), headers=doctor_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    prescription = data["prescription"]
    assert prescription["record_id"].startswith("PRES-")
    assert prescription["record_id"].endswith("-001")
    assert prescription["doctor_id"] == doctor.id
    assert prescription["patient_name"] == "Jane Doe"
    assert prescription["status"] == "Active"
    assert prescription["patient"]["email"] == "patient@example.com"
    assert prescription["doctor"]["specialization"] == "General physician"


def test_missing_medications_is_a_validation_error(client, patient, doctor_headers):
    body = prescription_body(patient.id)
    del body["medications"]

    response = client.post(PRESCRIPTIONS, json=body, headers=doctor_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "validation_error"
    assert "medications" in data["message"]


def test_malformed_body_is_a_validation_error(client, doctor_headers):
    response = client.post(PRESCRIPTIONS, json={"patient_id": "abc"}, headers=doctor_headers)
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "validation_error"
    assert "patient_id" in data["message"]


def test_patient_cannot_create(client, patient, patient_headers):
    response = client.post(PRESCRIPTIONS, json=prescription_body(patient.id), headers=patient_headers)
    assert response.json()["code"] == "not_authorized"


def test_token_is_required(client):
    response = client.get(f"{PRESCRIPTIONS}/patient")
    assert response.json() == {
        "success": False,
        "message": "Not authorized, login again",
        "code": "not_authenticated"
    }


def test_patient_lists_only_own_prescriptions(client, make_patient, doctor_headers, auth_headers):
    jane = make_patient()
    john = make_patient(email="john@example.com", full_name="John Roe")
    client.post(PRESCRIPTIONS, json=prescription_body(jane.id), headers=doctor_headers)
    client.post(PRESCRIPTIONS, json=prescription_body(john.id), headers=doctor_headers)
    latest = client.post(PRESCRIPTIONS, json=prescription_body(jane.id), headers=doctor_headers).json()

    response = client.get(f"{PRESCRIPTIONS}/patient", headers=auth_headers(jane.user))

    prescriptions = response.json()["prescriptions"]
    assert [p["patient_id"] for p in prescriptions] == [jane.id, jane.id]
    assert prescriptions[0]["record_id"] == latest["prescription"]["record_id"]


def test_doctor_lists_authored_prescriptions(client, prescription, make_doctor, doctor_headers, auth_headers):
    other = make_doctor(email="wilson@example.com", full_name="Dr. James Wilson")

    mine = client.get(f"{PRESCRIPTIONS}/doctor", headers=doctor_headers).json()["prescriptions"]
    theirs = client.get(f"{PRESCRIPTIONS}/doctor", headers=auth_headers(other.user)).json()["prescriptions"]

    assert [p["record_id"] for p in mine] == [prescription["record_id"]]
    assert theirs == []


def test_admin_lists_all_with_references(client, prescription, admin_headers, doctor_headers):
    response = client.get(PRESCRIPTIONS, headers=admin_headers)
    prescriptions = response.json()["prescriptions"]
    assert len(prescriptions) == 1
    assert prescriptions[0]["patient"]["full_name"] == "Jane Doe"
    assert prescriptions[0]["doctor"]["full_name"] == "Dr. Gregory House"

    assert client.get(PRESCRIPTIONS, headers=doctor_headers).json()["code"] == "not_authorized"


def test_any_role_reads_a_single_prescription(client, prescription, patient_headers):
    response = client.get(f"{PRESCRIPTIONS}/{prescription['record_id']}", headers=patient_headers)
    data = response.json()
    assert data["success"] is True
    assert data["prescription"]["diagnosis"] == "Migraine"
    assert data["prescription"]["appointment"] is None


def test_unknown_record_is_not_found(client, patient_headers):
    response = client.get(f"{PRESCRIPTIONS}/PRES-20240101-999", headers=patient_headers)
    assert response.json() == {"success": False, "message": "Prescription not found", "code": "not_found"}


def test_author_updates_prescription(client, prescription, doctor_headers):
    response = client.put(
        f"{PRESCRIPTIONS}/{prescription['record_id']}",
        json={"status": "Completed", "instructions": "Rest for two days"},
        headers=doctor_headers
    )
    updated = response.json()["prescription"]
    assert updated["status"] == "Completed"
    assert updated["instructions"] == "Rest for two days"
    assert updated["diagnosis"] == "Migraine"


def test_other_doctor_cannot_update(client, prescription, make_doctor, auth_headers, doctor_headers):
    other = make_doctor(email="wilson@example.com", full_name="Dr. James Wilson")

    response = client.put(
        f"{PRESCRIPTIONS}/{prescription['record_id']}",
        json={"diagnosis": "Tension headache"},
        headers=auth_headers(other.user)
    )
    assert response.json()["code"] == "not_authorized"

    stored = client.get(f"{PRESCRIPTIONS}/{prescription['record_id']}", headers=doctor_headers).json()
    assert stored["prescription"]["diagnosis"] == "Migraine"


def test_admin_prescription_stats(client, prescription, admin_headers, doctor_headers):
    stats = client.get(f"{PRESCRIPTIONS}/stats", headers=admin_headers).json()["stats"]
    assert stats["total"] == 1
    assert stats["active"] == 1
    assert stats["completed"] == 0
    assert len(stats["monthly_stats"]) == 1
    assert stats["monthly_stats"][0]["count"] == 1

    assert client.get(f"{PRESCRIPTIONS}/stats", headers=doctor_headers).json()["code"] == "not_authorized"


def test_doctor_creates_test_result_with_attachments(client, storage, patient, doctor_headers):
    files = [
        ("report_file", ("report.pdf", b"%PDF-1.4", "application/pdf")),
        ("images", ("scan-1.png", b"png-1", "image/png")),
        ("images", ("scan-2.png", b"png-2", "image/png")),
    ]
    response = client.post(TEST_RESULTS, data=result_form(patient.id), files=files, headers=doctor_headers)

    data = response.json()
    assert data["success"] is True
    test_result = data["test_result"]
    assert test_result["record_id"].startswith("TEST-")
    assert test_result["status"] == "Pending"
    assert test_result["report_file"] == "https://files.example.com/test-reports/1"
    assert len(test_result["images"]) == 2
    assert storage.images == [b"png-1", b"png-2"]


def test_test_result_without_files(client, patient, doctor_headers):
    response = client.post(TEST_RESULTS, data=result_form(patient.id), headers=doctor_headers)
    test_result = response.json()["test_result"]
    assert test_result["report_file"] is None
    assert test_result["images"] == []


def test_too_many_images_is_rejected(client, storage, patient, doctor_headers):
    files = [("images", (f"scan-{i}.png", b"png", "image/png")) for i in range(6)]
    response = client.post(TEST_RESULTS, data=result_form(patient.id), files=files, headers=doctor_headers)

    assert response.json()["code"] == "validation_error"
    assert storage.images == []


def test_invalid_payload_is_rejected(client, patient, doctor_headers):
    response = client.post(TEST_RESULTS, data={"payload": "{not json"}, headers=doctor_headers)
    assert response.json()["code"] == "validation_error"

    response = client.post(
        TEST_RESULTS,
        data=result_form(patient.id, test_type="Blood Sugar"),
        headers=doctor_headers
    )
    data = response.json()
    assert data["code"] == "validation_error"
    assert "test_type" in data["message"]


def test_failed_upload_is_reported(client, storage, patient, doctor_headers):
    storage.fail = True
    files = [("report_file", ("report.pdf", b"%PDF", "application/pdf"))]
    response = client.post(TEST_RESULTS, data=result_form(patient.id), files=files, headers=doctor_headers)
    assert response.json()["code"] == "upload_failed"


def test_test_result_lifecycle(client, patient, doctor_headers, patient_headers, admin_headers):
    created = client.post(TEST_RESULTS, data=result_form(patient.id), headers=doctor_headers).json()
    record_id = created["test_result"]["record_id"]

    files = [("report_file", ("final.pdf", b"%PDF-final", "application/pdf"))]
    updated = client.put(
        f"{TEST_RESULTS}/{record_id}",
        data={"payload": json.dumps({"status": "Completed", "analysis": "Within normal limits"})},
        files=files,
        headers=doctor_headers
    ).json()["test_result"]
    assert updated["status"] == "Completed"
    assert updated["analysis"] == "Within normal limits"
    assert updated["report_file"] == "https://files.example.com/test-reports/1"

    own = client.get(f"{TEST_RESULTS}/patient", headers=patient_headers).json()["test_results"]
    assert [r["record_id"] for r in own] == [record_id]

    authored = client.get(f"{TEST_RESULTS}/doctor", headers=doctor_headers).json()["test_results"]
    assert [r["record_id"] for r in authored] == [record_id]

    everything = client.get(TEST_RESULTS, headers=admin_headers).json()["test_results"]
    assert everything[0]["patient"]["full_name"] == "Jane Doe"

    single = client.get(f"{TEST_RESULTS}/{record_id}", headers=patient_headers).json()
    assert single["test_result"]["laboratory_name"] == "Central Lab"

    stats = client.get(f"{TEST_RESULTS}/stats", headers=admin_headers).json()["stats"]
    assert (stats["total"], stats["active"], stats["completed"]) == (1, 0, 1)


def test_database_failure_on_read_is_reported_in_envelope(client, db, patient_headers):
    models.Prescription.__table__.drop(bind=db.get_bind())

    response = client.get(f"{PRESCRIPTIONS}/patient", headers=patient_headers)

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "message": "A database error occurred",
        "code": "persistence_error"
    }


def test_test_result_cannot_be_created_cancelled(client, patient, doctor_headers):
    response = client.post(TEST_RESULTS, data=result_form(patient.id, status="Cancelled"), headers=doctor_headers)

    data = response.json()
    assert data["code"] == "validation_error"
    assert "status" in data["message"]
