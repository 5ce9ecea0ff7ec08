"""
Tests for record identifier formatting and daily sequences.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from prescripto.medical_records import models
from prescripto.medical_records.id_generator import (
    RecordIdGenerator,
    day_bounds,
    format_record_id,
)

UTC = timezone.utc


def test_format_record_id_pads_sequence():
    moment = datetime(2024, 6, 14, 10, 30, tzinfo=UTC)
    assert format_record_id("PRES", moment, 1) == "PRES-20240614-001"
    assert format_record_id("TEST", moment, 42) == "TEST-20240614-042"
    assert format_record_id("TEST", moment, 1234) == "TEST-20240614-1234"


def test_format_record_id_uses_utc_date():
    # 01:00 at UTC+5 is still the previous day in UTC
    moment = datetime(2024, 6, 15, 1, 0, tzinfo=timezone(timedelta(hours=5)))
    assert format_record_id("PRES", moment, 1) == "PRES-20240614-001"


def test_format_record_id_rejects_zero_sequence():
    with pytest.raises(ValueError):
        format_record_id("PRES", datetime(2024, 6, 14, tzinfo=UTC), 0)


def test_day_bounds_cover_the_utc_day():
    start, end = day_bounds(datetime(2024, 6, 14, 23, 59, tzinfo=UTC))
    assert start == datetime(2024, 6, 14, tzinfo=UTC)
    assert end == datetime(2024, 6, 15, tzinfo=UTC)


def test_day_bounds_treat_naive_timestamps_as_utc():
    start, _ = day_bounds(datetime(2024, 6, 14, 8, 0))
    assert start == datetime(2024, 6, 14, tzinfo=UTC)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        RecordIdGenerator("random")


def test_counter_numbers_increase_within_a_day(db):
    generator = RecordIdGenerator("counter")
    morning = datetime(2024, 6, 14, 8, 0, tzinfo=UTC)
    evening = datetime(2024, 6, 14, 20, 0, tzinfo=UTC)

    assert generator.next_id(db, models.Prescription, morning) == "PRES-20240614-001"
    assert generator.next_id(db, models.Prescription, evening) == "PRES-20240614-002"
    assert generator.next_id(db, models.Prescription, evening) == "PRES-20240614-003"


def test_counter_is_kept_per_variant_and_day(db):
    generator = RecordIdGenerator("counter")
    today = datetime(2024, 6, 14, 8, 0, tzinfo=UTC)
    tomorrow = datetime(2024, 6, 15, 0, 5, tzinfo=UTC)

    generator.next_id(db, models.Prescription, today)
    generator.next_id(db, models.Prescription, today)

    assert generator.next_id(db, models.TestResult, today) == "TEST-20240614-001"
    assert generator.next_id(db, models.Prescription, tomorrow) == "PRES-20240615-001"

    last_value = (
        db.query(models.RecordSequence.last_value)
        .filter(models.RecordSequence.prefix == "PRES", models.RecordSequence.day == date(2024, 6, 14))
        .scalar()
    )
    assert last_value == 2
