"""
Record ID Generator - Human-readable, date-scoped identifiers for medical records.

Identifiers look like ``PRES-20240614-001``: the variant prefix, the UTC
calendar date the record was created on, and a 1-based sequence number that
restarts every day for each variant.

Two sequence strategies are available:

- ``CounterSequence`` (default) keeps one ``record_sequences`` row per
  (prefix, day) and increments it with a single UPDATE statement inside the
  caller's transaction. The row lock is held until the record insert commits,
  so concurrent creators are serialized and never share a number.
- ``CountingSequence`` counts the records of the variant created that day and
  adds one. Two creators running at the same moment can read the same count;
  the unique index on ``record_id`` then rejects the second insert.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple, Type
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import MedicalRecordMixin, RecordSequence

# Set up logging
logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 3


def to_utc(moment: datetime) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Naive timestamps are taken to already be in UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """
    Get the UTC day window containing a timestamp.

    Args:
        moment: Any timestamp

    Returns:
        Tuple of (start of day, start of next day), both aware UTC datetimes
    """
    start = datetime.combine(to_utc(moment).date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def format_record_id(prefix: str, moment: datetime, sequence: int) -> str:
    """
    Format a record identifier.

    Args:
        prefix: Variant prefix (PRES or TEST)
        moment: Creation timestamp; its UTC date is embedded
        sequence: 1-based sequence number for the day

    Returns:
        str: Identifier such as ``PRES-20240614-001``
    """
    if sequence < 1:
        raise ValueError(f"Sequence numbers start at 1, got {sequence}")
    return f"{prefix}-{to_utc(moment):%Y%m%d}-{sequence:0{SEQUENCE_WIDTH}d}"


class CountingSequence:
    """Next number = records of the variant already created that day + 1."""

    name = "count"

    def next_value(self, db: Session, model: Type[MedicalRecordMixin], moment: datetime) -> int:
        start, end = day_bounds(moment)
        existing = (
            db.query(func.count(model.id))
            .filter(model.created_at >= start, model.created_at < end)
            .scalar()
        )
        return (existing or 0) + 1


class CounterSequence:
    """Next number comes from an atomic increment of the (prefix, day) counter row."""

    name = "counter"

    def next_value(self, db: Session, model: Type[MedicalRecordMixin], moment: datetime) -> int:
        prefix = model.ID_PREFIX
        day = to_utc(moment).date()

        if not self._increment(db, prefix, day):
            try:
                with db.begin_nested():
                    db.add(RecordSequence(prefix=prefix, day=day, last_value=1))
                return 1
            except IntegrityError:
                # Another writer created today's row first; increment theirs
                logger.info(f"Sequence row {prefix}/{day} created concurrently, incrementing")
                self._increment(db, prefix, day)

        return (
            db.query(RecordSequence.last_value)
            .filter(RecordSequence.prefix == prefix, RecordSequence.day == day)
            .scalar()
        )

    @staticmethod
    def _increment(db: Session, prefix: str, day: date) -> int:
        return (
            db.query(RecordSequence)
            .filter(RecordSequence.prefix == prefix, RecordSequence.day == day)
            .update(
                {RecordSequence.last_value: RecordSequence.last_value + 1},
                synchronize_session=False,
            )
        )


SEQUENCE_STRATEGIES = {
    CounterSequence.name: CounterSequence,
    CountingSequence.name: CountingSequence,
}


class RecordIdGenerator:
    """
    Assigns ``<PREFIX>-<YYYYMMDD>-<NNN>`` identifiers to new records.

    The generator works inside the caller's session and never commits; the
    sequence step and the record insert succeed or fail together.
    """

    def __init__(self, strategy: str = CounterSequence.name):
        try:
            self.sequence = SEQUENCE_STRATEGIES[strategy]()
        except KeyError:
            raise ValueError(f"Unknown record id strategy: {strategy}")

    def next_id(self, db: Session, model: Type[MedicalRecordMixin], moment: datetime) -> str:
        """
        Generate the identifier for a record of ``model`` created at ``moment``.

        Args:
            db: Database session the record will be inserted with
            model: Record model class (provides ``ID_PREFIX``)
            moment: Creation timestamp of the record

        Returns:
            str: The new record identifier
        """
        sequence = self.sequence.next_value(db, model, moment)
        record_id = format_record_id(model.ID_PREFIX, moment, sequence)
        logger.debug(f"Assigned {record_id} using {self.sequence.name} strategy")
        return record_id
