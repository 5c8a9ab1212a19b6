"""
Repository classes for growth records.

The growth record store keeps each subject's measurements in timestamp
order. It is append-only from the engine's point of view: records are never
overwritten, and removal is a caller-level operation.
"""

from __future__ import annotations

import logging
import threading
from bisect import insort
from datetime import datetime, timedelta
from typing import Optional

from src.exceptions import DuplicateRecordError, OutOfOrderError
from src.models import MeasurementRecord

logger = logging.getLogger(__name__)

DEFAULT_ORDERING_TOLERANCE = timedelta(hours=24)


def _timestamp(record: MeasurementRecord) -> datetime:
  return record.timestamp


class GrowthRecordRepository:
  """
  In-memory store of measurement records, one ordered sequence per subject.

  Ordering policy: a record may be entered late (manual data entry lag) as
  long as its timestamp is no earlier than the subject's latest stored
  timestamp minus `ordering_tolerance`. Such records are inserted at their
  chronological position; records with equal timestamps keep insertion order.
  Anything older is rejected with OutOfOrderError and the store is unchanged.

  Writers for one subject are serialized by a per-subject lock. Readers get
  immutable tuple snapshots and never block.
  """

  def __init__(self, ordering_tolerance: timedelta = DEFAULT_ORDERING_TOLERANCE):
    """
    Initialize an empty repository.

    Args:
      ordering_tolerance: How far behind the latest record a new record may be.
    """
    if ordering_tolerance < timedelta(0):
      raise ValueError("ordering_tolerance must not be negative")
    self.ordering_tolerance = ordering_tolerance
    self._records: dict[str, tuple[MeasurementRecord, ...]] = {}
    self._locks: dict[str, threading.Lock] = {}
    self._locks_guard = threading.Lock()

  def _lock_for(self, subject_id: str) -> threading.Lock:
    with self._locks_guard:
      lock = self._locks.get(subject_id)
      if lock is None:
        lock = self._locks[subject_id] = threading.Lock()
      return lock

  def append(self, record: MeasurementRecord) -> MeasurementRecord:
    """
    Store a new record.

    Raises:
      OutOfOrderError: If the record is older than the tolerance allows.
      DuplicateRecordError: If the record id is already stored for the subject.
    """
    subject_id = record.subject_id
    with self._lock_for(subject_id):
      current = self._records.get(subject_id, ())

      if any(r.id == record.id for r in current):
        raise DuplicateRecordError(
          f"Record {record.id} already stored for subject {subject_id}"
        )

      if current:
        latest = current[-1].timestamp
        if record.timestamp < latest - self.ordering_tolerance:
          logger.warning(
            "Rejected out-of-order record %s for subject %s (%s < %s)",
            record.id, subject_id, record.timestamp.isoformat(), latest.isoformat(),
          )
          raise OutOfOrderError(subject_id, record.timestamp, latest, self.ordering_tolerance)

      updated = list(current)
      insort(updated, record, key=_timestamp)
      self._records[subject_id] = tuple(updated)

    logger.debug("Stored record %s for subject %s", record.id, subject_id)
    return record

  def all_for(self, subject_id: str) -> tuple[MeasurementRecord, ...]:
    """All records for a subject, timestamp ascending."""
    return self._records.get(subject_id, ())

  def latest_for(self, subject_id: str) -> Optional[MeasurementRecord]:
    """Most recent record for a subject, or None."""
    records = self._records.get(subject_id, ())
    return records[-1] if records else None

  def get(self, subject_id: str, record_id: str) -> Optional[MeasurementRecord]:
    """Get a record by id."""
    for record in self._records.get(subject_id, ()):
      if record.id == record_id:
        return record
    return None

  def remove(self, subject_id: str, record_id: str) -> bool:
    """
    Delete a record. Returns True if a record was removed.

    Only callers delete records; the engine itself never does.
    """
    with self._lock_for(subject_id):
      current = self._records.get(subject_id, ())
      remaining = tuple(r for r in current if r.id != record_id)
      if len(remaining) == len(current):
        return False
      self._records[subject_id] = remaining

    logger.debug("Removed record %s for subject %s", record_id, subject_id)
    return True

  def count(self, subject_id: str) -> int:
    return len(self._records.get(subject_id, ()))

  def subjects(self) -> list[str]:
    return sorted(s for s, records in self._records.items() if records)
