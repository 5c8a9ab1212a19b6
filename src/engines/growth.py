"""
Growth tracking service.

Orchestrates the record store, the percentile calculator and the alert rules
for many subjects. Every operation is synchronous; writes for one subject are
serialized, writes for different subjects never wait on each other, and reads
work on immutable snapshots.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Iterable

from knowledge.growth import (
    ReferenceTable,
    compute_standing,
    load_reference_table,
    validate_measurement,
)
from src.config import GrowthSettings, get_settings
from src.db import GrowthRecordRepository
from src.exceptions import (
    GrowthError,
    InvalidMeasurementError,
    NoDataError,
    OutOfRangeError,
    ProfileConflictError,
    UnknownSubjectError,
)
from src.models import (
    GrowthAlert,
    GrowthRate,
    GrowthRateMethod,
    GrowthSummary,
    HistoryEntry,
    MeasurementRecord,
    Metric,
    Standing,
    SubjectProfile,
    TrendPoint,
)

from .alerts import evaluate_alerts
from .velocity import compute_growth_rate

logger = logging.getLogger(__name__)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


class GrowthTrackingService:
    """
    Growth analytics for a set of subjects.

    Subject profiles (sex and birth time) come from the caller, either up
    front or via register_subject().
    """

    def __init__(
        self,
        store: GrowthRecordRepository | None = None,
        table: ReferenceTable | None = None,
        settings: GrowthSettings | None = None,
        profiles: Iterable[SubjectProfile] = (),
    ):
        self.settings = settings or get_settings()
        self.store = store or GrowthRecordRepository(
            ordering_tolerance=self.settings.store.ordering_tolerance
        )
        self.table = table or load_reference_table(self.settings.reference_dataset)

        self._profiles: dict[str, SubjectProfile] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # subject_id -> {(record_id, metric): Standing}
        self._standing_cache: dict[str, dict[tuple[str, Metric], Standing]] = {}

        for profile in profiles:
            self.register_subject(profile)

    # -------------------------------------------------------------------------
    # Subjects
    # -------------------------------------------------------------------------

    def register_subject(self, profile: SubjectProfile) -> None:
        """
        Register or replace the profile for a subject.

        Raises:
            ProfileConflictError: If the birth time changes for a subject that
                already has records.
        """
        with self._lock_for(profile.subject_id):
            current = self._profiles.get(profile.subject_id)
            if (
                current is not None
                and current.birth_time != profile.birth_time
                and self.store.count(profile.subject_id)
            ):
                raise ProfileConflictError(
                    profile.subject_id, current.birth_time, profile.birth_time
                )
            self._profiles[profile.subject_id] = profile
            # Sex may have changed
            self._invalidate(profile.subject_id)

    def profile_for(self, subject_id: str) -> SubjectProfile:
        profile = self._profiles.get(subject_id)
        if profile is None:
            raise UnknownSubjectError(subject_id)
        return profile

    def _lock_for(self, subject_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(subject_id)
            if lock is None:
                lock = self._locks[subject_id] = threading.Lock()
            return lock

    def _invalidate(self, subject_id: str) -> None:
        if self._standing_cache.pop(subject_id, None):
            logger.debug("Dropped cached standings for subject %s", subject_id)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_measurement(
        self,
        subject_id: str,
        timestamp: datetime,
        weight_kg: float,
        height_cm: float,
        head_circumference_cm: float | None = None,
    ) -> MeasurementRecord:
        """
        Validate and store a new measurement.

        Raises:
            UnknownSubjectError: If the subject has no profile.
            InvalidMeasurementError: For non-positive or non-finite values, a
                timestamp before the subject's birth, or a timestamp whose
                timezone-awareness differs from the birth time's.
            OutOfOrderError: If the timestamp violates the store's ordering policy.
        """
        self.profile_for(subject_id)

        weight_kg = validate_measurement(weight_kg, Metric.WEIGHT)
        height_cm = validate_measurement(height_cm, Metric.HEIGHT)
        if head_circumference_cm is not None:
            head_circumference_cm = validate_measurement(
                head_circumference_cm, Metric.HEAD_CIRCUMFERENCE
            )

        with self._lock_for(subject_id):
            # Age comes from the profile in force when the record is stored
            profile = self.profile_for(subject_id)
            if _is_aware(timestamp) != _is_aware(profile.birth_time):
                raise InvalidMeasurementError(
                    f"Measurement at {timestamp.isoformat()} and birth time "
                    f"{profile.birth_time.isoformat()} of subject {subject_id} must both "
                    f"be timezone-aware or both naive"
                )

            age_in_days = profile.age_in_days(timestamp)
            if age_in_days < 0:
                raise InvalidMeasurementError(
                    f"Measurement at {timestamp.isoformat()} is before the birth of "
                    f"subject {subject_id} ({profile.birth_time.isoformat()})"
                )

            record = MeasurementRecord(
                subject_id=subject_id,
                timestamp=timestamp,
                age_in_days=age_in_days,
                weight_kg=weight_kg,
                height_cm=height_cm,
                head_circumference_cm=head_circumference_cm,
            )
            self.store.append(record)
            self._invalidate(subject_id)

        logger.debug(
            "Recorded measurement %s for subject %s at %.2f months",
            record.id, subject_id, record.age_in_months,
        )
        return record

    def delete_measurement(self, subject_id: str, record_id: str) -> bool:
        """Remove a record on the caller's behalf. Returns True if one was removed."""
        with self._lock_for(subject_id):
            removed = self.store.remove(subject_id, record_id)
            if removed:
                self._invalidate(subject_id)
        return removed

    # -------------------------------------------------------------------------
    # Standings
    # -------------------------------------------------------------------------

    def standing_for(self, record: MeasurementRecord, metric: Metric | str) -> Standing:
        """
        Standing of one record for one metric, memoized per (record, metric).

        Raises:
            NoDataError: If the record does not carry the metric.
            OutOfRangeError: If the record's age is outside the reference range.
        """
        metric = Metric(metric)
        key = (record.id, metric)
        cache = self._standing_cache.get(record.subject_id)
        if cache is not None and key in cache:
            return cache[key]

        value = record.value_for(metric)
        if value is None:
            raise NoDataError(f"Record {record.id} has no {metric.value} measurement")

        profile = self.profile_for(record.subject_id)
        standing = compute_standing(
            metric, profile.sex, record.age_in_months, value, self.table
        )
        with self._lock_for(record.subject_id):
            # Skip the write if the profile was replaced while computing
            if self._profiles.get(record.subject_id) is profile:
                self._standing_cache.setdefault(record.subject_id, {})[key] = standing
        return standing

    def current_standing(self, subject_id: str, metric: Metric | str) -> Standing:
        """
        Standing of the latest record carrying the metric.

        Raises:
            NoDataError: If no record carries the metric.
            OutOfRangeError / InvalidMeasurementError: From the calculator.
        """
        metric = Metric(metric)
        for record in reversed(self.store.all_for(subject_id)):
            if record.value_for(metric) is not None:
                return self.standing_for(record, metric)
        raise NoDataError(f"No {metric.value} measurements for subject {subject_id}")

    def history(self, subject_id: str) -> list[HistoryEntry]:
        """
        Ordered records with their standings.

        Metrics a record does not carry, or whose age is outside the
        reference range, are left out of that record's standings.
        """
        entries = []
        for record in self.store.all_for(subject_id):
            standings = {}
            for metric in Metric:
                if record.value_for(metric) is None:
                    continue
                try:
                    standings[metric] = self.standing_for(record, metric)
                except OutOfRangeError:
                    continue
            entries.append(HistoryEntry(record=record, standings=standings))
        return entries

    # -------------------------------------------------------------------------
    # Velocity, alerts, trends
    # -------------------------------------------------------------------------

    def growth_rate(
        self,
        subject_id: str,
        metric: Metric | str,
        window_days: float | None = None,
        method: GrowthRateMethod | str = GrowthRateMethod.ENDPOINTS,
    ) -> GrowthRate:
        """
        Velocity of a metric in units per month over a trailing window.

        Raises:
            InsufficientDataError: Fewer than two records carry the metric, or
                the selected records are too close together in time.
        """
        if window_days is None:
            window_days = self.settings.rates.default_window_days
        return compute_growth_rate(
            self.store.all_for(subject_id),
            metric,
            window_days,
            method=method,
            min_time_delta_days=self.settings.rates.min_time_delta_days,
        )

    def active_alerts(self, subject_id: str) -> list[GrowthAlert]:
        """Evaluate every alert rule over the subject's full history."""
        history = self.history(subject_id)
        if not history:
            return []
        return evaluate_alerts(history, self.settings)

    def growth_trend(self, subject_id: str, metric: Metric | str) -> list[TrendPoint]:
        """Time series of a metric with percentiles where available."""
        metric = Metric(metric)
        points = []
        for entry in self.history(subject_id):
            value = entry.record.value_for(metric)
            if value is None:
                continue
            standing = entry.standings.get(metric)
            points.append(TrendPoint(
                record_id=entry.record.id,
                timestamp=entry.record.timestamp,
                age_months=entry.record.age_in_months,
                value=value,
                percentile=standing.percentile if standing else None,
            ))
        return points

    def summary(self, subject_id: str, window_days: float | None = None) -> GrowthSummary:
        """
        Latest standings, rates and alerts in one model.

        Metrics without a standing or rate are listed in `unavailable` with
        the reason, never filled with a default.
        """
        summary = GrowthSummary(
            subject_id=subject_id,
            record_count=self.store.count(subject_id),
        )
        for metric in Metric:
            try:
                summary.standings[metric] = self.current_standing(subject_id, metric)
            except GrowthError as e:
                summary.unavailable[f"{metric.value}_standing"] = str(e)
            try:
                summary.rates[metric] = self.growth_rate(subject_id, metric, window_days)
            except GrowthError as e:
                summary.unavailable[f"{metric.value}_rate"] = str(e)
        summary.alerts = self.active_alerts(subject_id)
        return summary
