"""
Typed errors for the growth analytics engine.

Every condition here changes what a caller should tell the end user
("no measurement yet" vs. "outside the reference charts"), so none of them
is ever replaced by a default value inside the engine.
"""

from __future__ import annotations


class GrowthError(Exception):
    """Base class for all growth engine errors."""
    pass


class ReferenceDataError(GrowthError):
    """
    Raised when an embedded reference dataset fails validation at load time.

    This indicates corrupt reference data and is fatal: no percentile
    computed from such a table would be defensible.
    """
    pass


class OutOfRangeError(GrowthError):
    """Raised when an age falls outside the supported reference range."""

    def __init__(
        self,
        metric: str,
        sex: str,
        age_months: float,
        min_age: float,
        max_age: float,
    ):
        self.metric = metric
        self.sex = sex
        self.age_months = age_months
        self.min_age = min_age
        self.max_age = max_age
        super().__init__(
            f"Age {age_months:.2f} months is outside the {metric} reference "
            f"range for {sex} ({min_age:g}-{max_age:g} months)"
        )


class InvalidMeasurementError(GrowthError, ValueError):
    """Raised for non-positive or non-finite measurement values."""
    pass


class OutOfOrderError(GrowthError):
    """Raised when a record is older than the subject's ordering tolerance allows."""

    def __init__(self, subject_id: str, timestamp, latest_timestamp, tolerance):
        self.subject_id = subject_id
        self.timestamp = timestamp
        self.latest_timestamp = latest_timestamp
        self.tolerance = tolerance
        super().__init__(
            f"Measurement at {timestamp.isoformat()} for subject {subject_id} is "
            f"earlier than the latest record ({latest_timestamp.isoformat()}) "
            f"by more than {tolerance}"
        )


class DuplicateRecordError(GrowthError):
    """Raised when a record id is already stored for the subject."""
    pass


class NoDataError(GrowthError):
    """Raised when no record carries the requested metric."""
    pass


class InsufficientDataError(GrowthError):
    """
    Raised when a growth rate cannot be computed.

    Either fewer than two records carry the metric, or the selected records
    are too close together in time for a bounded rate.
    """
    pass


class UnknownSubjectError(GrowthError):
    """Raised when a subject has no registered profile (sex and birth time)."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Unknown subject: {subject_id}")


class ProfileConflictError(GrowthError):
    """
    Raised when a re-registered profile moves the birth time of a subject
    that already has records, whose ages were derived from the old one.
    """

    def __init__(self, subject_id: str, old_birth_time, new_birth_time):
        self.subject_id = subject_id
        self.old_birth_time = old_birth_time
        self.new_birth_time = new_birth_time
        super().__init__(
            f"Subject {subject_id} has records aged from birth time "
            f"{old_birth_time.isoformat()}; cannot change it to {new_birth_time.isoformat()}"
        )
