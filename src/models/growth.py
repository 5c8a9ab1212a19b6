"""
Core data models for growth tracking.

These Pydantic models define the records, standings, rates and alerts that
flow between the reference tables, the record store and the tracking service.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import NamedTuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field


# WHO convention: average Gregorian month
DAYS_PER_MONTH = 30.4375
DAYS_PER_WEEK = 7.0


def generate_id() -> str:
    """Generate a unique identifier."""
    return str(uuid4())[:8]


# =============================================================================
# ENUMS
# =============================================================================


class Metric(str, Enum):
    WEIGHT = "weight"
    HEIGHT = "height"
    HEAD_CIRCUMFERENCE = "head_circumference"


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class AgeUnit(str, Enum):
    MONTHS = "months"
    WEEKS = "weeks"


class GrowthCategory(str, Enum):
    VERY_LOW = "very_low"  # < 3rd percentile
    NORMAL = "normal"  # 3rd to < 85th
    HIGH = "high"  # 85th to 97th
    VERY_HIGH = "very_high"  # > 97th


class GrowthRateMethod(str, Enum):
    ENDPOINTS = "endpoints"
    REGRESSION = "regression"


class AlertSeverity(str, Enum):
    INFORMATIONAL = "informational"
    WARNING = "warning"


class AlertKind(str, Enum):
    EXTREME_STANDING = "extreme_standing"
    BORDERLINE_STANDING = "borderline_standing"
    PERCENTILE_CROSSING = "percentile_crossing"
    STALLED_GROWTH = "stalled_growth"


METRIC_UNITS: dict[Metric, str] = {
    Metric.WEIGHT: "kg",
    Metric.HEIGHT: "cm",
    Metric.HEAD_CIRCUMFERENCE: "cm",
}

METRIC_NAMES: dict[Metric, str] = {
    Metric.WEIGHT: "weight",
    Metric.HEIGHT: "height",
    Metric.HEAD_CIRCUMFERENCE: "head circumference",
}

CATEGORY_LABELS: dict[Metric, dict[GrowthCategory, str]] = {
    Metric.WEIGHT: {
        GrowthCategory.VERY_LOW: "Underweight",
        GrowthCategory.NORMAL: "Normal weight",
        GrowthCategory.HIGH: "Overweight",
        GrowthCategory.VERY_HIGH: "Very high weight",
    },
    Metric.HEIGHT: {
        GrowthCategory.VERY_LOW: "Very short",
        GrowthCategory.NORMAL: "Normal height",
        GrowthCategory.HIGH: "Tall",
        GrowthCategory.VERY_HIGH: "Very tall",
    },
    Metric.HEAD_CIRCUMFERENCE: {
        GrowthCategory.VERY_LOW: "Very small head circumference",
        GrowthCategory.NORMAL: "Normal head circumference",
        GrowthCategory.HIGH: "Large head circumference",
        GrowthCategory.VERY_HIGH: "Very large head circumference",
    },
}


def months_from_days(days: float) -> float:
    return days / DAYS_PER_MONTH


def weeks_from_days(days: float) -> float:
    return days / DAYS_PER_WEEK


def to_months(age: float, unit: AgeUnit) -> float:
    """Convert an age in the given unit to months."""
    if unit == AgeUnit.WEEKS:
        return months_from_days(age * DAYS_PER_WEEK)
    return age


# =============================================================================
# REFERENCE DATA
# =============================================================================


class LMS(NamedTuple):
    """Box-Cox power (L), median (M) and coefficient of variation (S)."""
    L: float
    M: float
    S: float


# =============================================================================
# SUBJECTS & RECORDS
# =============================================================================


class SubjectProfile(BaseModel):
    """Sex and birth time of a tracked subject, supplied by the caller."""
    model_config = ConfigDict(frozen=True)

    subject_id: str
    sex: Sex
    birth_time: datetime

    def age_in_days(self, timestamp: datetime) -> float:
        return (timestamp - self.birth_time).total_seconds() / 86400.0


class MeasurementRecord(BaseModel):
    """
    One growth observation for one subject.

    Records are immutable once stored; a correction is a new record with a
    later timestamp.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    subject_id: str
    timestamp: datetime
    age_in_days: float = Field(ge=0, allow_inf_nan=False)

    # Measurements
    weight_kg: float = Field(gt=0, allow_inf_nan=False)
    height_cm: float = Field(gt=0, allow_inf_nan=False)
    head_circumference_cm: float | None = Field(default=None, gt=0, allow_inf_nan=False)

    @computed_field
    @property
    def age_in_months(self) -> float:
        return months_from_days(self.age_in_days)

    @computed_field
    @property
    def age_in_weeks(self) -> float:
        return weeks_from_days(self.age_in_days)

    def age_in(self, unit: AgeUnit) -> float:
        if unit == AgeUnit.WEEKS:
            return self.age_in_weeks
        return self.age_in_months

    def value_for(self, metric: Metric) -> float | None:
        """Measured value for a metric, or None if the record does not carry it."""
        if metric == Metric.WEIGHT:
            return self.weight_kg
        if metric == Metric.HEIGHT:
            return self.height_cm
        return self.head_circumference_cm


# =============================================================================
# COMPUTED RESULTS
# =============================================================================


class Standing(BaseModel):
    """Population-relative standing of one measurement."""
    model_config = ConfigDict(frozen=True)

    metric: Metric
    value: float
    age_months: float
    z_score: float
    percentile: float = Field(ge=0, le=100)
    category: GrowthCategory

    @computed_field
    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self.metric][self.category]


class GrowthRate(BaseModel):
    """Velocity of a metric over a trailing window, in units per month."""
    model_config = ConfigDict(frozen=True)

    metric: Metric
    per_month: float
    window_days: float
    method: GrowthRateMethod = GrowthRateMethod.ENDPOINTS
    record_count: int
    first_record_id: str
    last_record_id: str
    months_between: float

    @computed_field
    @property
    def unit(self) -> str:
        return f"{METRIC_UNITS[self.metric]}/month"


class GrowthAlert(BaseModel):
    """A structured finding raised by an alert rule."""
    model_config = ConfigDict(frozen=True)

    kind: AlertKind
    severity: AlertSeverity
    metric: Metric
    message: str
    record_ids: tuple[str, ...]
    percentile: float | None = None


class HistoryEntry(BaseModel):
    """
    A stored record with the standings computed for it.

    Metrics the record does not carry, or whose age lies outside the
    reference range, have no entry in `standings`.
    """
    model_config = ConfigDict(frozen=True)

    record: MeasurementRecord
    standings: dict[Metric, Standing] = Field(default_factory=dict)


class TrendPoint(BaseModel):
    """One point of a metric's time series."""
    model_config = ConfigDict(frozen=True)

    record_id: str
    timestamp: datetime
    age_months: float
    value: float
    percentile: float | None = None


class GrowthSummary(BaseModel):
    """Latest standings, rates and alerts for one subject."""
    subject_id: str
    record_count: int
    standings: dict[Metric, Standing] = Field(default_factory=dict)
    rates: dict[Metric, GrowthRate] = Field(default_factory=dict)
    alerts: list[GrowthAlert] = Field(default_factory=list)
    # Metric -> reason its standing or rate is unavailable
    unavailable: dict[str, str] = Field(default_factory=dict)
