"""
Data models for growthwatch.
"""

from .growth import (
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    LMS,
    AgeUnit,
    AlertKind,
    AlertSeverity,
    GrowthAlert,
    GrowthCategory,
    GrowthRate,
    GrowthRateMethod,
    GrowthSummary,
    HistoryEntry,
    MeasurementRecord,
    Metric,
    Sex,
    Standing,
    SubjectProfile,
    TrendPoint,
    generate_id,
    months_from_days,
    to_months,
    weeks_from_days,
)

__all__ = [
    "DAYS_PER_MONTH",
    "DAYS_PER_WEEK",
    "LMS",
    "AgeUnit",
    "AlertKind",
    "AlertSeverity",
    "GrowthAlert",
    "GrowthCategory",
    "GrowthRate",
    "GrowthRateMethod",
    "GrowthSummary",
    "HistoryEntry",
    "MeasurementRecord",
    "Metric",
    "Sex",
    "Standing",
    "SubjectProfile",
    "TrendPoint",
    "generate_id",
    "months_from_days",
    "to_months",
    "weeks_from_days",
]
