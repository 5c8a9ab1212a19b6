"""
Percentile calculator.

Maps (metric, sex, age, measurement) to a Standing using a reference table.
Pure: no I/O after the table is loaded, no mutable state, identical inputs
give identical outputs.

Category cut points are fixed for every caller:
    percentile <  3          very_low
    3  <= percentile <  85   normal
    85 <= percentile <= 97   high
    percentile >  97         very_high
"""

from __future__ import annotations

import math
from typing import Iterable

from src.exceptions import InvalidMeasurementError
from src.models import AgeUnit, GrowthCategory, Metric, Sex, Standing, to_months
from src.models.growth import CATEGORY_LABELS

from .lms import percentile_from_z, value_from_lms_z, z_from_percentile, z_score_from_lms
from .reference import ReferenceTable, load_reference_table

VERY_LOW_BELOW = 3.0
HIGH_FROM = 85.0
VERY_HIGH_ABOVE = 97.0

# Reference lines drawn on growth charts
CHART_PERCENTILES: tuple[float, ...] = (3, 15, 50, 85, 97)


def category_for(percentile: float) -> GrowthCategory:
    """Qualitative band for a percentile."""
    if percentile < VERY_LOW_BELOW:
        return GrowthCategory.VERY_LOW
    elif percentile < HIGH_FROM:
        return GrowthCategory.NORMAL
    elif percentile <= VERY_HIGH_ABOVE:
        return GrowthCategory.HIGH
    else:
        return GrowthCategory.VERY_HIGH


def category_label(metric: Metric | str, category: GrowthCategory | str) -> str:
    """Display label for a category, worded for the metric ("Underweight")."""
    return CATEGORY_LABELS[Metric(metric)][GrowthCategory(category)]


def validate_measurement(value: float, metric: Metric | str = "measurement") -> float:
    """
    Check that a measured value is a positive finite number.

    Raises:
        InvalidMeasurementError: For non-numeric, non-finite or non-positive values.
    """
    name = metric.value if isinstance(metric, Metric) else metric
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidMeasurementError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidMeasurementError(f"{name} must be finite, got {value!r}")
    if value <= 0:
        raise InvalidMeasurementError(f"{name} must be positive, got {value!r}")
    return float(value)


def compute_standing(
    metric: Metric | str,
    sex: Sex | str,
    age_months: float,
    value: float,
    table: ReferenceTable | None = None,
) -> Standing:
    """
    Calculate the percentile standing of a measurement.

    Args:
        metric: weight, height or head_circumference
        sex: "male" or "female"
        age_months: Age in months (fractional ages are interpolated)
        value: Measurement in the metric's unit (kg or cm)
        table: Reference table; defaults to the embedded WHO standards

    Returns:
        Standing with percentile, z-score and category

    Raises:
        InvalidMeasurementError: If value is non-positive or non-finite.
        OutOfRangeError: If the age is outside the reference range.
    """
    metric = Metric(metric)
    value = validate_measurement(value, metric)
    table = table or load_reference_table()

    lms = table.lookup(metric, sex, age_months)
    z = z_score_from_lms(value, lms)
    percentile = percentile_from_z(z)

    return Standing(
        metric=metric,
        value=value,
        age_months=age_months,
        z_score=z,
        percentile=percentile,
        category=category_for(percentile),
    )


def compute_standing_at(
    metric: Metric | str,
    sex: Sex | str,
    age: float,
    unit: AgeUnit | str,
    value: float,
    table: ReferenceTable | None = None,
) -> Standing:
    """Same as compute_standing, with the age given in weeks or months."""
    return compute_standing(metric, sex, to_months(age, AgeUnit(unit)), value, table)


def value_at_percentile(
    metric: Metric | str,
    sex: Sex | str,
    age_months: float,
    percentile: float,
    table: ReferenceTable | None = None,
) -> float:
    """
    Measurement value lying at a given percentile.

    Args:
        metric: weight, height or head_circumference
        sex: "male" or "female"
        age_months: Age in months
        percentile: Target percentile, strictly between 0 and 100

    Returns:
        Value in the metric's unit
    """
    table = table or load_reference_table()
    lms = table.lookup(metric, sex, age_months)
    return value_from_lms_z(z_from_percentile(percentile), lms)


def percentile_curves(
    metric: Metric | str,
    sex: Sex | str,
    ages: Iterable[float],
    percentiles: Iterable[float] = CHART_PERCENTILES,
    table: ReferenceTable | None = None,
) -> dict[float, list[tuple[float, float]]]:
    """
    Reference curves for charting.

    Returns:
        percentile -> [(age_months, value), ...]
    """
    table = table or load_reference_table()
    ages = list(ages)
    curves: dict[float, list[tuple[float, float]]] = {}
    for percentile in percentiles:
        curves[percentile] = [
            (age, value_at_percentile(metric, sex, age, percentile, table))
            for age in ages
        ]
    return curves
