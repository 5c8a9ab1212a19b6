"""
Growth velocity.

A rate is computed over the records inside a trailing window anchored at the
latest record carrying the metric. When fewer than two records fall inside
the window, the two most recent records are used instead, so a subject
measured only twice still has a rate.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

from scipy import stats

from src.exceptions import InsufficientDataError
from src.models import (
    DAYS_PER_MONTH,
    GrowthRate,
    GrowthRateMethod,
    MeasurementRecord,
    Metric,
)

DEFAULT_MIN_TIME_DELTA_DAYS = 1.0


def _days_between(first: MeasurementRecord, last: MeasurementRecord) -> float:
    return (last.timestamp - first.timestamp).total_seconds() / 86400.0


def select_window(
    records: Sequence[MeasurementRecord],
    metric: Metric,
    window_days: float,
) -> list[MeasurementRecord]:
    """
    Records used for a rate over a trailing window.

    Args:
        records: Subject history, timestamp ascending
        metric: Metric the records must carry
        window_days: Trailing window length

    Raises:
        InsufficientDataError: If fewer than two records carry the metric.
    """
    if window_days <= 0:
        raise ValueError(f"window_days must be positive, got {window_days}")

    carrying = [r for r in records if r.value_for(metric) is not None]
    if len(carrying) < 2:
        raise InsufficientDataError(
            f"Need at least two {metric.value} measurements, have {len(carrying)}"
        )

    cutoff = carrying[-1].timestamp - timedelta(days=window_days)
    selected = [r for r in carrying if r.timestamp >= cutoff]
    if len(selected) < 2:
        selected = carrying[-2:]
    return selected


def compute_growth_rate(
    records: Sequence[MeasurementRecord],
    metric: Metric | str,
    window_days: float,
    method: GrowthRateMethod | str = GrowthRateMethod.ENDPOINTS,
    min_time_delta_days: float = DEFAULT_MIN_TIME_DELTA_DAYS,
) -> GrowthRate:
    """
    Rate of change of a metric in units per month.

    ENDPOINTS: (last - first) / months between first and last record.
    REGRESSION: least-squares slope over every selected record.

    Raises:
        InsufficientDataError: If fewer than two records carry the metric, or
            the selected records span less than min_time_delta_days.
    """
    metric = Metric(metric)
    method = GrowthRateMethod(method)
    selected = select_window(records, metric, window_days)
    first, last = selected[0], selected[-1]

    span_days = _days_between(first, last)
    if span_days < min_time_delta_days:
        raise InsufficientDataError(
            f"{metric.value} measurements span {span_days:.2f} days; "
            f"at least {min_time_delta_days:g} needed for a rate"
        )
    months = span_days / DAYS_PER_MONTH

    if method == GrowthRateMethod.REGRESSION:
        xs = [_days_between(first, r) / DAYS_PER_MONTH for r in selected]
        ys = [r.value_for(metric) for r in selected]
        per_month = float(stats.linregress(xs, ys).slope)
    else:
        per_month = (last.value_for(metric) - first.value_for(metric)) / months

    return GrowthRate(
        metric=metric,
        per_month=per_month,
        window_days=window_days,
        method=method,
        record_count=len(selected),
        first_record_id=first.id,
        last_record_id=last.id,
        months_between=months,
    )
