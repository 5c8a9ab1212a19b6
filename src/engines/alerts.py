"""
Alert rules over a subject's growth history.

Each rule is a plain function of (history, settings) returning zero or more
alerts. Rules are independent and order-independent; evaluate_alerts() runs
them in a fixed order so the same history always yields the same list.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Callable, Sequence

from src.config import GrowthSettings
from src.exceptions import InsufficientDataError
from src.models import (
    AlertKind,
    AlertSeverity,
    GrowthAlert,
    GrowthCategory,
    HistoryEntry,
    Metric,
)
from src.models.growth import METRIC_NAMES

from .velocity import compute_growth_rate

logger = logging.getLogger(__name__)

# Major lines of a growth chart; bands lie between consecutive lines
MAJOR_PERCENTILE_LINES: tuple[float, ...] = (3, 10, 25, 50, 75, 90, 97)

AlertRule = Callable[[Sequence[HistoryEntry], GrowthSettings], list[GrowthAlert]]


def percentile_band(percentile: float) -> int:
    """Index of the band a percentile falls in (0 below the 3rd line)."""
    return bisect_right(MAJOR_PERCENTILE_LINES, percentile)


def _entries_with(history: Sequence[HistoryEntry], metric: Metric) -> list[HistoryEntry]:
    return [entry for entry in history if metric in entry.standings]


def _latest_standing_entry(
    history: Sequence[HistoryEntry],
    metric: Metric,
) -> HistoryEntry | None:
    """
    Latest entry whose record carries the metric, if it has a standing.

    A latest record outside the reference range has no standing, and an
    older standing is never reported in its place.
    """
    for entry in reversed(history):
        if entry.record.value_for(metric) is not None:
            return entry if metric in entry.standings else None
    return None


def extreme_standing_rule(
    history: Sequence[HistoryEntry],
    settings: GrowthSettings,
) -> list[GrowthAlert]:
    """
    Latest standing below the 3rd or above the 97th percentile.

    Standings just inside those limits (by default 3rd-5th and 95th-97th)
    produce an informational alert instead.
    """
    alerts = []
    low = settings.alerts.borderline_low_percentile
    high = settings.alerts.borderline_high_percentile

    for metric in Metric:
        latest = _latest_standing_entry(history, metric)
        if latest is None:
            continue
        standing = latest.standings[metric]
        name = METRIC_NAMES[metric]
        p = standing.percentile

        if standing.category == GrowthCategory.VERY_LOW:
            kind, severity = AlertKind.EXTREME_STANDING, AlertSeverity.WARNING
            message = f"{name.capitalize()} is at the {p:.1f} percentile, below the 3rd. Consider talking to your doctor."
        elif standing.category == GrowthCategory.VERY_HIGH:
            kind, severity = AlertKind.EXTREME_STANDING, AlertSeverity.WARNING
            message = f"{name.capitalize()} is at the {p:.1f} percentile, above the 97th. Consider talking to your doctor."
        elif p < low:
            kind, severity = AlertKind.BORDERLINE_STANDING, AlertSeverity.INFORMATIONAL
            message = f"{name.capitalize()} is at the {p:.1f} percentile, close to the low end of the normal range."
        elif p > high:
            kind, severity = AlertKind.BORDERLINE_STANDING, AlertSeverity.INFORMATIONAL
            message = f"{name.capitalize()} is at the {p:.1f} percentile, close to the high end of the normal range."
        else:
            continue

        alerts.append(GrowthAlert(
            kind=kind,
            severity=severity,
            metric=metric,
            message=message,
            record_ids=(latest.record.id,),
            percentile=p,
        ))

    return alerts


def percentile_crossing_rule(
    history: Sequence[HistoryEntry],
    settings: GrowthSettings,
) -> list[GrowthAlert]:
    """
    Latest percentile moved across more major bands than the metric allows.

    The latest standing is compared with every standing of the previous
    `crossing_lookback_records` records (fewer when the history is shorter)
    and the largest move counts, so a steady drift across the window is
    caught as well as a sudden jump.
    """
    alerts = []
    lookback = settings.alerts.crossing_lookback_records

    for metric in Metric:
        latest = _latest_standing_entry(history, metric)
        if latest is None:
            continue
        entries = _entries_with(history, metric)
        if len(entries) < 2:
            continue

        after = latest.standings[metric].percentile
        latest_band = percentile_band(after)
        earlier = entries[max(0, len(entries) - 1 - lookback):-1]
        # Earliest entry wins ties
        reference = max(
            earlier,
            key=lambda e: abs(latest_band - percentile_band(e.standings[metric].percentile)),
        )
        before = reference.standings[metric].percentile

        moved = latest_band - percentile_band(before)
        if abs(moved) <= settings.alerts.crossing_threshold_for(metric):
            continue

        direction = "dropped" if moved < 0 else "risen"
        name = METRIC_NAMES[metric]
        alerts.append(GrowthAlert(
            kind=AlertKind.PERCENTILE_CROSSING,
            severity=AlertSeverity.WARNING,
            metric=metric,
            message=(
                f"{name.capitalize()} has {direction} from the {before:.1f} to the "
                f"{after:.1f} percentile, crossing {abs(moved)} percentile bands."
            ),
            record_ids=(reference.record.id, latest.record.id),
            percentile=after,
        ))

    return alerts


def stalled_growth_rule(
    history: Sequence[HistoryEntry],
    settings: GrowthSettings,
) -> list[GrowthAlert]:
    """
    Weight or height velocity is zero or negative at an age where it should
    still be positive.
    """
    alerts = []
    records = [entry.record for entry in history]
    if len(records) < 2:
        return alerts

    for metric, max_age in settings.alerts.stall_max_age_months.items():
        try:
            rate = compute_growth_rate(
                records,
                metric,
                settings.alerts.stall_window_days,
                min_time_delta_days=settings.rates.min_time_delta_days,
            )
        except InsufficientDataError:
            continue

        last = next(r for r in records if r.id == rate.last_record_id)
        if last.age_in_months >= max_age or rate.per_month > 0:
            continue

        name = METRIC_NAMES[metric]
        alerts.append(GrowthAlert(
            kind=AlertKind.STALLED_GROWTH,
            severity=AlertSeverity.WARNING,
            metric=metric,
            message=(
                f"{name.capitalize()} has not increased recently "
                f"({rate.per_month:+.2f} {rate.unit}). Consider talking to your doctor."
            ),
            record_ids=(rate.first_record_id, rate.last_record_id),
        ))

    return alerts


ALERT_RULES: tuple[AlertRule, ...] = (
    extreme_standing_rule,
    percentile_crossing_rule,
    stalled_growth_rule,
)


def evaluate_alerts(
    history: Sequence[HistoryEntry],
    settings: GrowthSettings,
    rules: Sequence[AlertRule] = ALERT_RULES,
) -> list[GrowthAlert]:
    """Run every rule over an ordered history."""
    alerts: list[GrowthAlert] = []
    for rule in rules:
        alerts.extend(rule(history, settings))

    if alerts:
        subject_id = history[-1].record.subject_id
        logger.info(
            "%d growth alert(s) for subject %s: %s",
            len(alerts), subject_id, ", ".join(a.kind.value for a in alerts),
        )
    return alerts
