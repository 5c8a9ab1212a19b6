"""
Tests for the alert rules.
"""

from datetime import timedelta

import pytest

from knowledge.growth import category_for
from src.config import AlertSettings, GrowthSettings
from src.engines import (
    ALERT_RULES,
    evaluate_alerts,
    extreme_standing_rule,
    percentile_band,
    percentile_crossing_rule,
    stalled_growth_rule,
)
from src.models import (
    DAYS_PER_MONTH,
    AlertKind,
    AlertSeverity,
    HistoryEntry,
    MeasurementRecord,
    Metric,
    Standing,
)

from .conftest import BIRTH


def entry(month: float, weight_pct: float | None = 50, height_pct: float | None = 50,
          weight: float = 6.0, height: float = 60.0) -> HistoryEntry:
    """History entry with hand-picked percentiles."""
    days = month * DAYS_PER_MONTH
    record = MeasurementRecord(
        subject_id="s1",
        timestamp=BIRTH + timedelta(days=days),
        age_in_days=days,
        weight_kg=weight,
        height_cm=height,
    )
    standings = {}
    for metric, pct, value in [(Metric.WEIGHT, weight_pct, weight), (Metric.HEIGHT, height_pct, height)]:
        if pct is None:
            continue
        standings[metric] = Standing(
            metric=metric,
            value=value,
            age_months=month,
            z_score=0.0,
            percentile=pct,
            category=category_for(pct),
        )
    return HistoryEntry(record=record, standings=standings)


class TestBands:
    """Major percentile bands."""

    @pytest.mark.parametrize("percentile, band", [
        (1, 0), (3, 1), (9.9, 1), (10, 2), (50, 4), (60, 4), (97, 7), (99.5, 7),
    ])
    def test_percentile_band(self, percentile, band):
        assert percentile_band(percentile) == band


class TestExtremeStanding:
    """Latest standing outside the normal range."""

    def test_very_low(self, settings):
        alerts = extreme_standing_rule([entry(2, weight_pct=1.2)], settings)
        assert len(alerts) == 1
        assert alerts[0].kind == AlertKind.EXTREME_STANDING
        assert alerts[0].severity == AlertSeverity.WARNING
        assert alerts[0].metric == Metric.WEIGHT
        assert "below the 3rd" in alerts[0].message

    def test_very_high(self, settings):
        alerts = extreme_standing_rule([entry(2, height_pct=99.1)], settings)
        assert [a.metric for a in alerts] == [Metric.HEIGHT]
        assert "above the 97th" in alerts[0].message

    def test_borderline_is_informational(self, settings):
        alerts = extreme_standing_rule([entry(2, weight_pct=4.0, height_pct=96.0)], settings)
        assert {a.kind for a in alerts} == {AlertKind.BORDERLINE_STANDING}
        assert {a.severity for a in alerts} == {AlertSeverity.INFORMATIONAL}

    def test_only_latest_counts(self, settings):
        history = [entry(1, weight_pct=1.0), entry(2, weight_pct=40.0)]
        assert extreme_standing_rule(history, settings) == []

    def test_normal(self, settings):
        assert extreme_standing_rule([entry(2)], settings) == []

    def test_latest_without_standing_is_not_replaced(self, settings):
        # Latest record carries a weight beyond the reference range
        history = [entry(10, weight_pct=1.0), entry(40, weight_pct=None)]
        alerts = extreme_standing_rule(history, settings)
        assert Metric.WEIGHT not in [a.metric for a in alerts]

    def test_borderline_limits_from_settings(self):
        settings = GrowthSettings(alerts=AlertSettings(borderline_low_percentile=10))
        alerts = extreme_standing_rule([entry(2, weight_pct=8.0)], settings)
        assert [a.kind for a in alerts] == [AlertKind.BORDERLINE_STANDING]


class TestPercentileCrossing:
    """Movement across major percentile bands."""

    def test_drop_across_three_bands(self, settings):
        history = [entry(3, 60), entry(4, 58), entry(5, 30), entry(6, 5)]

        alerts = percentile_crossing_rule(history, settings)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.metric == Metric.WEIGHT
        assert alert.record_ids == (history[0].record.id, history[3].record.id)
        assert "dropped" in alert.message
        assert "3 percentile bands" in alert.message

    @pytest.mark.parametrize("percentiles", [
        (60, 42, 23, 5),
        (60, 45, 20, 5),
        (62, 40, 21, 6),
    ])
    def test_steady_drift_is_caught(self, settings, percentiles):
        history = [entry(month, pct) for month, pct in zip((3, 4, 5, 6), percentiles)]

        alerts = percentile_crossing_rule(history, settings)

        assert [a.metric for a in alerts] == [Metric.WEIGHT]
        assert alerts[0].record_ids == (history[0].record.id, history[3].record.id)

    def test_two_bands_is_not_enough(self, settings):
        history = [entry(3, 50), entry(4, 40), entry(5, 30), entry(6, 20)]
        # 50 -> 20 moves from band 4 to band 2
        assert percentile_crossing_rule(history, settings) == []

    def test_older_records_outside_lookback_ignored(self, settings):
        history = [entry(1, 90), entry(2, 40), entry(3, 35), entry(4, 30), entry(5, 20)]
        # 90 is four records back; the default window holds 40, 35, 30
        assert percentile_crossing_rule(history, settings) == []

    def test_latest_without_standing(self, settings):
        history = [entry(10, 70), entry(11, 40), entry(40, weight_pct=None)]
        assert percentile_crossing_rule(history, settings) == []

    def test_rise(self, settings):
        history = [entry(1, height_pct=5), entry(2, height_pct=80)]
        alerts = percentile_crossing_rule(history, settings)
        assert [a.metric for a in alerts] == [Metric.HEIGHT]
        assert "risen" in alerts[0].message

    def test_short_history_uses_earliest(self, settings):
        history = [entry(1, 80), entry(2, 8)]
        alerts = percentile_crossing_rule(history, settings)
        assert alerts[0].record_ids == (history[0].record.id, history[1].record.id)

    def test_single_record(self, settings):
        assert percentile_crossing_rule([entry(1, 1)], settings) == []

    def test_threshold_per_metric(self):
        settings = GrowthSettings(alerts=AlertSettings(
            crossing_band_threshold={Metric.WEIGHT: 4, Metric.HEIGHT: 1},
        ))
        history = [entry(1, weight_pct=60, height_pct=60), entry(2, weight_pct=20, height_pct=20)]
        # Both moved 2 bands
        alerts = percentile_crossing_rule(history, settings)
        assert [a.metric for a in alerts] == [Metric.HEIGHT]

    def test_lookback_from_settings(self):
        settings = GrowthSettings(alerts=AlertSettings(crossing_lookback_records=1))
        history = [entry(3, 60), entry(4, 42), entry(5, 23), entry(6, 5)]
        # 23 -> 5 is two bands
        assert percentile_crossing_rule(history, settings) == []

    def test_skips_records_without_standing(self, settings):
        history = [entry(1, weight_pct=70), entry(2, weight_pct=None), entry(3, weight_pct=4)]
        alerts = percentile_crossing_rule(history, settings)
        assert alerts[0].record_ids == (history[0].record.id, history[2].record.id)


class TestStalledGrowth:
    """Non-positive velocity while still growing."""

    def test_weight_loss(self, settings):
        history = [entry(3, weight=6.5, height=61.0), entry(4, weight=6.3, height=63.0)]
        alerts = stalled_growth_rule(history, settings)
        assert [a.metric for a in alerts] == [Metric.WEIGHT]
        assert alerts[0].kind == AlertKind.STALLED_GROWTH
        assert alerts[0].record_ids == (history[0].record.id, history[1].record.id)

    def test_flat_height(self, settings):
        history = [entry(3, weight=6.0, height=61.0), entry(4, weight=6.5, height=61.0)]
        alerts = stalled_growth_rule(history, settings)
        assert [a.metric for a in alerts] == [Metric.HEIGHT]

    def test_growing(self, settings):
        history = [entry(3, weight=6.0, height=61.0), entry(4, weight=6.5, height=63.0)]
        assert stalled_growth_rule(history, settings) == []

    def test_adult_height_not_flagged(self, settings):
        history = [entry(230, weight=70.0, height=176.0), entry(231, weight=71.0, height=176.0)]
        assert stalled_growth_rule(history, settings) == []

    def test_same_day_records_skipped(self, settings):
        first = entry(3, weight=6.5)
        second = entry(3.01, weight=6.4)
        assert stalled_growth_rule([first, second], settings) == []

    def test_single_record(self, settings):
        assert stalled_growth_rule([entry(3)], settings) == []


class TestEvaluate:
    """All rules together."""

    def test_rules_combined(self, settings):
        history = [
            entry(3, weight_pct=60, weight=6.5, height=61.0),
            entry(4, weight_pct=2, weight=6.0, height=63.0),
        ]

        alerts = evaluate_alerts(history, settings)

        assert [a.kind for a in alerts] == [
            AlertKind.EXTREME_STANDING,
            AlertKind.PERCENTILE_CROSSING,
            AlertKind.STALLED_GROWTH,
        ]

    def test_deterministic(self, settings):
        history = [
            entry(3, weight_pct=60, weight=6.5, height=61.0),
            entry(4, weight_pct=2, weight=6.0, height=63.0),
        ]
        assert evaluate_alerts(history, settings) == evaluate_alerts(history, settings)

    def test_custom_rules(self, settings):
        history = [entry(2, weight_pct=1.0)]
        assert evaluate_alerts(history, settings, rules=[]) == []
        assert len(evaluate_alerts(history, settings, rules=ALERT_RULES)) == 1

    def test_logs_alerts(self, settings, caplog):
        with caplog.at_level("INFO", logger="src.engines.alerts"):
            evaluate_alerts([entry(2, weight_pct=1.0)], settings)
        assert "growth alert" in caplog.text
