"""
Synthetic growth trajectories for demos and tests.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from src.models import Metric, Sex

from .percentiles import value_at_percentile
from .reference import ReferenceTable, load_reference_table


@dataclass(frozen=True)
class SyntheticMeasurement:
    age_months: float
    weight_kg: float
    height_cm: float
    head_circumference_cm: float | None


@dataclass
class GrowthTrajectory:
    """
    Generates a coherent growth series for one subject.

    Uses a "percentile channel" approach where a subject generally tracks
    along the same percentile lines, with natural variation. A per-month
    drift moves the weight channel steadily, which is how demo data for a
    faltering or accelerating subject is produced.
    """
    sex: Sex
    weight_percentile: float = 50
    height_percentile: float = 50
    hc_percentile: float = 50
    variance: float = 0.3
    weight_drift_per_month: float = 0.0
    seed: int | None = None
    table: ReferenceTable = field(default_factory=load_reference_table)

    def __post_init__(self):
        self._rng = random.Random(self.seed)
        self._last_age: float | None = None

    def _drift_percentile(self, current: float) -> float:
        """Random walk that stays inside the 1st-99th channel."""
        drift = self._rng.gauss(0, self.variance * 5)
        return max(1.0, min(99.0, current + drift))

    def _include_hc(self, age_months: float) -> bool:
        _, max_age = self.table.supported_range(Metric.HEAD_CIRCUMFERENCE, self.sex)
        return age_months <= max_age

    def measurement_at(self, age_months: float) -> SyntheticMeasurement:
        """Generate a measurement at a given age (ages should increase between calls)."""
        elapsed = 0.0 if self._last_age is None else max(0.0, age_months - self._last_age)
        self._last_age = age_months

        self.weight_percentile = self._drift_percentile(
            self.weight_percentile + self.weight_drift_per_month * elapsed
        )
        self.height_percentile = self._drift_percentile(self.height_percentile)

        weight = value_at_percentile(
            Metric.WEIGHT, self.sex, age_months, self.weight_percentile, self.table
        )
        height = value_at_percentile(
            Metric.HEIGHT, self.sex, age_months, self.height_percentile, self.table
        )

        hc = None
        if self._include_hc(age_months):
            self.hc_percentile = self._drift_percentile(self.hc_percentile)
            hc = round(value_at_percentile(
                Metric.HEAD_CIRCUMFERENCE, self.sex, age_months, self.hc_percentile, self.table
            ), 1)

        return SyntheticMeasurement(
            age_months=age_months,
            weight_kg=round(weight, 2),
            height_cm=round(height, 1),
            head_circumference_cm=hc,
        )

    def series(self, ages_months: list[float]) -> list[SyntheticMeasurement]:
        return [self.measurement_at(age) for age in sorted(ages_months)]
