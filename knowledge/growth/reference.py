"""
Reference distribution tables.

Each dataset under data/ holds, per metric and sex, a grid of LMS rows keyed
by age in months. Tables are validated when loaded and never mutated after;
they are safe to share between threads without locking.

Lookup rules:
- Ages outside a curve's supported range raise OutOfRangeError. Percentiles
  are never extrapolated.
- Ages inside the supported range but beyond the first/last grid point use
  the edge row.
- Ages on a grid point return that row unmodified.
- Ages between grid points interpolate L, M and S independently.
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_left
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from src.exceptions import OutOfRangeError, ReferenceDataError
from src.models import LMS, Metric, Sex

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_DATASET = "who_2006"


def _lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation, bounded by its endpoints."""
    value = a + t * (b - a)
    return min(max(value, min(a, b)), max(a, b))


@dataclass(frozen=True)
class ReferenceCurve:
    """LMS grid for one (metric, sex) pair."""
    metric: Metric
    sex: Sex
    ages: tuple[float, ...]
    rows: tuple[LMS, ...]
    min_age: float
    max_age: float

    def lookup(self, age_months: float) -> LMS:
        """Get LMS parameters for an age in months."""
        if not math.isfinite(age_months) or not self.min_age <= age_months <= self.max_age:
            raise OutOfRangeError(
                self.metric.value, self.sex.value, age_months, self.min_age, self.max_age
            )

        # Clamp to the grid edges inside the supported range
        if age_months <= self.ages[0]:
            return self.rows[0]
        if age_months >= self.ages[-1]:
            return self.rows[-1]

        i = bisect_left(self.ages, age_months)
        if self.ages[i] == age_months:
            return self.rows[i]

        lower_age, upper_age = self.ages[i - 1], self.ages[i]
        t = (age_months - lower_age) / (upper_age - lower_age)

        L1, M1, S1 = self.rows[i - 1]
        L2, M2, S2 = self.rows[i]

        return LMS(_lerp(L1, L2, t), _lerp(M1, M2, t), _lerp(S1, S2, t))


class ReferenceTable:
    """
    Immutable per-metric, per-sex lookup of LMS parameters.

    Build one with from_yaml()/from_dict(), or use load_reference_table()
    for the embedded datasets.
    """

    def __init__(
        self,
        name: str,
        curves: Mapping[tuple[Metric, Sex], ReferenceCurve],
        units: Mapping[Metric, str],
        resolutions: Mapping[Metric, float],
        title: str | None = None,
        source: str | None = None,
    ):
        self.name = name
        self.title = title or name
        self.source = source
        self._curves = MappingProxyType(dict(curves))
        self._units = MappingProxyType(dict(units))
        self._resolutions = MappingProxyType(dict(resolutions))

    def __repr__(self) -> str:
        return f"ReferenceTable(name={self.name!r})"

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ReferenceTable":
        """Load and validate a dataset file."""
        path = Path(path)
        if not path.exists():
            raise ReferenceDataError(f"Reference dataset not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ReferenceDataError(f"Reference dataset {path} is not a mapping")
        return cls.from_dict(data, name=data.get("name") or path.stem)

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str | None = None) -> "ReferenceTable":
        """
        Validate raw dataset content and build a table.

        Raises:
            ReferenceDataError: On any structural or numeric defect.
        """
        name = name or data.get("name") or "unnamed"
        metrics = data.get("metrics")
        if not isinstance(metrics, dict):
            raise ReferenceDataError(f"{name}: missing 'metrics' section")

        curves: dict[tuple[Metric, Sex], ReferenceCurve] = {}
        units: dict[Metric, str] = {}
        resolutions: dict[Metric, float] = {}

        for metric in Metric:
            block = metrics.get(metric.value)
            if not isinstance(block, dict):
                raise ReferenceDataError(f"{name}: missing metric '{metric.value}'")

            units[metric] = str(block.get("unit", ""))
            resolution = _number(block.get("resolution_months"), f"{name}/{metric.value}/resolution_months")
            if resolution <= 0:
                raise ReferenceDataError(f"{name}/{metric.value}: resolution_months must be positive")
            resolutions[metric] = resolution

            supported = block.get("supported_ages")
            if not isinstance(supported, (list, tuple)) or len(supported) != 2:
                raise ReferenceDataError(f"{name}/{metric.value}: supported_ages must be [min, max]")
            min_age = _number(supported[0], f"{name}/{metric.value}/supported_ages")
            max_age = _number(supported[1], f"{name}/{metric.value}/supported_ages")

            for sex in Sex:
                where = f"{name}/{metric.value}/{sex.value}"
                curves[(metric, sex)] = _build_curve(
                    metric, sex, block.get(sex.value), resolution, min_age, max_age, where
                )

        logger.debug("Validated reference dataset %s (%d curves)", name, len(curves))
        return cls(
            name=name,
            curves=curves,
            units=units,
            resolutions=resolutions,
            title=data.get("title"),
            source=data.get("source"),
        )

    def curve(self, metric: Metric | str, sex: Sex | str) -> ReferenceCurve:
        return self._curves[(Metric(metric), Sex(sex))]

    def lookup(self, metric: Metric | str, sex: Sex | str, age_months: float) -> LMS:
        """
        Get LMS parameters for a metric, sex and age.

        Raises:
            OutOfRangeError: If the age is outside the supported range.
        """
        return self.curve(metric, sex).lookup(age_months)

    def supported_range(self, metric: Metric | str, sex: Sex | str) -> tuple[float, float]:
        curve = self.curve(metric, sex)
        return curve.min_age, curve.max_age

    def grid(self, metric: Metric | str, sex: Sex | str) -> list[tuple[float, LMS]]:
        curve = self.curve(metric, sex)
        return list(zip(curve.ages, curve.rows))

    def unit(self, metric: Metric | str) -> str:
        return self._units[Metric(metric)]

    def resolution(self, metric: Metric | str) -> float:
        return self._resolutions[Metric(metric)]


def _number(raw: Any, where: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ReferenceDataError(f"{where}: expected a number, got {raw!r}")
    value = float(raw)
    if not math.isfinite(value):
        raise ReferenceDataError(f"{where}: non-finite value {raw!r}")
    return value


def _build_curve(
    metric: Metric,
    sex: Sex,
    raw_rows: Any,
    resolution: float,
    min_age: float,
    max_age: float,
    where: str,
) -> ReferenceCurve:
    if not isinstance(raw_rows, list) or len(raw_rows) < 2:
        raise ReferenceDataError(f"{where}: need at least two rows")

    ages: list[float] = []
    rows: list[LMS] = []
    for index, raw in enumerate(raw_rows):
        if not isinstance(raw, (list, tuple)) or len(raw) != 4:
            raise ReferenceDataError(f"{where}[{index}]: rows are [age_months, L, M, S]")
        age, L, M, S = (_number(v, f"{where}[{index}]") for v in raw)

        if ages and age <= ages[-1]:
            raise ReferenceDataError(f"{where}[{index}]: ages must be strictly increasing")
        if ages and age - ages[-1] > resolution:
            raise ReferenceDataError(
                f"{where}[{index}]: gap of {age - ages[-1]:g} months exceeds "
                f"resolution of {resolution:g}"
            )
        if M <= 0:
            raise ReferenceDataError(f"{where}[{index}]: M must be positive")
        if S <= 0:
            raise ReferenceDataError(f"{where}[{index}]: S must be positive")

        ages.append(age)
        rows.append(LMS(L, M, S))

    if min_age < 0 or min_age > ages[0] or max_age < ages[-1]:
        raise ReferenceDataError(f"{where}: supported ages must cover the grid")
    if ages[0] - min_age > resolution or max_age - ages[-1] > resolution:
        raise ReferenceDataError(
            f"{where}: supported ages may extend at most one resolution step past the grid"
        )

    return ReferenceCurve(
        metric=metric,
        sex=sex,
        ages=tuple(ages),
        rows=tuple(rows),
        min_age=min_age,
        max_age=max_age,
    )


def available_datasets() -> list[str]:
    """Names of the embedded reference datasets."""
    return sorted(p.stem for p in DATA_DIR.glob("*.yaml"))


@lru_cache(maxsize=None)
def load_reference_table(name: str = DEFAULT_DATASET) -> ReferenceTable:
    """Load an embedded dataset once per process."""
    path = DATA_DIR / f"{name}.yaml"
    if not path.exists():
        raise ReferenceDataError(
            f"Unknown reference dataset '{name}'. Available: {', '.join(available_datasets())}"
        )
    table = ReferenceTable.from_yaml(path)
    logger.debug("Loaded reference dataset %s from %s", name, path)
    return table
