"""
Settings for the growth engine.

Defaults live here; a YAML file can override any of them. The file named by
the GROWTHWATCH_SETTINGS environment variable is picked up by get_settings().
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from src.models import Metric

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "GROWTHWATCH_SETTINGS"


class StoreSettings(BaseModel):
    """Record store ordering policy."""
    # Late manual entry is accepted up to this far behind the latest record
    ordering_tolerance_hours: float = Field(default=24.0, ge=0)

    @property
    def ordering_tolerance(self) -> timedelta:
        return timedelta(hours=self.ordering_tolerance_hours)


class RateSettings(BaseModel):
    """Growth velocity defaults."""
    default_window_days: float = Field(default=30.0, gt=0)
    # Records closer together than this cannot yield a bounded rate
    min_time_delta_days: float = Field(default=1.0, gt=0)


class AlertSettings(BaseModel):
    """Thresholds for the alert rules."""
    # Informational band just inside the 3rd/97th extremes
    borderline_low_percentile: float = Field(default=5.0, ge=3, le=50)
    borderline_high_percentile: float = Field(default=95.0, ge=50, le=97)

    crossing_lookback_records: int = Field(default=3, ge=1)
    crossing_band_threshold: dict[Metric, int] = Field(
        default_factory=lambda: {
            Metric.WEIGHT: 2,
            Metric.HEIGHT: 2,
            Metric.HEAD_CIRCUMFERENCE: 2,
        }
    )

    stall_window_days: float = Field(default=60.0, gt=0)
    # Oldest age (months) at which a positive velocity is still expected
    stall_max_age_months: dict[Metric, float] = Field(
        default_factory=lambda: {
            Metric.WEIGHT: 240.0,
            Metric.HEIGHT: 216.0,
        }
    )

    def crossing_threshold_for(self, metric: Metric) -> int:
        return self.crossing_band_threshold.get(metric, 2)


class GrowthSettings(BaseModel):
    """Top-level engine settings."""
    reference_dataset: str = "who_2006"
    store: StoreSettings = Field(default_factory=StoreSettings)
    rates: RateSettings = Field(default_factory=RateSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)


def load_settings(path: Path | str | None = None) -> GrowthSettings:
    """
    Load settings from a YAML file.

    Args:
        path: YAML file to read. Without one, built-in defaults are returned.

    Returns:
        Validated GrowthSettings
    """
    if path is None:
        return GrowthSettings()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    logger.debug("Loaded growth settings from %s", path)
    return GrowthSettings.model_validate(data)


# Process-wide settings instance
_settings: GrowthSettings | None = None


def get_settings() -> GrowthSettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings(os.environ.get(SETTINGS_ENV_VAR))
    return _settings


def set_settings(settings: GrowthSettings | None) -> None:
    """Replace the process-wide settings (None reloads on next access)."""
    global _settings
    _settings = settings
