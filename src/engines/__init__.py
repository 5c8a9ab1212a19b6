"""
Growth analytics engines.
"""

from .alerts import (
    ALERT_RULES,
    MAJOR_PERCENTILE_LINES,
    evaluate_alerts,
    extreme_standing_rule,
    percentile_band,
    percentile_crossing_rule,
    stalled_growth_rule,
)
from .growth import GrowthTrackingService
from .velocity import compute_growth_rate, select_window

__all__ = [
    "ALERT_RULES",
    "MAJOR_PERCENTILE_LINES",
    "evaluate_alerts",
    "extreme_standing_rule",
    "percentile_band",
    "percentile_crossing_rule",
    "stalled_growth_rule",
    "GrowthTrackingService",
    "compute_growth_rate",
    "select_window",
]
