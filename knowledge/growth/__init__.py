"""
Growth chart calculations.
"""

from .lms import (
    percentile_from_z,
    value_from_lms_z,
    z_from_percentile,
    z_score_from_lms,
)
from .percentiles import (
    CHART_PERCENTILES,
    category_for,
    category_label,
    compute_standing,
    compute_standing_at,
    percentile_curves,
    validate_measurement,
    value_at_percentile,
)
from .reference import (
    DEFAULT_DATASET,
    ReferenceCurve,
    ReferenceTable,
    available_datasets,
    load_reference_table,
)
from .trajectory import GrowthTrajectory, SyntheticMeasurement

__all__ = [
    "percentile_from_z",
    "value_from_lms_z",
    "z_from_percentile",
    "z_score_from_lms",
    "CHART_PERCENTILES",
    "category_for",
    "category_label",
    "compute_standing",
    "compute_standing_at",
    "percentile_curves",
    "validate_measurement",
    "value_at_percentile",
    "DEFAULT_DATASET",
    "ReferenceCurve",
    "ReferenceTable",
    "available_datasets",
    "load_reference_table",
    "GrowthTrajectory",
    "SyntheticMeasurement",
]
