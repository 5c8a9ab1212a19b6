"""
LMS method for growth references.

The LMS method expresses an age-specific distribution as:
- L (lambda): Box-Cox power transformation
- M (mu): Median
- S (sigma): Coefficient of variation

Z-score = ((value/M)^L - 1) / (L * S)  when L ≠ 0
Z-score = ln(value/M) / S              when L = 0

Percentile = Φ(Z-score) where Φ is the standard normal CDF

This is the only implementation of the transform in the code base.
"""

from __future__ import annotations

import math

from scipy import stats

from src.models import LMS

# |L| below this is treated as the log-normal (L = 0) case
L_EPSILON = 1e-10


def z_score_from_lms(value: float, lms: LMS) -> float:
    """
    Calculate Z-score from value and LMS parameters.

    Values so extreme that (value/M)^L overflows give an infinite Z-score.
    """
    L, M, S = lms
    if abs(L) < L_EPSILON:
        return math.log(value / M) / S
    try:
        return (math.pow(value / M, L) - 1) / (L * S)
    except OverflowError:
        return math.inf if value > M else -math.inf


def value_from_lms_z(z: float, lms: LMS) -> float:
    """
    Calculate value from Z-score and LMS parameters.

    Raises ValueError when the Z-score has no corresponding value under the
    Box-Cox transform (1 + L*S*z <= 0).
    """
    L, M, S = lms
    if abs(L) < L_EPSILON:
        return M * math.exp(z * S)
    base = 1 + L * S * z
    if base <= 0:
        raise ValueError(f"Z-score {z} is outside the LMS distribution support")
    return M * math.pow(base, 1 / L)


def percentile_from_z(z: float) -> float:
    """Convert Z-score to a percentile clamped to [0, 100]."""
    percentile = float(stats.norm.cdf(z)) * 100
    return min(100.0, max(0.0, percentile))


def z_from_percentile(percentile: float) -> float:
    """Convert percentile to Z-score using inverse normal CDF."""
    if not 0 < percentile < 100:
        raise ValueError(f"Percentile must be strictly between 0 and 100, got {percentile}")
    return float(stats.norm.ppf(percentile / 100))
