"""
Storage module for growthwatch.

Provides the growth record store used by the tracking service.
"""

from src.db.repositories import DEFAULT_ORDERING_TOLERANCE, GrowthRecordRepository

__all__ = [
  "DEFAULT_ORDERING_TOLERANCE",
  "GrowthRecordRepository",
]
