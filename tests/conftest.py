"""
Shared fixtures for growthwatch tests.
"""

import copy
from datetime import datetime, timedelta

import pytest

from knowledge.growth import ReferenceTable, load_reference_table
from src.config import GrowthSettings, set_settings
from src.engines import GrowthTrackingService
from src.models import DAYS_PER_MONTH, Sex, SubjectProfile


BIRTH = datetime(2024, 1, 1, 8, 0)

# Minimal dataset: L = 1 makes Z = (v/M - 1) / S easy to check by hand
SYNTHETIC_BLOCK = {
    "unit": "kg",
    "resolution_months": 1,
    "supported_ages": [0.0, 2.5],
    "male": [[0, 1.0, 10.0, 0.1], [1, 1.0, 11.0, 0.1], [2, 1.0, 12.0, 0.1]],
    "female": [[0, 0.0, 10.0, 0.1], [1, 0.0, 11.0, 0.1], [2, 2.0, 12.0, 0.1]],
}


def months_after_birth(months: float, birth: datetime = BIRTH) -> datetime:
    return birth + timedelta(days=months * DAYS_PER_MONTH)


@pytest.fixture(autouse=True)
def default_settings():
    """Isolate tests from any GROWTHWATCH_SETTINGS in the environment."""
    set_settings(GrowthSettings())
    yield
    set_settings(None)


@pytest.fixture
def synthetic_data() -> dict:
    return {
        "name": "synthetic",
        "metrics": {
            "weight": copy.deepcopy(SYNTHETIC_BLOCK),
            "height": copy.deepcopy(SYNTHETIC_BLOCK),
            "head_circumference": copy.deepcopy(SYNTHETIC_BLOCK),
        },
    }


@pytest.fixture
def synthetic_table(synthetic_data) -> ReferenceTable:
    return ReferenceTable.from_dict(synthetic_data)


@pytest.fixture(scope="session")
def who_table() -> ReferenceTable:
    return load_reference_table("who_2006")


@pytest.fixture
def settings() -> GrowthSettings:
    return GrowthSettings()


@pytest.fixture
def boy() -> SubjectProfile:
    return SubjectProfile(subject_id="boy", sex=Sex.MALE, birth_time=BIRTH)


@pytest.fixture
def girl() -> SubjectProfile:
    return SubjectProfile(subject_id="girl", sex=Sex.FEMALE, birth_time=BIRTH)


@pytest.fixture
def service(settings, who_table, boy, girl) -> GrowthTrackingService:
    return GrowthTrackingService(table=who_table, settings=settings, profiles=[boy, girl])
