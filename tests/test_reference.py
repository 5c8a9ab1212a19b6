"""
Tests for reference table loading, validation and lookup.
"""

import pytest

from knowledge.growth import ReferenceTable, available_datasets, load_reference_table
from src.exceptions import OutOfRangeError, ReferenceDataError
from src.models import LMS, Metric, Sex


class TestEmbeddedDatasets:
    """The shipped datasets load and validate."""

    def test_available(self):
        assert {"who_2006", "cdc_2000"} <= set(available_datasets())

    @pytest.mark.parametrize("name", ["who_2006", "cdc_2000"])
    def test_every_curve_present(self, name):
        table = load_reference_table(name)
        for metric in Metric:
            for sex in Sex:
                grid = table.grid(metric, sex)
                ages = [age for age, _ in grid]
                assert ages == sorted(set(ages))
                assert all(lms.M > 0 and lms.S > 0 for _, lms in grid)

    def test_loaded_once(self):
        assert load_reference_table("who_2006") is load_reference_table("who_2006")

    def test_unknown_dataset(self):
        with pytest.raises(ReferenceDataError):
            load_reference_table("nope")

    def test_units(self, who_table):
        assert who_table.unit(Metric.WEIGHT) == "kg"
        assert who_table.unit("height") == "cm"

    def test_cdc_covers_adolescence(self):
        table = load_reference_table("cdc_2000")
        assert table.supported_range(Metric.HEIGHT, Sex.FEMALE)[1] >= 240
        assert table.supported_range(Metric.HEAD_CIRCUMFERENCE, Sex.FEMALE)[1] < 48


class TestLookup:
    """Grid points, interpolation and range handling."""

    def test_exact_grid_point(self, who_table):
        assert who_table.lookup(Metric.WEIGHT, Sex.MALE, 2) == LMS(0.1970, 5.5675, 0.12385)

    def test_string_keys(self, who_table):
        assert who_table.lookup("weight", "male", 2) == who_table.lookup(Metric.WEIGHT, Sex.MALE, 2)

    def test_interpolation_between_rows(self, synthetic_table):
        L, M, S = synthetic_table.lookup(Metric.WEIGHT, Sex.MALE, 1.25)
        assert L == pytest.approx(1.0)
        assert M == pytest.approx(11.25)
        assert S == pytest.approx(0.1)

    @pytest.mark.parametrize("age", [12.1, 13.5, 14.999])
    def test_interpolated_values_bracketed(self, who_table, age):
        lower = who_table.lookup(Metric.WEIGHT, Sex.FEMALE, 12)
        upper = who_table.lookup(Metric.WEIGHT, Sex.FEMALE, 15)
        lms = who_table.lookup(Metric.WEIGHT, Sex.FEMALE, age)
        for value, a, b in zip(lms, lower, upper):
            assert min(a, b) <= value <= max(a, b)

    def test_continuous_at_grid_point(self, who_table):
        at = who_table.lookup(Metric.HEIGHT, Sex.MALE, 6)
        below = who_table.lookup(Metric.HEIGHT, Sex.MALE, 6 - 1e-9)
        above = who_table.lookup(Metric.HEIGHT, Sex.MALE, 6 + 1e-9)
        for x, y, z in zip(below, at, above):
            assert x == pytest.approx(y, abs=1e-8)
            assert z == pytest.approx(y, abs=1e-8)

    def test_clamped_between_last_grid_point_and_bound(self, who_table):
        assert who_table.lookup(Metric.WEIGHT, Sex.MALE, 36.3) == who_table.lookup(
            Metric.WEIGHT, Sex.MALE, 36
        )

    @pytest.mark.parametrize("age", [-0.01, 36.6, 120, float("nan"), float("inf")])
    def test_out_of_range(self, who_table, age):
        with pytest.raises(OutOfRangeError) as exc:
            who_table.lookup(Metric.WEIGHT, Sex.MALE, age)
        assert exc.value.metric == "weight"
        assert exc.value.max_age == 36.5


class TestValidation:
    """Corrupt reference data is rejected at load time."""

    def test_valid_synthetic(self, synthetic_data):
        table = ReferenceTable.from_dict(synthetic_data)
        assert table.name == "synthetic"
        assert table.resolution(Metric.WEIGHT) == 1

    def test_missing_metric(self, synthetic_data):
        del synthetic_data["metrics"]["height"]
        with pytest.raises(ReferenceDataError, match="height"):
            ReferenceTable.from_dict(synthetic_data)

    def test_missing_sex(self, synthetic_data):
        del synthetic_data["metrics"]["weight"]["female"]
        with pytest.raises(ReferenceDataError):
            ReferenceTable.from_dict(synthetic_data)

    def test_ages_not_increasing(self, synthetic_data):
        synthetic_data["metrics"]["weight"]["male"][2][0] = 1
        with pytest.raises(ReferenceDataError, match="strictly increasing"):
            ReferenceTable.from_dict(synthetic_data)

    def test_non_positive_median(self, synthetic_data):
        synthetic_data["metrics"]["weight"]["male"][1][2] = 0.0
        with pytest.raises(ReferenceDataError, match="M must be positive"):
            ReferenceTable.from_dict(synthetic_data)

    def test_non_positive_cv(self, synthetic_data):
        synthetic_data["metrics"]["height"]["female"][0][3] = -0.1
        with pytest.raises(ReferenceDataError, match="S must be positive"):
            ReferenceTable.from_dict(synthetic_data)

    def test_gap_exceeds_resolution(self, synthetic_data):
        synthetic_data["metrics"]["weight"]["male"][2][0] = 3
        synthetic_data["metrics"]["weight"]["supported_ages"] = [0.0, 3.0]
        with pytest.raises(ReferenceDataError, match="resolution"):
            ReferenceTable.from_dict(synthetic_data)

    def test_supported_range_too_wide(self, synthetic_data):
        synthetic_data["metrics"]["weight"]["supported_ages"] = [0.0, 5.0]
        with pytest.raises(ReferenceDataError, match="supported ages"):
            ReferenceTable.from_dict(synthetic_data)

    def test_non_numeric_value(self, synthetic_data):
        synthetic_data["metrics"]["weight"]["male"][0][1] = "x"
        with pytest.raises(ReferenceDataError):
            ReferenceTable.from_dict(synthetic_data)

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(ReferenceDataError):
            ReferenceTable.from_yaml(tmp_path / "missing.yaml")
