"""Unit tests for src/features/scaling.py."""

import numpy as np
import pandas as pd
import pytest

from src.data.dataset import Dataset, Split
from src.exceptions import DataError
from src.features.scaling import ScalingStats, standardize, standardize_split


def _make_dataset(values, target=None) -> Dataset:
    df = pd.DataFrame(values)
    df["sale_price"] = target if target is not None else np.arange(len(df), dtype=float)
    return Dataset.from_frame(df, target="sale_price")


@pytest.fixture()
def train() -> Dataset:
    return _make_dataset({"a": [1.0, 2.0, 3.0, 4.0], "b": [10.0, 10.0, 30.0, 30.0]})


@pytest.fixture()
def test_fold() -> Dataset:
    return _make_dataset({"a": [5.0, 6.0], "b": [20.0, 40.0]})


class TestStandardize:
    def test_zero_mean_unit_variance(self, train: Dataset) -> None:
        scaled, stats = standardize(train)
        values = scaled.matrix()
        np.testing.assert_allclose(values.mean(axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(values.std(axis=0), 1.0, atol=1e-12)
        assert stats.as_dict()["a"] == pytest.approx((2.5, np.sqrt(1.25)))

    def test_target_untouched(self, train: Dataset) -> None:
        scaled, _ = standardize(train)
        assert scaled.target.tolist() == train.target.tolist()

    def test_reuses_given_stats(self, train: Dataset, test_fold: Dataset) -> None:
        _, stats = standardize(train)
        scaled_test, returned = standardize(test_fold, stats)
        assert returned is stats
        expected_a = (np.array([5.0, 6.0]) - 2.5) / np.sqrt(1.25)
        np.testing.assert_allclose(scaled_test.features["a"], expected_a)
        np.testing.assert_allclose(scaled_test.features["b"], [0.0, 2.0])

    def test_zero_variance_predictor_is_centered(self) -> None:
        ds = _make_dataset({"a": [1.0, 2.0, 3.0], "flat": [7.0, 7.0, 7.0]})
        scaled, stats = standardize(ds)
        assert stats.as_dict()["flat"] == (7.0, 1.0)
        assert scaled.features["flat"].tolist() == [0.0, 0.0, 0.0]

    def test_schema_mismatch_raises(self, train: Dataset) -> None:
        stats = ScalingStats.fit(train)
        other = _make_dataset({"a": [1.0, 2.0]})
        with pytest.raises(DataError, match="do not match"):
            stats.apply(other)


class TestStandardizeSplit:
    def test_test_fold_uses_train_stats(self, train: Dataset, test_fold: Dataset) -> None:
        scaled, stats = standardize_split(Split(train=train, test=test_fold))
        expected, _ = standardize(test_fold, stats)
        pd.testing.assert_frame_equal(scaled.test.features, expected.features)

    def test_legacy_independent_scaling(self, train: Dataset, test_fold: Dataset) -> None:
        scaled, _ = standardize_split(Split(train=train, test=test_fold), reuse_train_stats=False)
        np.testing.assert_allclose(scaled.test.matrix().mean(axis=0), 0.0, atol=1e-12)
