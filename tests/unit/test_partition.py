"""Unit tests for src/data/partition.py."""

import numpy as np
import pandas as pd
import pytest

from src.data.dataset import Dataset
from src.data.partition import held_out_size, split
from src.exceptions import ConfigurationError


def _make_dataset(n: int = 25) -> Dataset:
    df = pd.DataFrame({"x": np.arange(n, dtype=float), "y": np.arange(n, dtype=float) * 2})
    return Dataset.from_frame(df, target="y")


class TestHeldOutSize:
    @pytest.mark.parametrize(
        "n, fraction, expected",
        [(100, 0.3, 30), (25, 0.3, 8), (10, 0.25, 3), (10, 0.24, 2)],
    )
    def test_rounds_half_up(self, n: int, fraction: float, expected: int) -> None:
        assert held_out_size(n, fraction) == expected


class TestSplit:
    @pytest.mark.parametrize("fraction, seed", [(0.3, 42), (0.5, 0), (0.1, 7)])
    def test_partition_is_complete_and_disjoint(self, fraction: float, seed: int) -> None:
        ds = _make_dataset(40)
        result = split(ds, fraction, seed)
        train, test = set(result.train_indices), set(result.test_indices)
        assert not train & test
        assert train | test == set(range(40))
        assert result.train.n_rows + result.test.n_rows == 40

    def test_sizes(self) -> None:
        result = split(_make_dataset(100), 0.3, 42)
        assert result.test.n_rows == 30
        assert result.train.n_rows == 70

    def test_deterministic(self) -> None:
        ds = _make_dataset(50)
        a = split(ds, 0.3, 42)
        b = split(ds, 0.3, 42)
        assert a.train_indices == b.train_indices
        assert a.test_indices == b.test_indices

    def test_seed_changes_partition(self) -> None:
        ds = _make_dataset(50)
        assert split(ds, 0.3, 1).test_indices != split(ds, 0.3, 2).test_indices

    def test_rows_follow_indices(self) -> None:
        ds = _make_dataset(20)
        result = split(ds, 0.25, 3)
        assert result.test.features["x"].tolist() == [float(i) for i in result.test_indices]
        assert list(result.train_indices) == sorted(result.train_indices)

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
    def test_invalid_fraction_raises(self, fraction: float) -> None:
        with pytest.raises(ConfigurationError, match="held_out_fraction"):
            split(_make_dataset(10), fraction, 0)

    def test_empty_side_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="non-empty"):
            split(_make_dataset(3), 0.1, 0)
