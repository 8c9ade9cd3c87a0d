"""Unit tests for src/models/neighbors.py."""

import tracemalloc

import numpy as np
import pandas as pd
import pytest
from sklearn.neighbors import KNeighborsRegressor

from src.data.dataset import Dataset
from src.exceptions import ConfigurationError, DataError
from src.models.neighbors import NearestNeighborRegressor, is_positive_int, predict_from_neighbors


def _line(xs) -> Dataset:
    xs = np.asarray(xs, dtype=float)
    return Dataset.from_frame(pd.DataFrame({"x": xs, "y": 2.0 * xs}), target="y")


def _make_random_dataset(n_rows: int, n_features: int, seed: int) -> Dataset:
    rng = np.random.default_rng(seed)
    columns = [f"f{i}" for i in range(n_features)]
    df = pd.DataFrame(rng.normal(size=(n_rows, n_features)), columns=columns)
    df["y"] = rng.normal(size=n_rows)
    return Dataset.from_frame(df, target="y")


class TestIsPositiveInt:
    @pytest.mark.parametrize("k", [1, 7, 3.0, np.int64(4)])
    def test_accepts(self, k) -> None:
        assert is_positive_int(k)

    @pytest.mark.parametrize("k", [0, -2, 2.5, True, "3", None, float("nan"), float("inf")])
    def test_rejects(self, k) -> None:
        assert not is_positive_int(k)


class TestPredictFromNeighbors:
    def test_simple_average(self) -> None:
        neighbors = np.array([[2, 0, 1]])
        y = np.array([10.0, 20.0, 30.0])
        assert predict_from_neighbors(neighbors, y, 1)[0] == pytest.approx(30.0)
        assert predict_from_neighbors(neighbors, y, 2)[0] == pytest.approx(20.0)
        assert predict_from_neighbors(neighbors, y, 3)[0] == pytest.approx(20.0)

    def test_k_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError, match="between 1 and 3"):
            predict_from_neighbors(np.array([[0, 1, 2]]), np.zeros(3), 4)


class TestNearestNeighborRegressor:
    def test_k1_returns_nearest_target(self) -> None:
        train = _line([0, 1, 2, 3, 5, 6, 7, 8, 9])
        model = NearestNeighborRegressor(k=1).fit(train)
        preds = model.predict(_line([4.4, 8.9]))
        np.testing.assert_allclose(preds, [10.0, 18.0])

    def test_kneighbors_sorted_by_distance(self) -> None:
        model = NearestNeighborRegressor(k=3).fit(_line([0.0, 5.0, 2.0]))
        assert model.kneighbors(_line([1.9]))[0].tolist() == [2, 0, 1]

    def test_kneighbors_wider_than_k(self) -> None:
        model = NearestNeighborRegressor(k=1).fit(_line([0.0, 5.0, 2.0]))
        assert model.kneighbors(_line([4.0]), n_neighbors=2)[0].tolist() == [1, 2]

    def test_matches_sklearn_regressor(self) -> None:
        train = _make_random_dataset(200, 4, seed=1)
        test = _make_random_dataset(60, 4, seed=2)
        ours = NearestNeighborRegressor(k=5).fit(train).predict(test)
        reference = (
            KNeighborsRegressor(n_neighbors=5, algorithm="brute")
            .fit(train.matrix(), train.target_values())
            .predict(test.matrix())
        )
        np.testing.assert_allclose(ours, reference)

    def test_peak_memory_stays_bounded(self) -> None:
        # A dense (n_test, n_train, p) difference array here would need ~250 MB.
        train = _make_random_dataset(3000, 8, seed=3)
        test = _make_random_dataset(1300, 8, seed=4)
        tracemalloc.start()
        try:
            NearestNeighborRegressor(k=10).fit(train).predict(test)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        assert peak < 150 * 1024 * 1024

    def test_unknown_query_column(self) -> None:
        model = NearestNeighborRegressor(k=1, predictors=["x"]).fit(_line([0.0, 1.0]))
        query = Dataset.from_frame(pd.DataFrame({"z": [1.0], "y": [2.0]}), target="y")
        with pytest.raises(DataError, match="not in dataset schema"):
            model.predict(query)

    def test_k_exceeding_train_rows(self) -> None:
        with pytest.raises(ConfigurationError, match="exceeds"):
            NearestNeighborRegressor(k=5).fit(_line([0, 1, 2]))

    @pytest.mark.parametrize("k", [0, -1, 2.5, "a"])
    def test_invalid_k(self, k) -> None:
        with pytest.raises(ConfigurationError, match="positive integer"):
            NearestNeighborRegressor(k=k)
