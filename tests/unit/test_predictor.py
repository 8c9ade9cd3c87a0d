"""Unit tests for src/models/predictor.py."""

import numpy as np
import pandas as pd
import pytest

from src.data.dataset import Dataset
from src.exceptions import DataError
from src.models.predictor import linear_predict


def _make_dataset() -> Dataset:
    df = pd.DataFrame(
        {
            "sqft_living": [1000.0, 1500.0, 2000.0, 2500.0],
            "grade": [6.0, 7.0, 7.0, 9.0],
            "sale_price": [2.0e5, 2.6e5, 3.0e5, 4.1e5],
        }
    )
    return Dataset.from_frame(df, target="sale_price")


class TestLinearPredict:
    def test_dot_product_plus_intercept(self) -> None:
        frame = pd.DataFrame({"x1": [1.0, 2.0], "x2": [0.5, -1.0], "unused": [9.0, 9.0]})
        preds = linear_predict(10.0, {"x1": 2.0, "x2": 4.0}, frame)
        np.testing.assert_allclose(preds, [10 + 2 + 2, 10 + 4 - 4])

    def test_accepts_dataset(self) -> None:
        ds = _make_dataset()
        preds = linear_predict(1.0, {"grade": 2.0}, ds)
        np.testing.assert_allclose(preds, 1.0 + 2.0 * ds.features["grade"].to_numpy())

    def test_no_coefficients_gives_intercept(self) -> None:
        preds = linear_predict(3.5, {}, pd.DataFrame({"x": [1.0, 2.0, 3.0]}))
        np.testing.assert_allclose(preds, [3.5, 3.5, 3.5])

    def test_missing_column_raises(self) -> None:
        with pytest.raises(DataError, match="missing"):
            linear_predict(0.0, {"grade": 1.0}, pd.DataFrame({"x": [1.0]}))
