"""Unit tests for src/selection/subsets.py."""

import numpy as np
import pandas as pd
import pytest

from src.data.dataset import Dataset
from src.data.partition import split
from src.data.synthetic import TARGET, make_sales_data
from src.exceptions import ConfigurationError, DataError
from src.selection.subsets import FixedSubsetEvaluator


@pytest.fixture()
def data_split():
    ds = Dataset.from_frame(make_sales_data(n_rows=100, seed=42), target=TARGET)
    return split(ds, 0.3, 42)


class TestFixedSubsetEvaluator:
    def test_picks_lowest_test_mse(self, data_split) -> None:
        formulas = {
            "noise": ["bedrooms", "floors"],
            "signal": ["sqft_living", "grade", "bathrooms"],
            "partial": ["sqft_living"],
        }
        result = FixedSubsetEvaluator().evaluate(data_split, formulas)
        assert result.best_name == "signal"
        assert result.best_formula.predictors == ("sqft_living", "grade", "bathrooms")
        assert [r.candidate for r in result.table.records] == ["noise", "signal", "partial"]
        assert result.best_mse == min(r.mse for r in result.table.records)

    def test_mse_matches_manual_fit(self, data_split) -> None:
        result = FixedSubsetEvaluator().evaluate(data_split, {"size": ["sqft_living"]})
        fit = result.fits["size"]
        manual = np.mean((fit.predict(data_split.test) - data_split.test.target_values()) ** 2)
        assert result.best_mse == pytest.approx(manual)

    def test_failed_formula_recorded(self) -> None:
        rng = np.random.default_rng(1)
        a = rng.normal(size=40)
        df = pd.DataFrame({"a": a, "a2": 2 * a, "b": rng.normal(size=40)})
        df["y"] = a + df["b"]
        data_split = split(Dataset.from_frame(df, target="y"), 0.25, 0)
        result = FixedSubsetEvaluator().evaluate(
            data_split, {"collinear": ["a", "a2"], "ok": ["a", "b"]}
        )
        assert [r.candidate for r in result.table.records] == ["ok"]
        assert result.table.failures[0].candidate == "collinear"
        assert "collinear" not in result.fits

    def test_empty_mapping_raises(self, data_split) -> None:
        with pytest.raises(ConfigurationError):
            FixedSubsetEvaluator().evaluate(data_split, {})

    def test_unknown_predictor_fails_before_fitting(self, data_split) -> None:
        with pytest.raises(DataError):
            FixedSubsetEvaluator().evaluate(data_split, {"bad": ["garage"]})
