"""Unit tests for src/selection/forward.py."""

import numpy as np
import pandas as pd
import pytest

from src.control import CancellationToken
from src.data.dataset import CandidateFormula, Dataset
from src.data.partition import split
from src.data.synthetic import GENERATING_COEFFICIENTS, TARGET, make_sales_data
from src.exceptions import ConfigurationError, DataError, SearchCancelled
from src.models.fitter import FitResult, LinearModelFitter
from src.selection.forward import ForwardSelector, TrajectoryStep, select_best_step


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _synthetic_dataset(n: int = 100, seed: int = 42) -> Dataset:
    return Dataset.from_frame(make_sales_data(n_rows=n, seed=seed), target=TARGET)


def _step(round_no: int, names, r2: float, adj_r2: float) -> TrajectoryStep:
    formula = CandidateFormula(tuple(names))
    fit = FitResult(
        formula=formula,
        intercept=0.0,
        coefficients={n: 1.0 for n in names},
        r2=r2,
        adj_r2=adj_r2,
        n_obs=50,
    )
    return TrajectoryStep(round=round_no, added=names[-1], formula=formula, fit=fit)


class _CancellingFitter(LinearModelFitter):
    """Cancels ``token`` once ``limit`` fits have been requested."""

    def __init__(self, token: CancellationToken, limit: int) -> None:
        self.token = token
        self.limit = limit
        self.calls = 0

    def fit(self, formula, data, penalty=0.0):
        self.calls += 1
        if self.calls == self.limit:
            self.token.cancel()
        return super().fit(formula, data, penalty)


@pytest.fixture()
def synthetic() -> Dataset:
    return _synthetic_dataset()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestSelectBestStep:
    def test_prefers_adjusted_r2_over_r2(self) -> None:
        trajectory = [
            _step(1, ["a"], 0.50, 0.49),
            _step(2, ["a", "b"], 0.80, 0.79),
            _step(3, ["a", "b", "c"], 0.81, 0.78),
        ]
        best = select_best_step(trajectory)
        assert best.round == 2
        assert best.formula.predictors == ("a", "b")

    def test_first_round_wins_ties(self) -> None:
        trajectory = [_step(1, ["a"], 0.5, 0.7), _step(2, ["a", "b"], 0.6, 0.7)]
        assert select_best_step(trajectory).round == 1

    def test_empty_trajectory_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            select_best_step([])


class TestForwardSelector:
    def test_runs_one_round_per_predictor(self, synthetic: Dataset) -> None:
        trajectory, failures = ForwardSelector().search(synthetic)
        assert len(trajectory) == len(synthetic.predictors)
        assert failures == ()
        assert [len(s.formula) for s in trajectory] == list(range(1, 9))
        assert sorted(s.added for s in trajectory) == sorted(synthetic.predictors)

    def test_r2_never_decreases(self, synthetic: Dataset) -> None:
        trajectory, _ = ForwardSelector().search(synthetic)
        r2 = [s.fit.r2 for s in trajectory]
        assert all(later >= earlier - 1e-12 for earlier, later in zip(r2, r2[1:]))

    def test_formulas_grow_by_appending(self, synthetic: Dataset) -> None:
        trajectory, _ = ForwardSelector().search(synthetic)
        for prev, cur in zip(trajectory, trajectory[1:]):
            assert cur.formula.predictors[:-1] == prev.formula.predictors
            assert cur.formula.predictors[-1] == cur.added

    def test_each_round_picks_max_r2(self, synthetic: Dataset) -> None:
        fitter = LinearModelFitter()
        trajectory, _ = ForwardSelector(fitter).search(synthetic)
        first = trajectory[0]
        single = [fitter.fit([p], synthetic).r2 for p in synthetic.predictors]
        assert first.fit.r2 == pytest.approx(max(single))

    def test_signal_predictors_selected_first(self, synthetic: Dataset) -> None:
        trajectory, _ = ForwardSelector().search(synthetic)
        assert {s.added for s in trajectory[:3]} == set(GENERATING_COEFFICIENTS)

    def test_parallel_matches_serial(self, synthetic: Dataset) -> None:
        serial, _ = ForwardSelector(n_jobs=1).search(synthetic)
        threaded, _ = ForwardSelector(n_jobs=4).search(synthetic)
        assert [s.added for s in serial] == [s.added for s in threaded]
        assert [s.fit.r2 for s in serial] == pytest.approx([s.fit.r2 for s in threaded])

    def test_ties_and_fit_failures(self) -> None:
        rng = np.random.default_rng(0)
        a = rng.normal(size=30)
        b = rng.normal(size=30)
        df = pd.DataFrame(
            {"a": a, "a_copy": a, "b": b, "y": 5 * a + b + rng.normal(scale=0.01, size=30)}
        )
        trajectory, failures = ForwardSelector().search(Dataset.from_frame(df, target="y"))

        # 'a' and 'a_copy' tie in round 1; the earlier one wins.
        assert [s.added for s in trajectory] == ["a", "b"]
        # 'a_copy' is rank-deficient once 'a' is in; recorded, search stops early.
        assert [f.candidate for f in failures] == ["a_copy", "a_copy"]
        assert "rank-deficient" in failures[0].reason

    def test_run_scores_best_formula_on_test(self, synthetic: Dataset) -> None:
        data_split = split(synthetic, 0.3, 42)
        result = ForwardSelector().run(data_split)
        assert result.best is select_best_step(result.trajectory)
        assert result.refit.formula == result.formula
        expected = np.mean(
            (result.refit.predict(data_split.test) - data_split.test.target_values()) ** 2
        )
        assert result.test_mse == pytest.approx(expected)

    def test_trajectory_frame(self, synthetic: Dataset) -> None:
        result = ForwardSelector().run(split(synthetic, 0.3, 42))
        frame = result.trajectory_frame()
        assert list(frame.columns) == ["round", "added", "n_predictors", "formula", "r2", "adj_r2"]
        assert len(frame) == 8

    def test_restricted_predictor_list(self, synthetic: Dataset) -> None:
        trajectory, _ = ForwardSelector().search(synthetic, ["grade", "bedrooms"])
        assert len(trajectory) == 2

    def test_invalid_inputs_fail_fast(self, synthetic: Dataset) -> None:
        selector = ForwardSelector()
        with pytest.raises(ConfigurationError, match="at least one"):
            selector.search(synthetic, [])
        with pytest.raises(DataError, match="not in dataset schema"):
            selector.search(synthetic, ["grade", "garage"])

    def test_cancellation_keeps_partial_trajectory(self, synthetic: Dataset) -> None:
        token = CancellationToken()
        fitter = _CancellingFitter(token, limit=len(synthetic.predictors))
        selector = ForwardSelector(fitter)
        with pytest.raises(SearchCancelled) as exc_info:
            selector.search(synthetic, token=token)
        assert len(exc_info.value.partial) == 1
        assert selector.trajectory_ == exc_info.value.partial
