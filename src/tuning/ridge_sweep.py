"""Two-phase penalty sweep for ridge regression.

Phase 1 scores a coarse grid spanning several orders of magnitude by
k-fold cross-validated MSE on the training fold.  The two best coarse
penalties bound a bracket; phase 2 scores a fine linear grid inside that
bracket.  The winning penalty is refit on the whole training fold and
its test predictions are computed with an explicit
``intercept + Σ coef_i * x_i`` so that the held-out MSE is directly
comparable with the other engines.
"""

import logging
import math
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Sequence, Tuple

import numpy as np

from src.control import CancellationToken, check_token
from src.data.dataset import CandidateFormula, Dataset, Split
from src.evaluation.metrics import score
from src.exceptions import ConfigurationError, FitFailure, SearchCancelled
from src.models.fitter import CrossValidationResult, FitResult, LinearModelFitter
from src.models.predictor import linear_predict
from src.tuning.records import EvaluationTable, any_skipped, build_table, evaluate_candidates

logger = logging.getLogger(__name__)

DEFAULT_COARSE_GRID = (0.001, 0.1, 1.0, 10.0)
DEFAULT_REFINE_STEP = 0.01


@dataclass(frozen=True)
class RidgeSweepResult:
    """Outcome of both sweep phases and the final refit.

    Attributes:
        coarse: Phase-1 table of ``(penalty, mean CV MSE)``.
        refined: Phase-2 table of ``(penalty, mean CV MSE)``.
        bracket: ``(low, high)`` penalties bounding the phase-2 grid.
        best_penalty: Penalty with the lowest phase-2 CV error.
        best_cv_mse: That penalty's mean CV MSE.
        fit: Ridge model refit on the full training fold.
        test_mse: Held-out MSE of ``fit``.
    """

    coarse: EvaluationTable
    refined: EvaluationTable
    bracket: Tuple[float, float]
    best_penalty: float
    best_cv_mse: float
    fit: FitResult
    test_mse: float


def bracket_from(table: EvaluationTable) -> Tuple[float, float]:
    """Return ``(low, high)`` spanned by the two lowest-error penalties.

    Raises:
        FitFailure: If fewer than two penalties were evaluated.
    """
    top = table.ranked(2)
    if len(top) < 2:
        raise FitFailure(
            f"coarse ridge sweep needs two successful penalties, got {len(top)}"
        )
    a, b = top[0].candidate, top[1].candidate
    return (min(a, b), max(a, b))


def refine_grid(low: float, high: float, step: float) -> List[float]:
    """Linear grid from ``low`` to ``high`` with spacing ``step``.

    Both endpoints are always included and no value leaves the bracket.
    """
    if step <= 0:
        raise ConfigurationError(f"refine step must be positive, got {step}.")
    if high < low:
        raise ConfigurationError(f"Invalid bracket ({low}, {high}).")

    n_steps = int(math.floor((high - low) / step + 1e-9))
    values = np.clip(np.round(low + step * np.arange(n_steps + 1), 12), low, high)
    grid = [float(v) for v in values]
    if not math.isclose(grid[-1], high, rel_tol=0.0, abs_tol=1e-12):
        grid.append(float(high))
    return grid


def validate_penalty_grid(grid: Sequence[float]) -> List[float]:
    values = [float(v) for v in grid]
    if len(values) < 2:
        raise ConfigurationError(
            f"The coarse penalty grid needs at least two values, got {values}."
        )
    if len(set(values)) != len(values):
        raise ConfigurationError(f"Duplicate penalties in grid: {values}")
    bad = [v for v in values if not math.isfinite(v) or v <= 0]
    if bad:
        raise ConfigurationError(f"Penalties must be finite and > 0, got {bad}.")
    return values


class RidgeSweep:
    """Coarse-then-refined search over the ridge penalty.

    Args:
        fitter: Linear model fitter used for CV and the final refit.
        coarse_grid: Phase-1 penalties.
        refine_step: Spacing of the phase-2 linear grid.
        folds: Number of cross-validation folds.
        seed: Fold shuffle seed, shared by every penalty.
        n_jobs: Worker threads; penalties are independent.
        max_refine_points: Upper bound on the phase-2 grid size.

    Attributes:
        coarse_: Phase-1 table of the latest run (also set on cancellation).
        refined_: Phase-2 table of the latest run.
    """

    def __init__(
        self,
        fitter: Optional[LinearModelFitter] = None,
        coarse_grid: Sequence[float] = DEFAULT_COARSE_GRID,
        refine_step: float = DEFAULT_REFINE_STEP,
        folds: int = 10,
        seed: int = 42,
        n_jobs: int = 1,
        max_refine_points: int = 5000,
    ) -> None:
        self.fitter = fitter or LinearModelFitter()
        self.coarse_grid = list(coarse_grid)
        self.refine_step = refine_step
        self.folds = folds
        self.seed = seed
        self.n_jobs = n_jobs
        self.max_refine_points = max_refine_points
        self.coarse_ = EvaluationTable()
        self.refined_ = EvaluationTable()

    def run(
        self,
        split: Split,
        predictors: Sequence[str],
        token: Optional[CancellationToken] = None,
    ) -> RidgeSweepResult:
        """Run both phases, refit the winner and score it on the test fold.

        Args:
            split: Train/test split (standardized features recommended).
            predictors: Fixed feature subset.
            token: Optional cancellation token checked before each penalty.

        Returns:
            :class:`RidgeSweepResult`.

        Raises:
            ConfigurationError: For an invalid grid, step or fold count.
            DataError: If a predictor is not in the dataset schema.
            FitFailure: If too few penalties could be evaluated.
            SearchCancelled: If the token fires; ``partial`` holds the
                evaluation table of the phase in progress.
        """
        formula = CandidateFormula(tuple(predictors))
        if len(formula) == 0:
            raise ConfigurationError("The ridge sweep needs at least one predictor.")
        split.train.require(formula.predictors)
        coarse_grid = validate_penalty_grid(self.coarse_grid)
        if self.refine_step <= 0:
            raise ConfigurationError(f"refine_step must be positive, got {self.refine_step}.")
        if not 2 <= self.folds <= split.train.n_rows:
            raise ConfigurationError(
                f"folds must be between 2 and {split.train.n_rows}, got {self.folds}."
            )
        # The bracket lies inside the coarse range, so this bounds phase 2.
        span = max(coarse_grid) - min(coarse_grid)
        widest = int(math.floor(span / self.refine_step + 1e-9)) + 1
        if widest > self.max_refine_points:
            raise ConfigurationError(
                f"Refined grid could reach {widest} points (limit "
                f"{self.max_refine_points}); increase refine_step."
            )
        self.coarse_ = EvaluationTable()
        self.refined_ = EvaluationTable()

        # Phase 1
        self.coarse_ = self._sweep(formula, split.train, coarse_grid, "ridge coarse sweep", token)
        bracket = bracket_from(self.coarse_)
        logger.info(
            "Ridge coarse sweep: best penalties bracket [%g, %g]", bracket[0], bracket[1]
        )

        # Phase 2
        fine_grid = refine_grid(bracket[0], bracket[1], self.refine_step)
        self.refined_ = self._sweep(formula, split.train, fine_grid, "ridge refined sweep", token)
        best = self.refined_.best()

        fit = self.fitter.fit(formula, split.train, penalty=best.candidate)
        preds = linear_predict(fit.intercept, fit.coefficients, split.test)
        test_mse = score(preds, split.test.target_values())
        logger.info(
            "Ridge sweep winner: penalty=%g (CV MSE=%.4g) | test MSE=%.4g",
            best.candidate,
            best.mse,
            test_mse,
        )
        return RidgeSweepResult(
            coarse=self.coarse_,
            refined=self.refined_,
            bracket=bracket,
            best_penalty=float(best.candidate),
            best_cv_mse=best.mse,
            fit=fit,
            test_mse=test_mse,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sweep(
        self,
        formula: CandidateFormula,
        train: Dataset,
        grid: Sequence[float],
        stage: str,
        token: Optional[CancellationToken],
    ) -> EvaluationTable:
        check_token(token, stage, EvaluationTable())
        outcomes = evaluate_candidates(
            partial(self._cross_validate, formula, train), list(grid), self.n_jobs, token
        )
        table = build_table(
            outcomes, mse_of=lambda cv: cv.mean_mse, stage=stage
        )
        if any_skipped(outcomes):
            raise SearchCancelled(stage, table)
        logger.debug("%s: evaluated %d penalties.", stage, len(table))
        return table

    def _cross_validate(
        self, formula: CandidateFormula, train: Dataset, penalty: float
    ) -> CrossValidationResult:
        return self.fitter.cross_validate(
            formula, train, penalty, folds=self.folds, seed=self.seed
        )
