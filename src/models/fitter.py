"""Linear model fitter driven by the search engines.

The closed-form solvers come from scikit-learn: ordinary least squares
(:class:`~sklearn.linear_model.LinearRegression`) when ``penalty == 0``
and ridge regression (:class:`~sklearn.linear_model.Ridge`) when
``penalty > 0``.  This module only adapts them to the engine's contract:

- :meth:`LinearModelFitter.fit` returns an immutable :class:`FitResult`
  with in-sample R² and adjusted R².
- :meth:`LinearModelFitter.cross_validate` returns the mean k-fold MSE
  for a penalty, used by the ridge sweep.

Designs the solver cannot handle (rank-deficient OLS, too few rows for
adjusted R², non-finite output) raise :class:`~src.exceptions.FitFailure`
with the offending formula attached.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression, Ridge
from sklearn.metrics import r2_score
from sklearn.model_selection import KFold, cross_val_score

from src.data.dataset import CandidateFormula, Dataset
from src.exceptions import ConfigurationError, FitFailure
from src.models.predictor import linear_predict

logger = logging.getLogger(__name__)

FormulaLike = Union[CandidateFormula, Sequence[str]]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FitResult:
    """Outcome of one fit call.

    Attributes:
        formula: Predictors used, in formula order.
        intercept: Fitted intercept.
        coefficients: Predictor name → weight.
        r2: In-sample coefficient of determination.
        adj_r2: In-sample adjusted R²; ``nan`` when ``n - p - 1 <= 0``
            on a ridge fit.
        n_obs: Number of training rows.
        penalty: Ridge strength (``0.0`` for OLS).
    """

    formula: CandidateFormula
    intercept: float
    coefficients: Dict[str, float]
    r2: float
    adj_r2: float
    n_obs: int
    penalty: float = 0.0

    def predict(self, data: Union[Dataset, pd.DataFrame]) -> np.ndarray:
        """Predict targets with ``intercept + Σ coef_i * x_i``."""
        return linear_predict(self.intercept, self.coefficients, data)


@dataclass(frozen=True)
class CrossValidationResult:
    """Mean k-fold MSE for a single penalty."""

    penalty: float
    folds: int
    fold_mse: Tuple[float, ...]

    @property
    def mean_mse(self) -> float:
        return float(np.mean(self.fold_mse))


def adjusted_r2(r2: float, n_obs: int, n_predictors: int) -> float:
    """``1 - (1 - R²) (n - 1) / (n - p - 1)``; ``nan`` if undefined."""
    dof = n_obs - n_predictors - 1
    if dof <= 0:
        return float("nan")
    return 1.0 - (1.0 - r2) * (n_obs - 1) / dof


def as_formula(formula: FormulaLike) -> CandidateFormula:
    if isinstance(formula, CandidateFormula):
        return formula
    return CandidateFormula(tuple(formula))


# ---------------------------------------------------------------------------
# Fitter
# ---------------------------------------------------------------------------


class LinearModelFitter:
    """Fits OLS or ridge models on a formula's columns.

    The fitter holds no per-fit state, so one instance can be shared by
    all worker threads of a search.
    """

    def fit(
        self,
        formula: FormulaLike,
        data: Dataset,
        penalty: float = 0.0,
    ) -> FitResult:
        """Fit ``target ~ formula`` on ``data``.

        Args:
            formula: Predictors to include.
            data: Training data.
            penalty: ``0`` for OLS, ``> 0`` for ridge with that strength.

        Returns:
            Immutable :class:`FitResult`.

        Raises:
            ConfigurationError: If the formula is empty or the penalty is
                negative.
            DataError: If a predictor is not in the dataset schema.
            FitFailure: If the design cannot be solved.
        """
        formula = as_formula(formula)
        X, y = self._design(formula, data, penalty)
        n_obs, n_pred = X.shape

        if penalty == 0.0:
            if n_obs - n_pred - 1 <= 0:
                raise FitFailure(
                    f"{n_obs} rows cannot support {n_pred} predictors plus an intercept",
                    formula,
                )
            design = np.column_stack([np.ones(n_obs), X])
            if np.linalg.matrix_rank(design) < n_pred + 1:
                raise FitFailure("rank-deficient design matrix", formula)
            model = LinearRegression()
        else:
            model = Ridge(alpha=penalty)

        try:
            model.fit(X, y)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FitFailure(f"solver failed: {exc}", formula) from exc

        coef = np.asarray(model.coef_, dtype=float)
        intercept = float(model.intercept_)
        if not (np.isfinite(coef).all() and np.isfinite(intercept)):
            raise FitFailure("solver returned non-finite coefficients", formula)

        r2 = float(r2_score(y, model.predict(X)))
        result = FitResult(
            formula=formula,
            intercept=intercept,
            coefficients=dict(zip(formula.predictors, (float(c) for c in coef))),
            r2=r2,
            adj_r2=adjusted_r2(r2, n_obs, n_pred),
            n_obs=n_obs,
            penalty=float(penalty),
        )
        logger.debug(
            "fit %s (penalty=%g): R²=%.4f adjR²=%.4f",
            formula.render(data.target_name),
            penalty,
            result.r2,
            result.adj_r2,
        )
        return result

    def cross_validate(
        self,
        formula: FormulaLike,
        data: Dataset,
        penalty: float,
        folds: int = 10,
        seed: int = 42,
    ) -> CrossValidationResult:
        """Mean squared error of a penalized fit under shuffled k-fold CV.

        Args:
            formula: Predictors to include.
            data: Training data to fold.
            penalty: Ridge strength (``0`` gives OLS).
            folds: Number of folds, at least 2 and at most ``len(data)``.
            seed: Shuffle seed so every penalty sees the same folds.

        Raises:
            ConfigurationError: If ``folds`` is out of range.
            FitFailure: If any fold cannot be fitted.
        """
        formula = as_formula(formula)
        X, y = self._design(formula, data, penalty)
        if not 2 <= folds <= len(y):
            raise ConfigurationError(
                f"folds must be between 2 and {len(y)} (training rows), got {folds}."
            )

        model = Ridge(alpha=penalty) if penalty > 0 else LinearRegression()
        cv = KFold(n_splits=folds, shuffle=True, random_state=seed)
        try:
            scores = cross_val_score(
                model, X, y, cv=cv, scoring="neg_mean_squared_error", error_score="raise"
            )
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FitFailure(f"cross-validation failed: {exc}", formula) from exc

        fold_mse = tuple(float(-s) for s in scores)
        if not np.isfinite(fold_mse).all():
            raise FitFailure("cross-validation produced non-finite errors", formula)

        result = CrossValidationResult(penalty=float(penalty), folds=folds, fold_mse=fold_mse)
        logger.debug("cv penalty=%g: mean MSE=%.6g", penalty, result.mean_mse)
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _design(
        formula: CandidateFormula, data: Dataset, penalty: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        if len(formula) == 0:
            raise ConfigurationError("Cannot fit an empty formula.")
        if penalty < 0 or not np.isfinite(penalty):
            raise ConfigurationError(f"penalty must be a finite value >= 0, got {penalty}.")
        data.require(formula.predictors)
        return data.matrix(formula.predictors), data.target_values()
