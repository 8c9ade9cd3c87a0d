"""Neighborhood-size sweep for k-nearest-neighbor regression.

For a fixed predictor subset, every ``k`` in the grid predicts the test
fold from the training fold and is scored by held-out MSE.  The sweep
uses a single train/test split (no k-fold folding).  Expects features
that are already standardized with training statistics.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from src.control import CancellationToken, check_token
from src.data.dataset import Split
from src.evaluation.metrics import score
from src.exceptions import ConfigurationError, SearchCancelled
from src.models.neighbors import NearestNeighborRegressor, is_positive_int, predict_from_neighbors
from src.tuning.records import EvaluationTable, any_skipped, build_table, evaluate_candidates

logger = logging.getLogger(__name__)

_STAGE = "kNN sweep"


@dataclass(frozen=True)
class SweepResult:
    """Evaluation table of a single-level sweep and its winner."""

    table: EvaluationTable
    best_value: Union[int, float]
    best_mse: float


def validate_k_grid(k_grid: Iterable[int], n_train: int) -> List[int]:
    """Check a neighborhood grid against the training-set size.

    Raises:
        ConfigurationError: If the grid is empty, holds a non-integer or
            non-positive value, or a ``k`` above ``n_train``.
    """
    grid = list(k_grid)
    if not grid:
        raise ConfigurationError("The k grid is empty.")
    for k in grid:
        if not is_positive_int(k):
            raise ConfigurationError(f"k values must be positive integers, got {k!r}.")
        if k > n_train:
            raise ConfigurationError(
                f"k={k} exceeds the {n_train} available training rows."
            )
    return [int(k) for k in grid]


class NeighborSweep:
    """Sweep ``k`` for unweighted k-nearest-neighbor regression.

    Args:
        k_grid: Candidate neighborhood sizes, evaluated in this order.
        n_jobs: Worker threads; candidates are independent.

    Attributes:
        table_: Evaluation table of the latest completed or cancelled run.
    """

    def __init__(self, k_grid: Sequence[int] = tuple(range(2, 11)), n_jobs: int = 1) -> None:
        self.k_grid = list(k_grid)
        self.n_jobs = n_jobs
        self.table_ = EvaluationTable()

    def run(
        self,
        split: Split,
        predictors: Sequence[str],
        token: Optional[CancellationToken] = None,
    ) -> SweepResult:
        """Evaluate every ``k`` and pick the one with the lowest test MSE.

        Args:
            split: Standardized train/test split.
            predictors: Feature subset used for distances.
            token: Optional cancellation token checked before each ``k``.

        Returns:
            :class:`SweepResult` whose ``best_value`` is ``k*``.

        Raises:
            ConfigurationError: For an invalid grid or empty subset.
            DataError: If a predictor is not in the dataset schema.
            SearchCancelled: If the token fires; ``partial`` holds the
                evaluation table so far.
        """
        predictors = list(predictors)
        if not predictors:
            raise ConfigurationError("The kNN sweep needs at least one predictor.")
        split.train.require(predictors)
        grid = validate_k_grid(self.k_grid, split.train.n_rows)
        check_token(token, _STAGE, EvaluationTable())

        # Neighbors up to the largest k are found once and shared read-only.
        model = NearestNeighborRegressor(max(grid), predictors).fit(split.train)
        neighbors = model.kneighbors(split.test)
        train_y = model.train_y_
        test_y = split.test.target_values()

        def _evaluate(k: int) -> float:
            return score(predict_from_neighbors(neighbors, train_y, k), test_y)

        outcomes = evaluate_candidates(_evaluate, grid, self.n_jobs, token)
        table = build_table(outcomes, stage=_STAGE)
        self.table_ = table
        if any_skipped(outcomes):
            raise SearchCancelled(_STAGE, table)

        for rec in table.records:
            logger.debug("k=%d: test MSE=%.6g", rec.candidate, rec.mse)
        best = table.best()
        logger.info(
            "kNN sweep over k=%s on %s: best k=%d (test MSE=%.4g)",
            grid,
            predictors,
            best.candidate,
            best.mse,
        )
        return SweepResult(table=table, best_value=best.candidate, best_mse=best.mse)
