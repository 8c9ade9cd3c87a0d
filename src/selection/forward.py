"""Greedy forward feature selection.

Starting from an empty formula, each round fits one OLS model per
remaining predictor (``selected + candidate``) and keeps the candidate
with the highest in-sample R².  Rounds run until every predictor has been
added, so the trajectory has one row per predictor and R² never
decreases along it.

Because R² always favours the largest model, the reported winner is the
trajectory row with the highest **adjusted** R², which may be an interior
round.  That formula is refit on the training fold and scored on the
test fold.
"""

import logging
import math
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from src.control import CancellationToken, check_token
from src.data.dataset import CandidateFormula, Dataset, Split
from src.evaluation.metrics import score
from src.exceptions import ConfigurationError, FitFailure, SearchCancelled
from src.models.fitter import FitResult, LinearModelFitter
from src.tuning.records import FailureRecord, any_skipped, evaluate_candidates

logger = logging.getLogger(__name__)

_STAGE = "forward selection"


@dataclass(frozen=True)
class TrajectoryStep:
    """One round of the search: the formula after the round and its fit."""

    round: int
    added: str
    formula: CandidateFormula
    fit: FitResult


@dataclass(frozen=True)
class ForwardSelectionResult:
    """Outcome of a complete forward-selection run.

    Attributes:
        trajectory: One step per round, in round order.
        best: Step with the highest adjusted R².
        refit: Best formula refit on the training fold.
        test_mse: Held-out MSE of ``refit``.
        failures: Candidate fits excluded from their round.
    """

    trajectory: Tuple[TrajectoryStep, ...]
    best: TrajectoryStep
    refit: FitResult
    test_mse: float
    failures: Tuple[FailureRecord, ...] = ()

    @property
    def formula(self) -> CandidateFormula:
        return self.best.formula

    def trajectory_frame(self) -> pd.DataFrame:
        return trajectory_to_dataframe(self.trajectory)


def trajectory_to_dataframe(trajectory: Sequence[TrajectoryStep]) -> pd.DataFrame:
    """Tabulate a trajectory (one row per round) for reporting."""
    return pd.DataFrame(
        [
            {
                "round": step.round,
                "added": step.added,
                "n_predictors": len(step.formula),
                "formula": " + ".join(step.formula),
                "r2": step.fit.r2,
                "adj_r2": step.fit.adj_r2,
            }
            for step in trajectory
        ],
        columns=["round", "added", "n_predictors", "formula", "r2", "adj_r2"],
    )


def select_best_step(trajectory: Sequence[TrajectoryStep]) -> TrajectoryStep:
    """Return the step with maximum adjusted R² (earliest round on ties).

    Raises:
        ConfigurationError: If the trajectory is empty or no step has a
            defined adjusted R².
    """
    best: Optional[TrajectoryStep] = None
    for step in trajectory:
        if math.isnan(step.fit.adj_r2):
            continue
        if best is None or step.fit.adj_r2 > best.fit.adj_r2:
            best = step
    if best is None:
        raise ConfigurationError("Trajectory has no step with a defined adjusted R².")
    return best


class ForwardSelector:
    """Greedy forward-selection engine.

    Args:
        fitter: Linear model fitter.  A new :class:`LinearModelFitter`
            is used when omitted.
        n_jobs: Worker threads for the trial fits within a round.

    Attributes:
        trajectory_: Steps completed by the latest :meth:`run`.  Kept
            up to date while the search runs, so it holds the partial
            trajectory if the search is cancelled.
    """

    def __init__(self, fitter: Optional[LinearModelFitter] = None, n_jobs: int = 1) -> None:
        self.fitter = fitter or LinearModelFitter()
        self.n_jobs = n_jobs
        self.trajectory_: Tuple[TrajectoryStep, ...] = ()

    def search(
        self,
        train: Dataset,
        predictors: Optional[Sequence[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> Tuple[Tuple[TrajectoryStep, ...], Tuple[FailureRecord, ...]]:
        """Build the selection trajectory on ``train``.

        Args:
            train: Training data.
            predictors: Candidate predictors in tie-breaking order.
                Defaults to the dataset schema order.
            token: Optional cancellation token checked before each round.

        Returns:
            Tuple of ``(trajectory, failures)``.

        Raises:
            ConfigurationError: If there are no (or duplicate) predictors.
            DataError: If a predictor is not in the dataset schema.
            SearchCancelled: If the token fires; ``partial`` holds the
                trajectory so far.
        """
        candidates = list(train.predictors if predictors is None else predictors)
        if not candidates:
            raise ConfigurationError("Forward selection needs at least one predictor.")
        if len(set(candidates)) != len(candidates):
            raise ConfigurationError(f"Duplicate predictors: {candidates}")
        train.require(candidates)

        selected = CandidateFormula()
        remaining: List[str] = candidates
        trajectory: List[TrajectoryStep] = []
        failures: List[FailureRecord] = []
        self.trajectory_ = ()

        for round_no in range(1, len(candidates) + 1):
            check_token(token, _STAGE, tuple(trajectory))
            outcomes = evaluate_candidates(
                partial(self._trial, selected, train), remaining, self.n_jobs, token
            )
            if any_skipped(outcomes):
                raise SearchCancelled(_STAGE, tuple(trajectory))

            winner: Optional[str] = None
            winner_fit: Optional[FitResult] = None
            for outcome in outcomes:
                if outcome.failure is not None:
                    logger.warning(
                        "Round %d: candidate '%s' excluded: %s",
                        round_no,
                        outcome.candidate,
                        outcome.failure,
                    )
                    failures.append(
                        FailureRecord(outcome.candidate, f"round {round_no}: {outcome.failure}")
                    )
                    continue
                if winner_fit is None or outcome.value.r2 > winner_fit.r2:
                    winner, winner_fit = outcome.candidate, outcome.value

            if winner is None:
                logger.warning(
                    "Round %d: every remaining candidate failed to fit; stopping with %d "
                    "of %d predictors selected.",
                    round_no,
                    len(selected),
                    len(candidates),
                )
                break

            selected = winner_fit.formula
            remaining = [p for p in remaining if p != winner]
            trajectory.append(
                TrajectoryStep(round=round_no, added=winner, formula=selected, fit=winner_fit)
            )
            self.trajectory_ = tuple(trajectory)
            logger.info(
                "Round %d: added '%s' → R²=%.4f | adj R²=%.4f",
                round_no,
                winner,
                winner_fit.r2,
                winner_fit.adj_r2,
            )

        return tuple(trajectory), tuple(failures)

    def run(
        self,
        split: Split,
        predictors: Optional[Sequence[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> ForwardSelectionResult:
        """Search on the training fold and score the winner on the test fold.

        Args:
            split: Train/test split.
            predictors: Candidate predictors; defaults to the schema.
            token: Optional cancellation token.

        Returns:
            :class:`ForwardSelectionResult`.
        """
        trajectory, failures = self.search(split.train, predictors, token)
        if not trajectory:
            raise FitFailure("forward selection could not fit any single-predictor model")
        best = select_best_step(trajectory)

        refit = self.fitter.fit(best.formula, split.train)
        test_mse = score(refit.predict(split.test), split.test.target_values())
        logger.info(
            "Forward selection winner (round %d of %d): %s | adj R²=%.4f | test MSE=%.4g",
            best.round,
            len(trajectory),
            best.formula.render(split.train.target_name),
            best.fit.adj_r2,
            test_mse,
        )
        return ForwardSelectionResult(
            trajectory=trajectory,
            best=best,
            refit=refit,
            test_mse=test_mse,
            failures=failures,
        )

    def _trial(self, selected: CandidateFormula, train: Dataset, candidate: str) -> FitResult:
        return self.fitter.fit(selected.extend(candidate), train)
