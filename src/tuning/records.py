"""Evaluation tables shared by the sweep engines.

Each candidate (a hyperparameter value or a formula) is evaluated
independently by a worker.  Workers return :class:`CandidateOutcome`
values instead of writing to shared state; the engine reduces them in
grid order once the batch is done.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from joblib import Parallel, delayed

from src.control import CancellationToken
from src.exceptions import FitFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationRecord:
    """A candidate and its error (held-out or cross-validated MSE)."""

    candidate: Any
    mse: float


@dataclass(frozen=True)
class FailureRecord:
    """A candidate excluded from a table because its fit failed."""

    candidate: Any
    reason: str


@dataclass(frozen=True)
class CandidateOutcome:
    candidate: Any
    value: Any = None
    failure: Optional[FitFailure] = None
    skipped: bool = False


@dataclass(frozen=True)
class EvaluationTable:
    """Ordered evaluation records plus the candidates that failed."""

    records: Tuple[EvaluationRecord, ...] = ()
    failures: Tuple[FailureRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def best(self) -> EvaluationRecord:
        """Minimum-MSE record; the first one wins on ties.

        Raises:
            FitFailure: If every candidate failed.
        """
        if not self.records:
            raise FitFailure(
                f"no candidate produced a fit ({len(self.failures)} failures)"
            )
        best = self.records[0]
        for rec in self.records[1:]:
            if rec.mse < best.mse:
                best = rec
        return best

    def ranked(self, n: Optional[int] = None) -> List[EvaluationRecord]:
        """Records sorted by MSE (stable), optionally truncated to ``n``."""
        ordered = sorted(self.records, key=lambda r: r.mse)
        return ordered if n is None else ordered[:n]

    def to_dataframe(self, key: str = "candidate") -> pd.DataFrame:
        return pd.DataFrame(
            [{key: r.candidate, "mse": r.mse} for r in self.records],
            columns=[key, "mse"],
        )


def evaluate_candidates(
    func: Callable[[Any], Any],
    candidates: Sequence[Any],
    n_jobs: int = 1,
    token: Optional[CancellationToken] = None,
) -> List[CandidateOutcome]:
    """Run ``func`` on every candidate and capture fit failures.

    Candidates run on joblib's threading backend; datasets are shared by
    reference and nothing is written from the workers.  Outcomes come back
    in the order of ``candidates`` whatever ``n_jobs`` is.

    Args:
        func: Evaluation callable for one candidate.
        candidates: Candidates to evaluate.
        n_jobs: Worker threads (``-1`` for all cores).
        token: Optional cancellation token.  Candidates that start after
            cancellation are returned with ``skipped=True``.

    Returns:
        One :class:`CandidateOutcome` per candidate.
    """

    def _run(candidate: Any) -> CandidateOutcome:
        if token is not None and token.cancelled:
            return CandidateOutcome(candidate=candidate, skipped=True)
        try:
            return CandidateOutcome(candidate=candidate, value=func(candidate))
        except FitFailure as exc:
            return CandidateOutcome(candidate=candidate, failure=exc)

    if n_jobs == 1 or len(candidates) <= 1:
        return [_run(c) for c in candidates]
    return Parallel(n_jobs=n_jobs, backend="threading", prefer="threads")(
        delayed(_run)(c) for c in candidates
    )


def build_table(
    outcomes: Iterable[CandidateOutcome],
    mse_of: Callable[[Any], float] = float,
    stage: str = "sweep",
) -> EvaluationTable:
    """Reduce worker outcomes into an :class:`EvaluationTable`.

    Failed candidates are logged and listed in ``failures``; they never
    appear among the records.
    """
    records: List[EvaluationRecord] = []
    failures: List[FailureRecord] = []
    for outcome in outcomes:
        if outcome.skipped:
            continue
        if outcome.failure is not None:
            logger.warning(
                "%s: candidate %r excluded: %s", stage, outcome.candidate, outcome.failure
            )
            failures.append(FailureRecord(outcome.candidate, str(outcome.failure)))
            continue
        mse = mse_of(outcome.value)
        if not math.isfinite(mse):
            logger.warning("%s: candidate %r excluded: non-finite MSE", stage, outcome.candidate)
            failures.append(FailureRecord(outcome.candidate, "non-finite MSE"))
            continue
        records.append(EvaluationRecord(outcome.candidate, mse))
    return EvaluationTable(records=tuple(records), failures=tuple(failures))


def any_skipped(outcomes: Iterable[CandidateOutcome]) -> bool:
    return any(o.skipped for o in outcomes)
