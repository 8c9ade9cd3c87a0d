"""Evaluation of hand-picked regression formulas.

Two families of fixed formulas are compared against the searched models:

- the *folk-knowledge baseline*, a single formula built from the
  predictors practitioners reach for first (living area, bedrooms,
  bathrooms);
- a small collection of analyst-chosen formulas, of which the one with
  the lowest held-out MSE wins.  Its predictor set also defines the
  feature subset used by the nearest-neighbor and ridge sweeps.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from src.data.dataset import CandidateFormula, Split
from src.evaluation.metrics import score
from src.exceptions import ConfigurationError
from src.models.fitter import FitResult, LinearModelFitter
from src.tuning.records import EvaluationRecord, EvaluationTable, build_table, evaluate_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubsetEvaluation:
    """Held-out errors of a set of named formulas.

    Attributes:
        table: ``(name, test MSE)`` records in input order plus failures.
        formulas: Name → formula for every evaluated candidate.
        fits: Name → training-fold fit for every successful candidate.
    """

    table: EvaluationTable
    formulas: Mapping[str, CandidateFormula]
    fits: Mapping[str, FitResult]

    @property
    def best(self) -> EvaluationRecord:
        return self.table.best()

    @property
    def best_name(self) -> str:
        return self.best.candidate

    @property
    def best_formula(self) -> CandidateFormula:
        return self.formulas[self.best_name]

    @property
    def best_mse(self) -> float:
        return self.best.mse


class FixedSubsetEvaluator:
    """Fits named OLS formulas on the training fold and scores them on test.

    Args:
        fitter: Linear model fitter; a new one is created when omitted.
        n_jobs: Worker threads; formulas are independent of each other.
    """

    def __init__(self, fitter: Optional[LinearModelFitter] = None, n_jobs: int = 1) -> None:
        self.fitter = fitter or LinearModelFitter()
        self.n_jobs = n_jobs

    def evaluate(
        self, split: Split, formulas: Mapping[str, Sequence[str]]
    ) -> SubsetEvaluation:
        """Score every named formula.

        Formulas whose fit fails are listed in ``table.failures`` and left
        out of the ranking; the remaining formulas are still scored.

        Raises:
            ConfigurationError: If ``formulas`` is empty.
            DataError: If a formula references an unknown predictor.
        """
        if not formulas:
            raise ConfigurationError("No formulas to evaluate.")

        parsed: Dict[str, CandidateFormula] = {}
        for name, predictors in formulas.items():
            formula = CandidateFormula(tuple(predictors))
            if len(formula) == 0:
                raise ConfigurationError(f"Formula '{name}' has no predictors.")
            split.train.require(formula.predictors)
            parsed[name] = formula

        def _fit_and_score(name: str):
            fit = self.fitter.fit(parsed[name], split.train)
            return fit, score(fit.predict(split.test), split.test.target_values())

        outcomes = evaluate_candidates(_fit_and_score, list(parsed), self.n_jobs)
        table = build_table(outcomes, mse_of=lambda value: value[1], stage="fixed formulas")
        fits = {o.candidate: o.value[0] for o in outcomes if o.value is not None}

        for rec in table.records:
            logger.info(
                "Formula '%s' (%s): test MSE=%.4g",
                rec.candidate,
                " + ".join(parsed[rec.candidate]),
                rec.mse,
            )
        return SubsetEvaluation(table=table, formulas=parsed, fits=fits)
