"""Rank finished models by held-out MSE."""

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Tuple

import pandas as pd

from src.exceptions import ConfigurationError, DataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedModel:
    rank: int
    name: str
    mse: float


@dataclass(frozen=True)
class ModelComparison:
    """Models sorted ascending by held-out MSE."""

    ranking: Tuple[RankedModel, ...]

    @property
    def recommended(self) -> RankedModel:
        return self.ranking[0]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"rank": r.rank, "model": r.name, "mse": r.mse} for r in self.ranking],
            columns=["rank", "model", "mse"],
        ).set_index("rank")


def compare(results: Mapping[str, float]) -> ModelComparison:
    """Rank models by held-out MSE.

    The sort is stable, so models with equal MSE keep their input order.

    Args:
        results: Mapping from model name to held-out MSE.

    Returns:
        :class:`ModelComparison` whose first entry is the recommended model.

    Raises:
        ConfigurationError: If ``results`` is empty.
        DataError: If any MSE is negative or not finite.
    """
    if not results:
        raise ConfigurationError("No model results to compare.")

    bad = {name: mse for name, mse in results.items() if not math.isfinite(mse) or mse < 0}
    if bad:
        raise DataError(f"Invalid MSE values: {bad}")

    ordered = sorted(results.items(), key=lambda item: item[1])
    ranking = tuple(
        RankedModel(rank=i + 1, name=name, mse=float(mse))
        for i, (name, mse) in enumerate(ordered)
    )
    logger.info(
        "Recommended model: %s (MSE=%.4g) out of %d.",
        ranking[0].name,
        ranking[0].mse,
        len(ranking),
    )
    return ModelComparison(ranking=ranking)
