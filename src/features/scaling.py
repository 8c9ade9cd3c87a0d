"""Feature standardization with reusable statistics.

Statistics are learned *only* on training data and then applied
unchanged to the test fold.  Recomputing them on the test fold would put
train and test on different scales, which distorts every distance-based
and penalized model downstream.

Stateful parameters captured in :class:`ScalingStats`:
    - ``means``: Per-predictor training mean.
    - ``scales``: Per-predictor population standard deviation (``ddof=0``),
      with zero-variance predictors mapped to ``1.0`` so they are only
      centered.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from src.data.dataset import Dataset, Split
from src.exceptions import DataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScalingStats:
    """Affine transform ``(x - mean) / scale`` for each predictor."""

    predictors: Tuple[str, ...]
    means: Tuple[float, ...]
    scales: Tuple[float, ...]

    @classmethod
    def fit(cls, dataset: Dataset) -> "ScalingStats":
        """Learn means and scales from ``dataset``.

        Args:
            dataset: Training data.

        Returns:
            Statistics reusable on any dataset carrying the same predictors.
        """
        scaler = StandardScaler()
        scaler.fit(dataset.matrix())

        constant = [
            p for p, var in zip(dataset.predictors, scaler.var_) if var == 0.0
        ]
        if constant:
            logger.warning(
                "Zero-variance predictors will only be centered: %s", constant
            )

        return cls(
            predictors=dataset.predictors,
            means=tuple(float(m) for m in scaler.mean_),
            scales=tuple(float(s) for s in scaler.scale_),
        )

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {p: (m, s) for p, m, s in zip(self.predictors, self.means, self.scales)}

    def apply(self, dataset: Dataset) -> Dataset:
        """Standardize ``dataset`` with these statistics.

        Only predictors covered by the statistics are transformed; any
        extra dataset columns raise because they would be left unscaled.

        Raises:
            DataError: If the dataset and statistics schemas differ.
        """
        missing = [p for p in self.predictors if p not in dataset.predictors]
        extra = [p for p in dataset.predictors if p not in self.predictors]
        if missing or extra:
            raise DataError(
                f"Scaling statistics do not match dataset schema "
                f"(missing: {missing}, unexpected: {extra})."
            )

        cols = list(self.predictors)
        values = dataset.matrix(cols)
        scaled = (values - np.asarray(self.means)) / np.asarray(self.scales)
        features = pd.DataFrame(scaled, columns=cols)[list(dataset.predictors)]
        return dataset.with_features(features)


def standardize(
    dataset: Dataset, stats: Optional[ScalingStats] = None
) -> Tuple[Dataset, ScalingStats]:
    """Rescale every predictor to zero mean and unit variance.

    Args:
        dataset: Data to standardize.
        stats: Previously learned statistics.  When given they are
            applied as-is and nothing is recomputed.

    Returns:
        Tuple of ``(standardized_dataset, stats)``.
    """
    if stats is None:
        stats = ScalingStats.fit(dataset)
    return stats.apply(dataset), stats


def standardize_split(
    split: Split, reuse_train_stats: bool = True
) -> Tuple[Split, ScalingStats]:
    """Standardize both sides of a split.

    Args:
        split: Unscaled train/test split.
        reuse_train_stats: When ``True`` (default) the test fold is scaled
            with the training statistics.  ``False`` fits separate test
            statistics, matching the legacy per-fold rescaling.

    Returns:
        Tuple of ``(scaled_split, train_stats)``.
    """
    train, stats = standardize(split.train)
    if reuse_train_stats:
        test, _ = standardize(split.test, stats)
    else:
        logger.warning(
            "Standardizing the test fold with its own statistics; "
            "held-out errors are not comparable with train-scaled runs."
        )
        test, _ = standardize(split.test)

    scaled = Split(
        train=train,
        test=test,
        train_indices=split.train_indices,
        test_indices=split.test_indices,
    )
    logger.info("Standardized %d predictors.", len(stats.predictors))
    return scaled, stats
