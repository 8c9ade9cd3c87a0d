"""k-nearest-neighbor regression in standardized feature space.

Predictions are the simple (unweighted) mean of the ``k`` nearest
training targets under Euclidean distance.  The neighbor search is
scikit-learn's brute-force :class:`~sklearn.neighbors.NearestNeighbors`,
which works through the distance matrix in bounded chunks and returns
the same neighbors for the same inputs on every run.
"""

import logging
import math
import numbers
from typing import Optional, Sequence

import numpy as np
from sklearn.neighbors import NearestNeighbors

from src.data.dataset import Dataset
from src.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def is_positive_int(k) -> bool:
    """True for integral, finite numbers >= 1 (booleans excluded)."""
    if isinstance(k, bool) or not isinstance(k, numbers.Real):
        return False
    return math.isfinite(k) and k == int(k) and k >= 1


def predict_from_neighbors(neighbors: np.ndarray, train_y: np.ndarray, k: int) -> np.ndarray:
    """Average the targets of the first ``k`` columns of ``neighbors``.

    Args:
        neighbors: ``(n_query, m)`` training indices, nearest first.
        train_y: Training targets.
        k: Neighborhood size, ``1 <= k <= m``.
    """
    if not 1 <= k <= neighbors.shape[1]:
        raise ConfigurationError(
            f"k must be between 1 and {neighbors.shape[1]} (neighbors found), got {k}."
        )
    return np.asarray(train_y, dtype=float)[neighbors[:, :k]].mean(axis=1)


class NearestNeighborRegressor:
    """Unweighted k-nearest-neighbor regressor over a fixed predictor subset.

    Args:
        k: Number of neighbors.
        predictors: Columns used for distances.  Defaults to every
            predictor of the training dataset.
    """

    def __init__(self, k: int, predictors: Optional[Sequence[str]] = None) -> None:
        if not is_positive_int(k):
            raise ConfigurationError(f"k must be a positive integer, got {k}.")
        self.k = int(k)
        self.predictors = list(predictors) if predictors is not None else None

    def fit(self, train: Dataset) -> "NearestNeighborRegressor":
        predictors = self.predictors or list(train.predictors)
        if self.k > train.n_rows:
            raise ConfigurationError(
                f"k={self.k} exceeds the {train.n_rows} available training rows."
            )
        self.predictors_ = predictors
        self.index_ = NearestNeighbors(n_neighbors=self.k, algorithm="brute").fit(
            train.matrix(predictors)
        )
        self.train_y_ = train.target_values()
        logger.debug("kNN fitted: k=%d on %d rows.", self.k, train.n_rows)
        return self

    def kneighbors(self, data: Dataset, n_neighbors: Optional[int] = None) -> np.ndarray:
        """Training-row indices of the nearest neighbors, nearest first.

        Args:
            data: Query rows holding every fitted predictor.
            n_neighbors: Columns to return; defaults to ``k``.

        Returns:
            ``(data.n_rows, n_neighbors)`` integer array.

        Raises:
            DataError: If ``data`` lacks a fitted predictor.
        """
        n_neighbors = self.k if n_neighbors is None else n_neighbors
        return self.index_.kneighbors(
            data.matrix(self.predictors_), n_neighbors=n_neighbors, return_distance=False
        )

    def predict(self, data: Dataset) -> np.ndarray:
        return predict_from_neighbors(self.kneighbors(data), self.train_y_, self.k)
