"""Prediction helpers for fitted linear models.

Ridge coefficients are applied with an explicit dot product rather than
a solver's own ``predict`` so that every linear model (OLS, ridge)
shares one prediction path that is easy to test in isolation.
"""

import logging
from typing import Mapping

import numpy as np
import pandas as pd

from src.exceptions import DataError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure prediction function
# ---------------------------------------------------------------------------


def linear_predict(
    intercept: float,
    coefficients: Mapping[str, float],
    data,
) -> np.ndarray:
    """Row-wise ``intercept + Σ coefficient_i * feature_i``.

    Args:
        intercept: Model intercept.
        coefficients: Predictor name → weight.  Only these columns are read.
        data: A :class:`~src.data.dataset.Dataset` or a DataFrame holding
            every coefficient's column.

    Returns:
        1-D array of predictions, one per row.

    Raises:
        DataError: If a coefficient's column is missing.
    """
    frame = data if isinstance(data, pd.DataFrame) else data.features
    names = list(coefficients)
    missing = [n for n in names if n not in frame.columns]
    if missing:
        raise DataError(f"Cannot predict: columns missing from data: {missing}")

    if not names:
        return np.full(len(frame), float(intercept))
    X = frame[names].to_numpy(dtype=float)
    weights = np.array([coefficients[n] for n in names], dtype=float)
    return float(intercept) + X @ weights
