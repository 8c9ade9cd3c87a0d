"""Scoring harness for held-out sale-price predictions.

Every engine (forward selection, fixed formulas, nearest-neighbor and
ridge sweeps) scores its final model with :func:`score`, so all reported
errors share one contract: the **mean squared error** on the test fold.

:func:`compute_metrics` adds a wider suite (RMSE, MAE, R²) for the
finalist report printed by ``main.py``.
"""

import logging
from typing import Dict, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from src.exceptions import DataError

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]


def _as_pair(predictions: ArrayLike, actuals: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    y_pred = np.asarray(predictions, dtype=float).ravel()
    y_true = np.asarray(actuals, dtype=float).ravel()
    if y_pred.shape != y_true.shape:
        raise DataError(
            f"Length mismatch: {len(y_pred)} predictions vs {len(y_true)} actuals."
        )
    if y_true.size == 0:
        raise DataError("Cannot score zero predictions.")
    if not (np.isfinite(y_pred).all() and np.isfinite(y_true).all()):
        raise DataError("Predictions and actuals must be finite.")
    return y_pred, y_true


def score(predictions: ArrayLike, actuals: ArrayLike) -> float:
    """Mean squared error ``mean((p_i - a_i) ** 2)``.

    Pure function with no shared state; safe to call from worker threads.

    Args:
        predictions: Predicted targets.
        actuals: True targets, same length as ``predictions``.

    Returns:
        The mean squared error.

    Raises:
        DataError: If the lengths differ, the inputs are empty, or any
            value is not finite.
    """
    y_pred, y_true = _as_pair(predictions, actuals)
    return float(mean_squared_error(y_true, y_pred))


def compute_metrics(
    y_true: ArrayLike,
    y_pred: ArrayLike,
    label: str = "",
) -> Dict[str, float]:
    """Compute a standard suite of regression metrics.

    Args:
        y_true: Ground-truth sale prices.
        y_pred: Predicted sale prices.
        label: Optional label for log output (e.g. ``"ridge/test"``).

    Returns:
        Dictionary with the following keys:

        - ``mse``  – Mean Squared Error (primary comparison metric).
        - ``rmse`` – Root Mean Squared Error.
        - ``mae``  – Mean Absolute Error.
        - ``r2``   – Coefficient of Determination (``nan`` for one row).

    Raises:
        DataError: If ``y_true`` and ``y_pred`` have different lengths.
    """
    y_pred_arr, y_true_arr = _as_pair(y_pred, y_true)

    mse = float(mean_squared_error(y_true_arr, y_pred_arr))
    mae = float(mean_absolute_error(y_true_arr, y_pred_arr))
    r2 = float(r2_score(y_true_arr, y_pred_arr)) if y_true_arr.size > 1 else float("nan")

    results: Dict[str, float] = {
        "mse": mse,
        "rmse": float(np.sqrt(mse)),
        "mae": mae,
        "r2": r2,
    }

    prefix = f"[{label}] " if label else ""
    logger.info(
        "%sMSE=%.4g | RMSE=%.4g | MAE=%.4g | R²=%.4f",
        prefix,
        mse,
        results["rmse"],
        mae,
        r2,
    )
    return results


def metrics_to_dataframe(results: Mapping[str, Mapping[str, float]]) -> pd.DataFrame:
    """Convert a dict of {model_name: metrics_dict} into a tidy DataFrame.

    Args:
        results: Mapping from model label to the dict returned by
            :func:`compute_metrics`.

    Returns:
        DataFrame with models as rows and metric names as columns.
    """
    return pd.DataFrame(results).T.rename_axis("model")
