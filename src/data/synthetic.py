"""Synthetic sale records with a known linear generating formula.

Used for demos (``main.py --synthetic``) and for end-to-end tests: the
target depends linearly on a few predictors plus small Gaussian noise,
while the remaining predictors are pure distractors.
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TARGET = "sale_price"

GENERATING_INTERCEPT = 50_000.0

# Predictors that drive the price, with their true weights.
GENERATING_COEFFICIENTS: Dict[str, float] = {
    "sqft_living": 150.0,
    "grade": 20_000.0,
    "bathrooms": 15_000.0,
}

DISTRACTORS = ["bedrooms", "sqft_lot", "yr_built", "condition", "floors"]


def make_sales_data(
    n_rows: int = 100,
    seed: int = 42,
    noise_sd: float = 5_000.0,
    coefficients: Optional[Dict[str, float]] = None,
    intercept: float = GENERATING_INTERCEPT,
) -> pd.DataFrame:
    """Generate cleaned, all-numeric sale records.

    Args:
        n_rows: Number of records.
        seed: Seed for :func:`numpy.random.default_rng`.
        noise_sd: Standard deviation of the additive Gaussian noise.
        coefficients: Weights of the generating formula; defaults to
            :data:`GENERATING_COEFFICIENTS`.  Keys must be predictor names
            produced by this function.
        intercept: Intercept of the generating formula.

    Returns:
        DataFrame with eight predictor columns and ``sale_price``.
    """
    rng = np.random.default_rng(seed)
    coefficients = GENERATING_COEFFICIENTS if coefficients is None else coefficients

    df = pd.DataFrame(
        {
            "sqft_living": rng.normal(2_000, 500, n_rows).round(0),
            "grade": rng.integers(4, 13, n_rows).astype(float),
            "bathrooms": rng.integers(2, 9, n_rows) / 2.0,
            "bedrooms": rng.integers(1, 7, n_rows).astype(float),
            "sqft_lot": rng.normal(8_000, 2_000, n_rows).round(0),
            "yr_built": rng.integers(1950, 2016, n_rows).astype(float),
            "condition": rng.integers(1, 6, n_rows).astype(float),
            "floors": rng.integers(2, 7, n_rows) / 2.0,
        }
    )

    unknown = [p for p in coefficients if p not in df.columns]
    if unknown:
        raise ValueError(f"Unknown generating predictors: {unknown}")

    signal = np.full(n_rows, float(intercept))
    for name, weight in coefficients.items():
        signal += weight * df[name].to_numpy()
    df[TARGET] = signal + rng.normal(0.0, noise_sd, n_rows)

    logger.info(
        "Generated %d synthetic sale records (noise sd=%.0f, seed=%d).",
        n_rows,
        noise_sd,
        seed,
    )
    return df
