"""Quality gate between the cleaning stage and the model search."""

import logging
from typing import List, Optional, Sequence

import pandas as pd

from src.exceptions import DataError

logger = logging.getLogger(__name__)


class DataQualityChecker:
    """Validates that a cleaned frame satisfies the dataset contract.

    The search engine assumes every predictor is numeric and no value is
    missing.  These checks surface violations with a clear message before
    any :class:`~src.data.dataset.Dataset` is built.

    Args:
        target: Name of the target column.
        predictors: Expected predictor columns.  ``None`` accepts every
            non-target column.
    """

    def __init__(self, target: str, predictors: Optional[Sequence[str]] = None) -> None:
        self.target = target
        self.predictors = list(predictors) if predictors is not None else None

    def required_columns(self, df: pd.DataFrame) -> List[str]:
        if self.predictors is None:
            return [self.target] + [c for c in df.columns if c != self.target]
        return [self.target] + self.predictors

    def validate_schema(self, df: pd.DataFrame) -> None:
        """Assert that the target and all predictors are present.

        Raises:
            DataError: If any required column is missing.
        """
        missing = [c for c in self.required_columns(df) if c not in df.columns]
        if missing:
            raise DataError(f"Data is missing required columns: {missing}")
        logger.info("Schema validation passed – all required columns present.")

    def validate_numeric(self, df: pd.DataFrame) -> None:
        """Raise :class:`DataError` for non-numeric model columns."""
        cols = self.required_columns(df)
        bad = [c for c in cols if not pd.api.types.is_numeric_dtype(df[c])]
        if bad:
            raise DataError(
                f"Columns must be numeric after cleaning; non-numeric: {bad}"
            )

    def report_nulls(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return missing-value counts and rates for the model columns.

        Returns:
            DataFrame with columns ``missing_count`` and ``missing_pct``,
            sorted descending by ``missing_pct``.
        """
        cols = self.required_columns(df)
        summary = pd.DataFrame(
            {
                "missing_count": df[cols].isnull().sum(),
                "missing_pct": df[cols].isnull().mean() * 100,
            }
        ).sort_values("missing_pct", ascending=False)

        with_nulls = summary[summary["missing_count"] > 0]
        if not with_nulls.empty:
            logger.info("Columns with missing values:\n%s", with_nulls.to_string())
        return summary

    def run_all(self, df: pd.DataFrame) -> None:
        """Run every check.

        Raises:
            DataError: On the first violated check; missing values are
                reported per column.
        """
        self.validate_schema(df)
        self.validate_numeric(df)
        nulls = self.report_nulls(df)
        offending = nulls.index[nulls["missing_count"] > 0].tolist()
        if offending:
            raise DataError(f"Missing values in model columns: {offending}")
        logger.info("All quality checks complete.")
