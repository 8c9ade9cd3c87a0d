"""In-memory dataset model shared by every search engine.

A :class:`Dataset` wraps a numeric pandas feature frame and a target
Series.  It is validated once at construction and never mutated
afterwards: every operation (``take``, ``select``, standardization)
returns a new instance, so datasets can be shared by reference across
worker threads.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from src.exceptions import DataError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Record:
    """One observation: predictor values plus the target value."""

    values: Mapping[str, float]
    target: float


# ---------------------------------------------------------------------------
# Candidate formula
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CandidateFormula:
    """Ordered, duplicate-free set of predictor names.

    Insertion order mirrors selection order.  It matters for reporting
    but not for the fitted coefficients.
    """

    predictors: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        predictors = tuple(self.predictors)
        if len(set(predictors)) != len(predictors):
            raise DataError(f"Formula contains duplicate predictors: {list(predictors)}")
        object.__setattr__(self, "predictors", predictors)

    def extend(self, predictor: str) -> "CandidateFormula":
        """Return a new formula with ``predictor`` appended."""
        if predictor in self.predictors:
            raise DataError(f"Predictor '{predictor}' is already in the formula.")
        return CandidateFormula(self.predictors + (predictor,))

    def render(self, target: str = "y") -> str:
        rhs = " + ".join(self.predictors) if self.predictors else "1"
        return f"{target} ~ {rhs}"

    def __len__(self) -> int:
        return len(self.predictors)

    def __iter__(self) -> Iterator[str]:
        return iter(self.predictors)

    def __contains__(self, name: object) -> bool:
        return name in self.predictors

    def __str__(self) -> str:
        return self.render()


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Dataset:
    """Validated, read-only feature matrix and target vector.

    Use :meth:`from_frame` or :meth:`from_records` rather than the
    constructor; they copy the input and check the schema.

    Attributes:
        features: Numeric feature frame, one column per predictor.
        target: Numeric target Series aligned with ``features``.
        target_name: Name of the target column.
    """

    features: pd.DataFrame
    target: pd.Series
    target_name: str = "sale_price"
    predictors: Tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        _validate(self.features, self.target)
        object.__setattr__(self, "predictors", tuple(str(c) for c in self.features.columns))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        target: str,
        predictors: Optional[Sequence[str]] = None,
    ) -> "Dataset":
        """Build a dataset from a cleaned DataFrame.

        Args:
            df: Frame holding the target and the predictor columns.
            target: Name of the target column.
            predictors: Predictor columns to keep.  Defaults to every
                column except ``target``, in frame order.

        Returns:
            A new :class:`Dataset` with a fresh 0..n-1 index.

        Raises:
            DataError: If the target or a predictor column is missing,
                or any value is missing or non-numeric.
        """
        if target not in df.columns:
            raise DataError(f"Target column '{target}' not found in data.")
        if predictors is None:
            predictors = [c for c in df.columns if c != target]
        missing = [p for p in predictors if p not in df.columns]
        if missing:
            raise DataError(f"Predictors not found in data: {missing}")
        if target in predictors:
            raise DataError(f"Target '{target}' cannot also be a predictor.")

        features = df.loc[:, list(predictors)].reset_index(drop=True).copy()
        y = df[target].reset_index(drop=True).copy()
        return cls(features=features, target=y.rename(target), target_name=target)

    @classmethod
    def from_records(cls, records: Iterable[Record], target_name: str = "sale_price") -> "Dataset":
        """Build a dataset from :class:`Record` objects sharing one schema."""
        records = list(records)
        if not records:
            raise DataError("Cannot build a dataset from zero records.")
        schema = list(records[0].values)
        rows: List[Dict[str, float]] = []
        for i, rec in enumerate(records):
            if list(rec.values) != schema:
                raise DataError(
                    f"Record {i} has predictors {list(rec.values)}, expected {schema}."
                )
            rows.append(dict(rec.values))
        features = pd.DataFrame(rows, columns=schema)
        target = pd.Series([r.target for r in records], name=target_name, dtype=float)
        return cls(features=features, target=target, target_name=target_name)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def n_rows(self) -> int:
        return len(self.target)

    def __len__(self) -> int:
        return self.n_rows

    def record(self, i: int) -> Record:
        row = self.features.iloc[i]
        return Record(
            values={p: float(row[p]) for p in self.predictors},
            target=float(self.target.iloc[i]),
        )

    def records(self) -> Iterator[Record]:
        for i in range(self.n_rows):
            yield self.record(i)

    def require(self, predictors: Iterable[str]) -> None:
        """Raise :class:`DataError` if any name is not in the schema."""
        unknown = [p for p in predictors if p not in self.predictors]
        if unknown:
            raise DataError(
                f"Predictors not in dataset schema: {unknown}. "
                f"Available: {list(self.predictors)}"
            )

    def matrix(self, predictors: Optional[Sequence[str]] = None) -> np.ndarray:
        """Return the feature values as a float array.

        Args:
            predictors: Columns to return, in this order.  Defaults to
                the full schema.
        """
        if predictors is None:
            predictors = self.predictors
        predictors = list(predictors)
        self.require(predictors)
        return self.features[predictors].to_numpy(dtype=float)

    def target_values(self) -> np.ndarray:
        return self.target.to_numpy(dtype=float)

    # ------------------------------------------------------------------
    # Derived datasets
    # ------------------------------------------------------------------

    def take(self, indices: Sequence[int]) -> "Dataset":
        """Return the rows at ``indices`` as a new dataset."""
        idx = np.asarray(indices, dtype=int)
        return Dataset(
            features=self.features.iloc[idx].reset_index(drop=True),
            target=self.target.iloc[idx].reset_index(drop=True),
            target_name=self.target_name,
        )

    def select(self, predictors: Sequence[str]) -> "Dataset":
        """Return a dataset restricted to ``predictors`` (in that order)."""
        predictors = list(predictors)
        self.require(predictors)
        return Dataset(
            features=self.features[predictors].copy(),
            target=self.target.copy(),
            target_name=self.target_name,
        )

    def with_features(self, features: pd.DataFrame) -> "Dataset":
        """Return a dataset with replaced feature values and the same target."""
        return Dataset(
            features=features.reset_index(drop=True),
            target=self.target.copy(),
            target_name=self.target_name,
        )


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Split:
    """Disjoint train/test partition of a source dataset.

    Attributes:
        train: Training rows.
        test: Held-out rows.
        train_indices: Source row positions of ``train`` (ascending).
        test_indices: Source row positions of ``test`` (ascending).
    """

    train: Dataset
    test: Dataset
    train_indices: Tuple[int, ...] = ()
    test_indices: Tuple[int, ...] = ()

    @property
    def predictors(self) -> Tuple[str, ...]:
        return self.train.predictors


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate(features: pd.DataFrame, target: pd.Series) -> None:
    if len(features) != len(target):
        raise DataError(
            f"Feature rows ({len(features)}) and target length ({len(target)}) differ."
        )
    if len(set(features.columns)) != len(features.columns):
        raise DataError("Duplicate predictor names in dataset schema.")

    non_numeric = [
        c for c in features.columns if not pd.api.types.is_numeric_dtype(features[c])
    ]
    if non_numeric:
        raise DataError(f"Non-numeric predictor columns: {non_numeric}")
    if not pd.api.types.is_numeric_dtype(target):
        raise DataError(f"Target '{target.name}' is not numeric.")

    null_cols = features.columns[features.isnull().any()].tolist()
    if null_cols:
        raise DataError(f"Missing values in predictor columns: {null_cols}")
    if target.isnull().any():
        raise DataError(f"Missing values in target '{target.name}'.")

    finite = np.isfinite(features.to_numpy(dtype=float)).all(axis=0)
    inf_cols = features.columns[~finite].tolist()
    if inf_cols:
        raise DataError(f"Infinite values in predictor columns: {inf_cols}")
    if not np.isfinite(target.to_numpy(dtype=float)).all():
        raise DataError(f"Infinite values in target '{target.name}'.")
