"""Train/test partitioning of a :class:`~src.data.dataset.Dataset`."""

import logging
import math

import numpy as np

from src.data.dataset import Dataset, Split
from src.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def held_out_size(n_rows: int, held_out_fraction: float) -> int:
    """Number of test rows for ``n_rows`` records.

    Rounds half up: ``floor(fraction * n + 0.5)``.  With ``n = 25`` and
    ``fraction = 0.3`` the test set has 8 rows (7.5 rounds up).
    """
    return int(math.floor(held_out_fraction * n_rows + 0.5))


def split(dataset: Dataset, held_out_fraction: float, seed: int) -> Split:
    """Partition ``dataset`` into disjoint training and test subsets.

    The first ``held_out_size(n, fraction)`` positions of a seeded
    permutation form the test set and the rest form the training set.
    Both index sets are sorted so that rows keep their source order.

    Args:
        dataset: Source dataset.
        held_out_fraction: Share of rows held out, strictly between 0 and 1.
        seed: Seed for :func:`numpy.random.default_rng`.

    Returns:
        A :class:`Split` whose train and test indices cover every source
        row exactly once.

    Raises:
        ConfigurationError: If the fraction is out of range or leaves
            either side empty.
    """
    if not 0.0 < held_out_fraction < 1.0:
        raise ConfigurationError(
            f"held_out_fraction must be in (0, 1), got {held_out_fraction}."
        )

    n = dataset.n_rows
    n_test = held_out_size(n, held_out_fraction)
    if n_test < 1 or n - n_test < 1:
        raise ConfigurationError(
            f"held_out_fraction={held_out_fraction} on {n} rows gives "
            f"{n - n_test} train / {n_test} test rows; both must be non-empty."
        )

    rng = np.random.default_rng(seed)
    order = rng.permutation(n)
    test_idx = np.sort(order[:n_test])
    train_idx = np.sort(order[n_test:])

    logger.info(
        "Split %d rows → train: %d | test: %d (fraction=%.3f, seed=%d)",
        n,
        len(train_idx),
        len(test_idx),
        held_out_fraction,
        seed,
    )
    return Split(
        train=dataset.take(train_idx),
        test=dataset.take(test_idx),
        train_indices=tuple(int(i) for i in train_idx),
        test_indices=tuple(int(i) for i in test_idx),
    )
