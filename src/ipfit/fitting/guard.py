"""Weight floor and missing-category pre-check."""

import logging

import numpy as np

from ipfit import config
from ipfit.fitting.engine import CategoryIndex
from ipfit.marginals import MarginalTable

logger = logging.getLogger(__name__)


def apply_weight_floor(weights: np.ndarray, min_weight: float = config.DEFAULT_MIN_WEIGHT) -> np.ndarray:
    """Raise every weight below min_weight to exactly min_weight.

    A zero weight can never grow under multiplicative scaling, so zero rows would
    otherwise be frozen out of every marginal they belong to.
    """
    floored = np.asarray(weights, dtype=np.float64).copy()
    low = floored < min_weight
    n_low = int(low.sum())
    if n_low:
        logger.debug('Raised %d seed weights to the floor %g', n_low, min_weight)
    floored[low] = min_weight
    return floored


def find_missing_categories(
    index: CategoryIndex,
    weights: np.ndarray,
    tables: list[MarginalTable],
) -> list[tuple[str, str]]:
    """(dimension, category) pairs that have a target but no seed row with positive weight.

    Only total absence is reported. A cross of categories that never occurs is fine
    as long as each category occurs somewhere.
    """
    missing: list[tuple[str, str]] = []
    for table in tables:
        rows_by_cat = index.get(table.dimension, {})
        for cat in table.targets:
            rows = rows_by_cat.get(cat)
            if rows is None or len(rows) == 0 or not (weights[rows] > 0).any():
                missing.append((table.dimension, cat))
    return missing
