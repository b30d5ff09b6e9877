"""The IPF iteration: per-category multiplicative scaling over a precomputed row index."""

import logging

import numpy as np
import polars as pl

from ipfit.marginals import MarginalTable

logger = logging.getLogger(__name__)

# dimension -> category -> positions of the seed rows carrying that category
CategoryIndex = dict[str, dict[str, np.ndarray]]


def build_category_index(seed: pl.DataFrame, dimensions: list[str]) -> CategoryIndex:
    """Map every (dimension, category) to the row positions holding it.

    Built once per fit and reused by every pass. Within a dimension the
    categories partition the rows.

    Args:
        seed: Validated seed with Utf8 dimension columns.
        dimensions: Dimension columns to index.

    Returns:
        Nested dict of int arrays, categories in order of first appearance.
    """
    rows = seed.select(dimensions).with_row_index('_row')
    index: CategoryIndex = {}
    for dim in dimensions:
        groups = rows.group_by(dim, maintain_order=True).agg(pl.col('_row'))
        index[dim] = {cat: np.asarray(positions, dtype=np.intp) for cat, positions in groups.iter_rows()}
    return index


def observed_totals(weights: np.ndarray, index: CategoryIndex, table: MarginalTable) -> dict[str, float]:
    """Current weighted total per category of one marginal table (0.0 for absent categories)."""
    rows_by_cat = index.get(table.dimension, {})
    out: dict[str, float] = {}
    for cat in table.targets:
        rows = rows_by_cat.get(cat)
        out[cat] = float(weights[rows].sum()) if rows is not None else 0.0
    return out


def relative_gap(observed: float, target: float) -> float:
    """|observed - target| / target, or the absolute difference when the target is zero."""
    if target == 0:
        return abs(observed)
    return abs(observed - target) / target


def max_relative_gap(weights: np.ndarray, index: CategoryIndex, tables: list[MarginalTable]) -> float:
    """Convergence metric: the largest relative gap over every constraint."""
    gap = 0.0
    for table in tables:
        observed = observed_totals(weights, index, table)
        for cat, target in table.targets.items():
            gap = max(gap, relative_gap(observed[cat], target))
    return gap


def scale_dimension(weights: np.ndarray, rows_by_cat: dict[str, np.ndarray], table: MarginalTable) -> int:
    """Scale the rows of each category so they sum to its target. Updates weights in place.

    Returns:
        Number of categories skipped because their current total was zero.
    """
    skipped = 0
    for cat, target in table.targets.items():
        rows = rows_by_cat.get(cat)
        if rows is None or len(rows) == 0:
            skipped += 1
            continue
        observed = weights[rows].sum()
        if observed == 0:
            logger.debug('Skipping %s=%s: observed total is zero', table.dimension, cat)
            skipped += 1
            continue
        weights[rows] *= target / observed
    return skipped


def run_ipf(
    weights: np.ndarray,
    index: CategoryIndex,
    tables: list[MarginalTable],
    max_iterations: int,
    tolerance: float,
) -> tuple[np.ndarray, list[float]]:
    """Iterate full passes over all tables until the max relative gap is below tolerance.

    Each pass scales every dimension in table order; one dimension's update is
    complete before the next dimension's totals are computed.

    Args:
        weights: Starting weights (already floored). Not modified.
        index: Row index from build_category_index.
        tables: Reconciled marginal tables in processing order.
        max_iterations: Maximum number of passes.
        tolerance: Stop once the max relative gap falls below this.

    Returns:
        Tuple of (fitted weights, max relative gap after each pass).
    """
    w = np.array(weights, dtype=np.float64, copy=True)
    history: list[float] = []

    for iteration in range(1, max_iterations + 1):
        for table in tables:
            scale_dimension(w, index.get(table.dimension, {}), table)

        gap = max_relative_gap(w, index, tables)
        history.append(gap)
        logger.debug('Pass %d: max relative gap %.3g', iteration, gap)
        if gap < tolerance:
            break

    return w, history
