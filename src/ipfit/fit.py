"""Iterative proportional fitting of seed weights to marginal totals."""

import logging
from collections.abc import Sequence
from typing import Any

import polars as pl

from ipfit import config
from ipfit.data.seed import unmatched_categories, validate_seed
from ipfit.errors import InvalidInputError, NonConvergenceError
from ipfit.fitting.engine import build_category_index, run_ipf
from ipfit.fitting.guard import apply_weight_floor, find_missing_categories
from ipfit.fitting.reconcile import reconcile_marginals, validate_marginals
from ipfit.fitting.result import FitResult, FitStatus
from ipfit.marginals import MarginalTable, dimensions_of

logger = logging.getLogger(__name__)


def fit(
    seed: pl.DataFrame | pl.LazyFrame,
    weight_field: str,
    marginal_tables: Sequence[MarginalTable],
    min_weight: float = config.DEFAULT_MIN_WEIGHT,
    max_iterations: int = config.DEFAULT_MAX_ITERATIONS,
    tolerance: float = config.DEFAULT_TOLERANCE,
    strict: bool = False,
) -> FitResult:
    """Fit seed weights so their sums by each dimension match the marginal targets.

    Steps: validate inputs, reconcile marginal grand totals to the first table,
    floor seed weights at min_weight, check every targeted category has seed rows,
    then scale dimension by dimension until the largest relative gap across all
    targets is below tolerance or max_iterations passes have run.

    Args:
        seed: Seed rows with a column per dimension and an initial weight column.
        weight_field: Name of the initial weight column.
        marginal_tables: One table per dimension, in processing order. The first
                         table's grand total is authoritative.
        min_weight: Floor applied to seed weights before the first pass.
        max_iterations: Maximum number of full passes over all dimensions.
        tolerance: Convergence threshold on the max relative gap.
        strict: Raise NonConvergenceError instead of returning a NOT_CONVERGED result.

    Returns:
        FitResult. weights are aligned 1:1 with the seed rows unless status is
        MISSING_CATEGORY, in which case weights is None and missing lists the
        (dimension, category) pairs that have no seed rows.

    Raises:
        InvalidInputError: On malformed seed rows, marginal tables or parameters.
        NonConvergenceError: If strict and the fit did not converge.
    """
    if max_iterations < 1:
        raise InvalidInputError(f'max_iterations must be at least 1; got {max_iterations}')
    if not tolerance > 0:
        raise InvalidInputError(f'tolerance must be positive; got {tolerance}')
    if not min_weight >= 0:
        raise InvalidInputError(f'min_weight must be non-negative; got {min_weight}')

    tables = list(marginal_tables)
    validate_marginals(tables)
    dimensions = dimensions_of(tables)
    df = validate_seed(seed, dimensions, weight_field)

    tables, factors = reconcile_marginals(tables)

    for table in tables:
        extra = unmatched_categories(df, table.dimension, table.categories)
        if extra:
            logger.warning(
                'Seed categories %s on %r have no marginal target; those rows are not scaled on %r',
                extra,
                table.dimension,
                table.dimension,
            )

    index = build_category_index(df, dimensions)
    weights = apply_weight_floor(df[weight_field].to_numpy(), min_weight)

    missing = find_missing_categories(index, weights, tables)
    if missing:
        logger.warning(
            'Fitting skipped: no seed rows for marginal categories %s',
            ', '.join(f'{d}={c}' for d, c in missing),
        )
        return FitResult(
            status=FitStatus.MISSING_CATEGORY,
            missing=missing,
            rescaled=factors,
            tables=tables,
        )

    fitted, history = run_ipf(weights, index, tables, max_iterations, tolerance)
    max_gap = history[-1]
    status = FitStatus.CONVERGED if max_gap < tolerance else FitStatus.NOT_CONVERGED
    result = FitResult(
        status=status,
        weights=fitted,
        iterations=len(history),
        max_gap=max_gap,
        history=history,
        rescaled=factors,
        tables=tables,
    )

    if result.converged:
        logger.info('IPF converged after %d iterations (max relative gap %.3g)', result.iterations, max_gap)
    else:
        logger.warning(
            'IPF did not converge within %d iterations; max relative gap %.3g exceeds tolerance %g',
            result.iterations,
            max_gap,
            tolerance,
        )
        if strict:
            raise NonConvergenceError(result)
    return result


def with_fitted_weights(
    seed: pl.DataFrame | pl.LazyFrame,
    result: FitResult,
    column: str = config.DEFAULT_WEIGHT_COLUMN,
) -> pl.DataFrame:
    """Seed rows with the fitted weights added as a column.

    Raises:
        FittingSkippedError: If the fit produced no weights.
        InvalidInputError: If the seed row count does not match the weights.
    """
    df = seed.collect() if isinstance(seed, pl.LazyFrame) else seed
    weights = result.to_series(column)
    if weights.len() != df.height:
        raise InvalidInputError(f'Seed has {df.height} rows but the fit has {weights.len()} weights')
    return df.with_columns(weights)


def fit_by_group(
    seed: pl.DataFrame | pl.LazyFrame,
    weight_field: str,
    marginals_by_group: dict[object, Sequence[MarginalTable]],
    by: str,
    **kwargs: Any,
) -> dict[object, FitResult]:
    """Run one independent fit per value of the by column (e.g. one per geography).

    Each group's weights are aligned with that group's rows in seed order.
    Seed groups with no marginals are skipped with a warning.

    Args:
        seed: Seed rows including the by column.
        weight_field: Name of the initial weight column.
        marginals_by_group: Group value -> marginal tables for that group.
        by: Column identifying the group.
        **kwargs: Passed through to fit.

    Returns:
        Group value -> FitResult, in order of first appearance in the seed.
    """
    df = seed.collect() if isinstance(seed, pl.LazyFrame) else seed
    if by not in df.columns:
        raise InvalidInputError(f'Seed table missing group column {by!r}; got {df.columns}')

    results: dict[object, FitResult] = {}
    for key in df[by].unique(maintain_order=True).to_list():
        if key not in marginals_by_group:
            logger.warning('No marginal tables for %s=%s; group skipped', by, key)
            continue
        part = df.filter(pl.col(by) == key)
        results[key] = fit(part, weight_field, marginals_by_group[key], **kwargs)

    present = set(df[by].to_list())
    unused = [k for k in marginals_by_group if k not in present]
    if unused:
        logger.warning('Marginal tables given for %s values absent from the seed: %s', by, unused)
    return results
