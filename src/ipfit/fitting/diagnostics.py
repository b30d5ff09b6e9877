"""Compare fitted marginal totals against their targets."""

import numpy as np
import polars as pl

from ipfit.fitting.engine import build_category_index, observed_totals
from ipfit.marginals import MarginalTable, dimensions_of


def compare_marginals(
    seed: pl.DataFrame,
    weights: np.ndarray | pl.Series,
    tables: list[MarginalTable],
) -> pl.DataFrame:
    """One row per marginal constraint with its target and the fitted total.

    Args:
        seed: Seed rows (dimension columns are compared as strings).
        weights: Weights aligned with the seed rows, e.g. FitResult.weights.
        tables: Marginal tables to compare against, typically FitResult.tables.

    Returns:
        DataFrame with columns dimension, category, target, fitted, abs_diff, rel_diff.
        rel_diff is null where the target is zero.
    """
    dims = dimensions_of(tables)
    df = seed.select([pl.col(d).cast(pl.Utf8) for d in dims])
    w = weights.to_numpy() if isinstance(weights, pl.Series) else np.asarray(weights, dtype=np.float64)
    index = build_category_index(df, dims)

    records: list[tuple[str, str, float, float]] = []
    for table in tables:
        fitted = observed_totals(w, index, table)
        records.extend((table.dimension, cat, target, fitted[cat]) for cat, target in table.targets.items())

    out = pl.DataFrame(
        records,
        schema={'dimension': pl.Utf8, 'category': pl.Utf8, 'target': pl.Float64, 'fitted': pl.Float64},
        orient='row',
    )
    return out.with_columns(
        (pl.col('fitted') - pl.col('target')).abs().alias('abs_diff'),
    ).with_columns(
        pl.when(pl.col('target') > 0)
        .then(pl.col('abs_diff') / pl.col('target'))
        .otherwise(pl.lit(None, dtype=pl.Float64))
        .alias('rel_diff'),
    )
