"""Load and validate seed tables."""

import logging
from pathlib import Path

import polars as pl

from ipfit.errors import InvalidInputError

logger = logging.getLogger(__name__)


def load_seed(path: str | Path) -> pl.LazyFrame:
    """Scan a seed table from parquet (file or directory of files) or CSV.

    Args:
        path: Path to a .parquet/.csv file or a directory of parquet files.

    Returns:
        LazyFrame over the seed rows, columns as stored.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f'Seed table not found: {p}')
    if p.is_dir():
        return pl.scan_parquet(p / '*.parquet')
    if p.suffix.lower() == '.csv':
        return pl.scan_csv(p)
    return pl.scan_parquet(p)


def validate_seed(
    seed: pl.DataFrame | pl.LazyFrame,
    dimensions: list[str],
    weight_field: str,
) -> pl.DataFrame:
    """Check required columns and values, and normalize types for fitting.

    Dimension columns are cast to Utf8 so category labels compare as strings
    (an integer siz = 1 matches marginal category '1'). The weight column is
    cast to Float64.

    Args:
        seed: Seed rows with one column per dimension plus the weight column.
        dimensions: Dimension columns referenced by the marginal tables.
        weight_field: Name of the initial weight column.

    Returns:
        Collected DataFrame with the same rows in the same order.

    Raises:
        InvalidInputError: If a column is missing, a dimension value is null,
            or a weight is null, NaN or negative.
    """
    df = seed.collect() if isinstance(seed, pl.LazyFrame) else seed

    required = dimensions + [weight_field]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise InvalidInputError(f'Seed table missing required columns: {missing}; got {df.columns}')

    try:
        df = df.with_columns(
            *[pl.col(d).cast(pl.Utf8) for d in dimensions],
            pl.col(weight_field).cast(pl.Float64),
        )
    except (pl.exceptions.InvalidOperationError, pl.exceptions.ComputeError) as e:
        raise InvalidInputError(f'Seed weight column {weight_field!r} is not numeric') from e

    null_dims = [d for d in dimensions if df[d].null_count() > 0]
    if null_dims:
        raise InvalidInputError(f'Seed rows have null values in dimension columns: {null_dims}')

    w = df[weight_field]
    if w.null_count() > 0:
        raise InvalidInputError(f'Seed weight column {weight_field!r} has {w.null_count()} null values')
    if w.is_nan().any():
        raise InvalidInputError(f'Seed weight column {weight_field!r} has NaN values')
    if (w < 0).any():
        raise InvalidInputError(f'Seed weight column {weight_field!r} has negative values')

    return df


def unmatched_categories(df: pl.DataFrame, dimension: str, categories: list[str]) -> list[str]:
    """Seed categories on a dimension that have no marginal target."""
    present = df[dimension].unique(maintain_order=True).to_list()
    known = set(categories)
    return [c for c in present if c not in known]
