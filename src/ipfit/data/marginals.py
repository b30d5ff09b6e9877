"""Build marginal tables from long, wide or dict specifications."""

from pathlib import Path

import polars as pl

from ipfit import config
from ipfit.errors import InvalidInputError
from ipfit.marginals import MarginalTable


def marginal_tables_from_dict(spec: dict[str, dict[object, float]]) -> list[MarginalTable]:
    """Tables from {'siz': {1: 100, 2: 100, ...}, 'wrk': {...}}; category labels become strings."""
    return [
        MarginalTable(str(dim), {str(cat): float(target) for cat, target in targets.items()})
        for dim, targets in spec.items()
    ]


def marginal_tables_from_frame(df: pl.DataFrame | pl.LazyFrame) -> list[MarginalTable]:
    """Tables from a long frame with columns dimension, category, target.

    Dimensions are ordered by first appearance; categories keep row order.

    Raises:
        InvalidInputError: If a required column is missing or a row has a null.
    """
    if isinstance(df, pl.LazyFrame):
        df = df.collect()
    missing = [c for c in config.MARGINAL_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidInputError(f'Marginal table missing required columns: {missing}; got {df.columns}')

    df = df.select(
        pl.col('dimension').cast(pl.Utf8),
        pl.col('category').cast(pl.Utf8),
        pl.col('target').cast(pl.Float64),
    )
    if df.null_count().sum_horizontal().item() > 0:
        raise InvalidInputError('Marginal table has null dimension, category or target values')

    spec: dict[str, dict[str, float]] = {}
    for dim, cat, target in df.iter_rows():
        targets = spec.setdefault(dim, {})
        if cat in targets:
            raise InvalidInputError(f'Duplicate marginal constraint for {dim}={cat}')
        targets[cat] = target
    return [MarginalTable(dim, targets) for dim, targets in spec.items()]


def split_constraint_name(name: str, dimensions: list[str]) -> tuple[str, str]:
    """Split '<dimension><category>' into its parts using the longest matching dimension prefix.

    >>> split_constraint_name('siz1', ['siz', 'wrk'])
    ('siz', '1')
    """
    matches = [d for d in dimensions if name.startswith(d) and len(name) > len(d)]
    if not matches:
        raise InvalidInputError(f'Constraint {name!r} does not start with any dimension in {dimensions}')
    dim = max(matches, key=len)
    return dim, name[len(dim):]


def marginal_tables_from_wide(
    df: pl.DataFrame | pl.LazyFrame,
    dimensions: list[str],
) -> list[MarginalTable]:
    """Tables from a one-row frame whose columns are constraint names (siz1, siz2, wrk1, ...).

    Args:
        df: Single-row frame of targets.
        dimensions: Known dimension names, used to split column names.

    Returns:
        Tables ordered by first appearance of each dimension among the columns.
    """
    if isinstance(df, pl.LazyFrame):
        df = df.collect()
    if df.height != 1:
        raise InvalidInputError(f'Wide marginal table must have exactly one row; got {df.height}')

    row = df.row(0, named=True)
    spec: dict[str, dict[str, float]] = {}
    for name, target in row.items():
        dim, cat = split_constraint_name(name, dimensions)
        if target is None:
            raise InvalidInputError(f'Constraint {name!r} has no target')
        spec.setdefault(dim, {})[cat] = float(target)
    return [MarginalTable(dim, targets) for dim, targets in spec.items()]


def load_marginals(path: str | Path, dimensions: list[str] | None = None) -> list[MarginalTable]:
    """Read marginal tables from CSV or parquet, in long or wide layout.

    Long layout is used when dimension, category and target columns are all present;
    otherwise the file is read as one wide row and dimensions are required to split names.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f'Marginal table not found: {p}')
    df = pl.read_csv(p) if p.suffix.lower() == '.csv' else pl.read_parquet(p)
    if all(c in df.columns for c in config.MARGINAL_COLUMNS):
        return marginal_tables_from_frame(df)
    if not dimensions:
        raise InvalidInputError(
            f'Marginal file {p} is not in long format ({config.MARGINAL_COLUMNS}); pass dimensions to read wide format'
        )
    return marginal_tables_from_wide(df, dimensions)
