"""Typer CLI entry point."""

import logging
from pathlib import Path

import polars as pl
import typer

from ipfit import config
from ipfit.data.marginals import load_marginals
from ipfit.data.seed import load_seed, validate_seed
from ipfit.errors import InvalidInputError, NonConvergenceError
from ipfit.fit import fit, with_fitted_weights
from ipfit.fitting.diagnostics import compare_marginals
from ipfit.fitting.engine import build_category_index
from ipfit.fitting.guard import apply_weight_floor, find_missing_categories
from ipfit.fitting.reconcile import reconcile_marginals
from ipfit.marginals import MarginalTable, dimensions_of

app = typer.Typer(help='Fit seed weights to marginal totals by iterative proportional fitting.')


@app.callback()
def main(
    log_level: str = typer.Option(config.LOG_LEVEL, help='Logging level (DEBUG, INFO, WARNING, ...)'),
) -> None:
    logging.basicConfig(level=log_level.upper(), format='%(levelname)s %(name)s: %(message)s')


def _write_frame(df: pl.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == '.csv':
        df.write_csv(path)
    else:
        df.write_parquet(path)


def _load_inputs(seed_path: str, marginals_path: str, weight_field: str) -> tuple[pl.DataFrame, list[MarginalTable]]:
    seed_df = load_seed(seed_path).collect()
    # Wide marginal files name constraints <dimension><category>; any seed column may be a dimension
    candidates = [c for c in seed_df.columns if c != weight_field]
    tables = load_marginals(marginals_path, dimensions=candidates)
    return seed_df, tables


@app.command('fit')
def fit_command(
    seed_path: str = typer.Option(..., '--seed', help='Seed table (parquet file/directory or CSV)'),
    marginals_path: str = typer.Option(..., '--marginals', help='Marginal targets (long or wide CSV/parquet)'),
    weight_field: str = typer.Option(..., help='Seed column holding the initial weights'),
    output: str = typer.Option(..., help='Output file for the seed plus fitted weights (.parquet or .csv)'),
    weight_column: str = typer.Option(config.DEFAULT_WEIGHT_COLUMN, help='Name of the fitted weight column'),
    min_weight: float = typer.Option(config.DEFAULT_MIN_WEIGHT, help='Floor applied to seed weights'),
    max_iterations: int = typer.Option(config.DEFAULT_MAX_ITERATIONS, help='Maximum passes over all dimensions'),
    tolerance: float = typer.Option(config.DEFAULT_TOLERANCE, help='Max relative gap for convergence'),
    strict: bool = typer.Option(False, help='Fail if the fit does not converge'),
    report: str | None = typer.Option(None, help='Optional CSV comparing fitted and target marginals'),
) -> None:
    """Fit weights and write the seed with a fitted weight column."""
    try:
        seed_df, tables = _load_inputs(seed_path, marginals_path, weight_field)
        result = fit(
            seed_df,
            weight_field,
            tables,
            min_weight=min_weight,
            max_iterations=max_iterations,
            tolerance=tolerance,
            strict=strict,
        )
    except InvalidInputError as e:
        typer.echo(f'Invalid input: {e}', err=True)
        raise typer.Exit(1)
    except NonConvergenceError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)

    if not result.ok:
        missing = ', '.join(f'{d}={c}' for d, c in result.missing)
        typer.echo(f'Fitting skipped: no seed rows for {missing}', err=True)
        raise typer.Exit(1)

    out_path = Path(output)
    _write_frame(with_fitted_weights(seed_df, result, weight_column), out_path)

    if report:
        _write_frame(compare_marginals(seed_df, result.weights, result.tables), Path(report))

    for dim, factor in result.rescaled.items():
        typer.echo(f'Rescaled {dim} targets by {factor:.6g}')
    typer.echo(f'{result.status.value} after {result.iterations} iterations (max relative gap {result.max_gap:.3g})')
    typer.echo(f'Wrote {out_path}')


@app.command('check')
def check_command(
    seed_path: str = typer.Option(..., '--seed', help='Seed table (parquet file/directory or CSV)'),
    marginals_path: str = typer.Option(..., '--marginals', help='Marginal targets (long or wide CSV/parquet)'),
    weight_field: str = typer.Option(..., help='Seed column holding the initial weights'),
    min_weight: float = typer.Option(config.DEFAULT_MIN_WEIGHT, help='Floor applied to seed weights'),
) -> None:
    """Validate inputs, reconcile marginal totals and check for missing categories without fitting."""
    try:
        seed_df, tables = _load_inputs(seed_path, marginals_path, weight_field)
        dims = dimensions_of(tables)
        seed_df = validate_seed(seed_df, dims, weight_field)
        tables, factors = reconcile_marginals(tables)
    except InvalidInputError as e:
        typer.echo(f'Invalid input: {e}', err=True)
        raise typer.Exit(1)

    for table in tables:
        rescale = f' (rescaled x{factors[table.dimension]:.6g})' if table.dimension in factors else ''
        typer.echo(f'{table.dimension}: {len(table.targets)} categories, total {table.total:g}{rescale}')

    index = build_category_index(seed_df, dims)
    weights = apply_weight_floor(seed_df[weight_field].to_numpy(), min_weight)
    missing = find_missing_categories(index, weights, tables)
    if missing:
        typer.echo(f'Missing categories: {", ".join(f"{d}={c}" for d, c in missing)}', err=True)
        raise typer.Exit(1)
    typer.echo(f'OK: {seed_df.height} seed rows, {len(tables)} marginal tables')


if __name__ == '__main__':
    app()
