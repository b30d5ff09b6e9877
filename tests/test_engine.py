"""Tests for the IPF scaling engine."""

import numpy as np
import polars as pl
import pytest

from ipfit.fitting.engine import (
    build_category_index,
    max_relative_gap,
    observed_totals,
    relative_gap,
    run_ipf,
    scale_dimension,
)
from ipfit.marginals import MarginalTable


def _seed() -> pl.DataFrame:
    return pl.DataFrame({
        'siz': ['1', '1', '2', '2'],
        'wrk': ['0', '1', '0', '1'],
    })


def test_build_category_index() -> None:
    index = build_category_index(_seed(), ['siz', 'wrk'])
    assert list(index) == ['siz', 'wrk']
    assert list(index['siz']) == ['1', '2']
    assert index['siz']['1'].tolist() == [0, 1]
    assert index['wrk']['1'].tolist() == [1, 3]


def test_relative_gap() -> None:
    assert relative_gap(110.0, 100.0) == pytest.approx(0.1)
    assert relative_gap(90.0, 100.0) == pytest.approx(0.1)
    assert relative_gap(0.5, 0.0) == 0.5


def test_scale_dimension_hits_targets() -> None:
    index = build_category_index(_seed(), ['siz'])
    table = MarginalTable('siz', {'1': 30.0, '2': 70.0})
    w = np.array([1.0, 2.0, 3.0, 4.0])
    skipped = scale_dimension(w, index['siz'], table)
    assert skipped == 0
    assert observed_totals(w, index, table) == pytest.approx({'1': 30.0, '2': 70.0})
    # proportions within a category are kept
    assert w[1] / w[0] == pytest.approx(2.0)


def test_scale_dimension_skips_zero_observed() -> None:
    index = build_category_index(_seed(), ['siz'])
    table = MarginalTable('siz', {'1': 30.0, '2': 70.0})
    w = np.array([0.0, 0.0, 3.0, 4.0])
    skipped = scale_dimension(w, index['siz'], table)
    assert skipped == 1
    assert w[:2].tolist() == [0.0, 0.0]


def test_run_ipf_converges_two_dimensions() -> None:
    seed = _seed()
    index = build_category_index(seed, ['siz', 'wrk'])
    tables = [
        MarginalTable('siz', {'1': 40.0, '2': 60.0}),
        MarginalTable('wrk', {'0': 55.0, '1': 45.0}),
    ]
    start = np.array([1.0, 2.0, 3.0, 4.0])
    fitted, history = run_ipf(start, index, tables, max_iterations=50, tolerance=1e-9)
    assert history[-1] < 1e-9
    assert max_relative_gap(fitted, index, tables) < 1e-9
    # input array untouched
    assert start.tolist() == [1.0, 2.0, 3.0, 4.0]


def test_run_ipf_stops_at_budget() -> None:
    # Diagonal seed cannot satisfy crossed targets
    seed = pl.DataFrame({'a': ['x', 'y'], 'b': ['x', 'y']})
    index = build_category_index(seed, ['a', 'b'])
    tables = [
        MarginalTable('a', {'x': 10.0, 'y': 20.0}),
        MarginalTable('b', {'x': 20.0, 'y': 10.0}),
    ]
    fitted, history = run_ipf(np.ones(2), index, tables, max_iterations=7, tolerance=1e-6)
    assert len(history) == 7
    assert history[-1] > 1e-6
    # last dimension processed is satisfied
    assert fitted.tolist() == pytest.approx([20.0, 10.0])
