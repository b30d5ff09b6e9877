"""Tests for fitted-vs-target marginal comparison."""

import numpy as np
import polars as pl
import pytest

from ipfit.fitting.diagnostics import compare_marginals
from ipfit.marginals import MarginalTable


def test_compare_marginals_columns_and_values() -> None:
    seed = pl.DataFrame({'siz': [1, 1, 2], 'wrk': [0, 1, 1]})
    tables = [
        MarginalTable('siz', {'1': 10.0, '2': 5.0}),
        MarginalTable('wrk', {'0': 4.0, '1': 0.0}),
    ]
    out = compare_marginals(seed, np.array([4.0, 6.0, 4.0]), tables)
    assert out.columns == ['dimension', 'category', 'target', 'fitted', 'abs_diff', 'rel_diff']
    assert out['dimension'].to_list() == ['siz', 'siz', 'wrk', 'wrk']
    assert out['fitted'].to_list() == [10.0, 4.0, 4.0, 10.0]
    assert out['abs_diff'].to_list() == [0.0, 1.0, 0.0, 10.0]
    rel = out['rel_diff'].to_list()
    assert rel[1] == pytest.approx(0.2)
    # zero target has no relative difference
    assert rel[3] is None


def test_compare_marginals_absent_category_is_zero() -> None:
    seed = pl.DataFrame({'siz': ['1']})
    out = compare_marginals(seed, pl.Series([3.0]), [MarginalTable('siz', {'1': 3.0, '9': 2.0})])
    assert out.filter(pl.col('category') == '9')['fitted'].to_list() == [0.0]
