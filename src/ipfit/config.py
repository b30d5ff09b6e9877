"""Fitting defaults and logging level."""

import os

# Log level for the CLI (library code never configures handlers)
LOG_LEVEL: str = os.environ.get('IPFIT_LOG_LEVEL', 'WARNING')

# Seed weights below this are raised to it before the first pass
DEFAULT_MIN_WEIGHT: float = 0.0001

# Iteration budget and convergence threshold (max relative gap across all marginals)
DEFAULT_MAX_ITERATIONS: int = 50
DEFAULT_TOLERANCE: float = 1e-6

# Relative difference in grand totals above which a marginal table is rescaled
RECONCILE_RTOL: float = 1e-9

# Column name used when fitted weights are attached to the seed
DEFAULT_WEIGHT_COLUMN: str = 'fitted_weight'

# Long-format marginal file columns
MARGINAL_COLUMNS: list[str] = ['dimension', 'category', 'target']
