"""Tagged outcome of a fit."""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import polars as pl

from ipfit import config
from ipfit.errors import FittingSkippedError
from ipfit.marginals import MarginalTable


class FitStatus(str, Enum):
    CONVERGED = 'converged'
    NOT_CONVERGED = 'not_converged'
    MISSING_CATEGORY = 'missing_category'


@dataclass
class FitResult:
    """Fitted weights plus what happened on the way.

    weights is None only when status is MISSING_CATEGORY. history holds the max
    relative gap after each pass, so iterations == len(history).
    """

    status: FitStatus
    weights: np.ndarray | None = None
    iterations: int = 0
    max_gap: float = float('nan')
    history: list[float] = field(default_factory=list)
    missing: list[tuple[str, str]] = field(default_factory=list)
    rescaled: dict[str, float] = field(default_factory=dict)
    tables: list[MarginalTable] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.weights is not None

    @property
    def converged(self) -> bool:
        return self.status is FitStatus.CONVERGED

    def to_series(self, name: str = config.DEFAULT_WEIGHT_COLUMN) -> pl.Series:
        """Fitted weights as a Float64 series aligned with the seed rows."""
        if self.weights is None:
            missing = ', '.join(f'{d}={c}' for d, c in self.missing)
            raise FittingSkippedError(f'No fitted weights: seed has no rows for {missing}')
        return pl.Series(name, self.weights, dtype=pl.Float64)

    def summary(self) -> dict[str, object]:
        return {
            'status': self.status.value,
            'iterations': self.iterations,
            'max_gap': self.max_gap,
            'missing': [f'{d}={c}' for d, c in self.missing],
            'rescaled': dict(self.rescaled),
        }
