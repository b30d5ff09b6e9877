"""Exceptions raised by ipfit."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ipfit.fitting.result import FitResult


class IpfitError(Exception):
    """Base class for ipfit errors."""


class InvalidInputError(IpfitError, ValueError):
    """Malformed seed rows or marginal tables. Raised before any computation."""


class NonConvergenceError(IpfitError):
    """Iteration budget exhausted without meeting tolerance (strict mode only)."""

    def __init__(self, result: 'FitResult') -> None:
        self.result = result
        super().__init__(
            f'IPF did not converge after {result.iterations} iterations; max relative gap {result.max_gap:.3g}'
        )


class FittingSkippedError(IpfitError):
    """Weights were requested from a fit that could not run."""
