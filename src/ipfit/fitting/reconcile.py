"""Make marginal tables agree on their grand total before fitting."""

import logging
import math

from ipfit import config
from ipfit.errors import InvalidInputError
from ipfit.marginals import MarginalTable

logger = logging.getLogger(__name__)


def validate_marginals(tables: list[MarginalTable]) -> None:
    """Reject empty, duplicated or negative marginal specifications.

    Raises:
        InvalidInputError: If there are no tables, a table has no constraints,
            a dimension appears twice, or a target is negative or not finite.
    """
    if not tables:
        raise InvalidInputError('At least one marginal table is required')
    seen: set[str] = set()
    for table in tables:
        if table.dimension in seen:
            raise InvalidInputError(f'Dimension {table.dimension!r} has more than one marginal table')
        seen.add(table.dimension)
        if not table.targets:
            raise InvalidInputError(f'Marginal table for {table.dimension!r} has no constraints')
        bad = [c for c, t in table.targets.items() if not math.isfinite(t) or t < 0]
        if bad:
            raise InvalidInputError(
                f'Marginal table for {table.dimension!r} has negative or non-finite targets for categories {bad}'
            )


def reconcile_marginals(
    tables: list[MarginalTable],
    rtol: float = config.RECONCILE_RTOL,
) -> tuple[list[MarginalTable], dict[str, float]]:
    """Rescale marginal tables so every grand total matches the first table's.

    The first table is the reference. Each later table whose total differs from
    the reference total by more than rtol (relative) has all of its targets
    multiplied by reference_total / table_total, which keeps its category
    shares. Every table is compared against the reference's original total,
    not against the table before it.

    Args:
        tables: Marginal tables in processing order.
        rtol: Relative tolerance for treating two totals as equal.

    Returns:
        Tuple of (reconciled tables, dimension -> factor for each rescaled table).

    Raises:
        InvalidInputError: On malformed tables, or when a non-reference table
            sums to zero while the reference does not.
    """
    validate_marginals(tables)

    reference = tables[0]
    ref_total = reference.total
    out = [reference]
    factors: dict[str, float] = {}

    for table in tables[1:]:
        total = table.total
        if abs(total - ref_total) <= rtol * max(abs(ref_total), abs(total)):
            out.append(table)
            continue
        if total == 0:
            raise InvalidInputError(
                f'Marginal table for {table.dimension!r} sums to zero but reference '
                f'{reference.dimension!r} sums to {ref_total:g}; cannot rescale'
            )
        factor = ref_total / total
        factors[table.dimension] = factor
        out.append(table.scaled(factor))

    if factors:
        detail = ', '.join(f'{dim} x{f:.6g}' for dim, f in factors.items())
        logger.warning(
            'Marginal grand totals disagree; rescaled to match %r total %g: %s',
            reference.dimension,
            ref_total,
            detail,
        )
    return out, factors
