"""Marginal constraint tables: one target total per category of a dimension."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MarginalTable:
    """Target totals for every category of a single dimension.

    Attributes:
        dimension: Seed column the targets apply to (e.g. 'siz').
        targets: Category label -> target total. Insertion order is the order
                 categories are scaled within a pass.
    """

    dimension: str
    targets: dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return float(sum(self.targets.values()))

    @property
    def categories(self) -> list[str]:
        return list(self.targets)

    def scaled(self, factor: float) -> 'MarginalTable':
        """New table with every target multiplied by factor; proportions are unchanged."""
        return MarginalTable(self.dimension, {c: t * factor for c, t in self.targets.items()})

    def shares(self) -> dict[str, float]:
        """Share of the grand total held by each category (all zero for an all-zero table)."""
        total = self.total
        if total == 0:
            return {c: 0.0 for c in self.targets}
        return {c: t / total for c, t in self.targets.items()}


def dimensions_of(tables: list[MarginalTable]) -> list[str]:
    """Dimension names in processing order."""
    return [t.dimension for t in tables]
