"""
Gap penalty models.

Each penalty prices a contiguous gap run by its length. Algorithms charge
the increment cost(run) - cost(run - 1) at every gapped position.
"""

from dataclasses import dataclass, field
from typing import Tuple


class GapPenalty:
    """Base interface: cost of a gap run of a given length."""

    def cost(self, length: int) -> float:
        raise NotImplementedError

    def increment(self, length: int) -> float:
        """Additional cost of growing a run from length - 1 to length."""
        if length <= 0:
            return 0.0
        return self.cost(length) - self.cost(length - 1)

    def parameters(self) -> Tuple[float, ...]:
        """Scalar parameters, in genome order."""
        return ()


@dataclass(frozen=True)
class NullGapPenalty(GapPenalty):
    """Gaps cost nothing beyond their comparator score."""

    def cost(self, length: int) -> float:
        return 0.0


@dataclass(frozen=True)
class ConstantGapPenalty(GapPenalty):
    """Every non-empty gap run costs the same, whatever its length."""
    value: float

    def cost(self, length: int) -> float:
        return self.value if length > 0 else 0.0

    def parameters(self) -> Tuple[float, ...]:
        return (self.value,)


@dataclass(frozen=True)
class ConvexGapPenalty(GapPenalty):
    """
    Affine gap cost: open + grow * (length - 1) for length >= 1.

    Attributes:
        open_penalty: Cost of the first gapped position
        grow_penalty: Cost of every further position in the run
        extras: Further genome values carried with the penalty; never priced
    """
    open_penalty: float
    grow_penalty: float
    extras: Tuple[float, ...] = field(default=())

    def cost(self, length: int) -> float:
        if length <= 0:
            return 0.0
        return self.open_penalty + self.grow_penalty * (length - 1)

    def parameters(self) -> Tuple[float, ...]:
        return (self.open_penalty, self.grow_penalty) + tuple(self.extras)
