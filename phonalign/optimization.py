"""
Optimization direction for alignment algorithms.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Iterable


@dataclass(frozen=True)
class Optimization:
    """
    Minimize-or-maximize convention.

    Attributes:
        name: "min" or "max"
        predicate: test(x, y) -> True if x is at least as optimal as y
        default_value: Worst possible score, used to seed comparisons
    """
    name: str
    predicate: Callable[[float, float], bool] = field(compare=False, repr=False)
    default_value: float

    def test(self, x: float, y: float) -> bool:
        return self.predicate(x, y)

    def is_better(self, x: float, y: float) -> bool:
        """Strictly more optimal, ties excluded."""
        return self.test(x, y) and not self.is_tie(x, y)

    @staticmethod
    def is_tie(x: float, y: float) -> bool:
        return math.isclose(x, y, rel_tol=1e-9, abs_tol=1e-9)

    def best(self, values: Iterable[float]) -> float:
        best = self.default_value
        for value in values:
            if self.test(value, best):
                best = value
        return best


Optimization.MIN = Optimization("min", lambda x, y: x <= y, math.inf)
Optimization.MAX = Optimization("max", lambda x, y: x >= y, -math.inf)
