"""
Segment comparators.

A comparator scores aligning position i of the left sequence with position
j of the right sequence. All variants share the signature
score(left, right, i, j) and are called with a one-segment gap sequence when
pricing gapped positions.

Variants:
- LinearWeightComparator: weighted sum of per-feature differences
- SparseMatrixComparator: linear score plus weighted feature-pair corrections
- ContextComparator: linear scores over the neighbouring positions as well
- FunctionComparator: wraps any scoring callable
"""

from typing import Callable, Dict, Iterable, List, Sequence as SequenceType, Tuple, Union

import numpy as np

from .data_models import Sequence
from .features import FeatureModel


class Comparator:
    """Base interface for position-pair scoring."""

    def score(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        raise NotImplementedError

    def __call__(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        return self.score(left, right, i, j)


def feature_differences(model: FeatureModel, left_features: tuple, right_features: tuple) -> np.ndarray:
    """Vector of per-feature differences between two segments."""
    return np.array(
        [model.difference(a, b) for a, b in zip(left_features, right_features)],
        dtype=np.float64
    )


class LinearWeightComparator(Comparator):
    """
    Dot product of feature weights and per-feature differences.

    Attributes:
        model: Feature model supplying the difference function
        weights: One weight per feature
    """

    def __init__(self, model: FeatureModel, weights: SequenceType[float]):
        self.model = model
        self.weights = np.asarray(weights, dtype=np.float64)

    def score(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        diffs = feature_differences(self.model, left[i].features, right[j].features)
        return float(np.dot(self.weights, diffs[:len(self.weights)]))

    def __repr__(self) -> str:
        return f"LinearWeightComparator(weights={self.weights.tolist()})"


class SparseMatrixComparator(LinearWeightComparator):
    """
    Linear weight score plus correlated feature-pair corrections.

    For every declared pair (a, b) the product diff_a * diff_b is added with
    its own weight. Pairs holding an index of -1 are ignored.

    Attributes:
        sparse_weights: Ordered ((feature_a, feature_b), weight) entries; a
            dict is accepted as well
    """

    def __init__(
        self,
        model: FeatureModel,
        weights: SequenceType[float],
        sparse_weights: Union[Dict[Tuple[int, int], float], Iterable[Tuple[Tuple[int, int], float]]]
    ):
        super().__init__(model, weights)
        if isinstance(sparse_weights, dict):
            sparse_weights = sparse_weights.items()
        self.sparse_weights: List[Tuple[Tuple[int, int], float]] = [
            ((int(a), int(b)), float(weight)) for (a, b), weight in sparse_weights
        ]

    def score(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        diffs = feature_differences(self.model, left[i].features, right[j].features)
        score = float(np.dot(self.weights, diffs[:len(self.weights)]))

        for (a, b), weight in self.sparse_weights:
            if a < 0 or b < 0:
                continue
            score += weight * diffs[a] * diffs[b]

        return score

    def __repr__(self) -> str:
        return (f"SparseMatrixComparator(weights={self.weights.tolist()}, "
                f"sparse_weights={self.sparse_weights})")


class ContextComparator(Comparator):
    """
    Scores the current position pair and its immediate neighbours.

    The weight vector is split into six equal blocks applied to
    (i-1, j), (i, j), (i+1, j), (i, j-1), (i, j), (i, j+1).
    Neighbours outside either sequence contribute nothing.
    """

    OFFSETS = ((-1, 0), (0, 0), (1, 0), (0, -1), (0, 0), (0, 1))

    def __init__(self, model: FeatureModel, weights: SequenceType[float]):
        weights = np.asarray(weights, dtype=np.float64)
        if len(weights) % len(self.OFFSETS) != 0:
            raise ValueError(
                f"Context weights must be a multiple of {len(self.OFFSETS)}, got {len(weights)}"
            )
        self.model = model
        self.weights = weights
        self.block_size = len(weights) // len(self.OFFSETS)

    def score(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        score = 0.0
        for block, (di, dj) in enumerate(self.OFFSETS):
            score += self._block_score(block, left, right, i + di, j + dj)
        return score

    def _block_score(self, block: int, left: Sequence, right: Sequence, i: int, j: int) -> float:
        if i < 0 or j < 0 or i >= len(left) or j >= len(right):
            return 0.0

        start = block * self.block_size
        weights = self.weights[start:start + self.block_size]
        diffs = feature_differences(self.model, left[i].features, right[j].features)
        return float(np.dot(weights, diffs[:len(weights)]))

    def __repr__(self) -> str:
        return f"ContextComparator(block_size={self.block_size})"


class FunctionComparator(Comparator):
    """Adapter turning a plain (left, right, i, j) -> float callable into a Comparator."""

    def __init__(self, function: Callable[[Sequence, Sequence, int, int], float]):
        self.function = function

    def score(self, left: Sequence, right: Sequence, i: int, j: int) -> float:
        return float(self.function(left, right, i, j))


def feature_difference_comparator(model: FeatureModel) -> LinearWeightComparator:
    """Unweighted sum of feature differences."""
    return LinearWeightComparator(model, [1.0] * model.feature_count())


def equality_comparator(match: float = 0.0, mismatch: float = 1.0) -> FunctionComparator:
    """Scores `match` for equal segments and `mismatch` otherwise."""
    return FunctionComparator(
        lambda left, right, i, j: match if left[i] == right[j] else mismatch
    )


def negated(comparator: Comparator) -> FunctionComparator:
    """Comparator returning the negation of another one's scores."""
    return FunctionComparator(lambda left, right, i, j: -comparator.score(left, right, i, j))
