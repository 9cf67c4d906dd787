"""
Genome representation and codec.

A genome is an ordered tuple of parameter groups:
- group 0: gap parameters (open, grow, then any unused extras)
- group 1: feature weights, one fewer than the feature count when a fixed
  weight is re-inserted on decode
- group 2 (optional): correlation weights, one per declared feature pair

GenomeCodec maps genomes to concrete alignment algorithms and back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence as SequenceType, Tuple

import numpy as np

from .comparators import Comparator, LinearWeightComparator, SparseMatrixComparator
from .data_models import Segment
from .features import ConfigurationError, FeatureModel
from .gap_penalties import ConvexGapPenalty, GapPenalty
from .needleman_wunsch import NeedlemanWunschAlgorithm
from .optimization import Optimization

FIXED_WEIGHT = 1.0
FIXED_POSITION = 1

GAP_BOUNDS = (-2.0, 2.0)
WEIGHT_BOUNDS = (0.0, 1.0)
CORRELATION_BOUNDS = (-10.0, 10.0)


@dataclass
class Genome:
    """
    Parameter vector evolved by the calibrator.

    Attributes:
        groups: Tuple of float arrays, one per parameter group
        fitness: Cached fitness, None until evaluated
        metadata: Free-form notes (origin, mutation log)
    """
    groups: Tuple[np.ndarray, ...]
    fitness: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.groups = tuple(np.asarray(group, dtype=np.float64) for group in self.groups)

    def copy(self) -> "Genome":
        return Genome(
            groups=tuple(group.copy() for group in self.groups),
            fitness=self.fitness,
            metadata=self.metadata.copy()
        )

    def group_sizes(self) -> List[int]:
        return [len(group) for group in self.groups]

    def flatten(self) -> np.ndarray:
        return np.concatenate(self.groups) if self.groups else np.zeros(0)

    def same_parameters(self, other: "Genome") -> bool:
        if self.group_sizes() != other.group_sizes():
            return False
        return all(np.array_equal(a, b) for a, b in zip(self.groups, other.groups))


class GenomeCodec:
    """
    Decodes genomes into Needleman-Wunsch aligners and encodes them back.

    Correlated feature names are resolved to indices once, here; names the
    model does not know become -1 and their weights have no effect.

    Attributes:
        model: Feature model the weights refer to
        gap: Gap segment handed to decoded algorithms
        extra_params: Size of group 0 (at least open and grow)
        correlated_features: Declared (name_a, name_b) pairs
        correlated_indices: Resolved (index_a, index_b) pairs
        fixed_weight: Weight re-inserted on decode, or None to evolve every weight
        fixed_position: Index the fixed weight is inserted at
        optimization: Direction used by decoded algorithms
    """

    def __init__(
        self,
        model: FeatureModel,
        gap: Segment,
        extra_params: int = 2,
        correlated_features: Iterable[Tuple[str, str]] = (),
        fixed_weight: Optional[float] = FIXED_WEIGHT,
        fixed_position: int = FIXED_POSITION,
        optimization: Optimization = Optimization.MIN
    ):
        if extra_params < 2:
            raise ConfigurationError(
                f"extra_params must be at least 2 (gap open and grow), got {extra_params}"
            )
        if fixed_weight is not None and not 0 <= fixed_position < model.feature_count():
            raise ConfigurationError(
                f"fixed_position {fixed_position} outside 0..{model.feature_count() - 1}"
            )

        self.model = model
        self.gap = gap
        self.extra_params = extra_params
        self.fixed_weight = fixed_weight
        self.fixed_position = fixed_position
        self.optimization = optimization

        self.correlated_features = [tuple(pair) for pair in correlated_features]
        self.correlated_indices = [self._resolve(pair) for pair in self.correlated_features]

    def _resolve(self, pair: Tuple[str, str]) -> Tuple[int, int]:
        if len(pair) != 2:
            raise ConfigurationError(f"Correlated features must be pairs, got {pair!r}")

        indices = tuple(self.model.feature_index(name) for name in pair)
        for name, index in zip(pair, indices):
            if index < 0:
                print(f"Warning: unknown feature {name!r} in correlation {pair}, weight will be ignored")
        return indices

    @property
    def weight_count(self) -> int:
        """Number of evolved feature weights."""
        count = self.model.feature_count()
        return count - 1 if self.fixed_weight is not None else count

    def group_sizes(self) -> List[int]:
        sizes = [self.extra_params, self.weight_count]
        if self.correlated_indices:
            sizes.append(len(self.correlated_indices))
        return sizes

    def bounds(self) -> List[Tuple[float, float]]:
        """(low, high) bounds per group."""
        bounds = [GAP_BOUNDS, WEIGHT_BOUNDS]
        if self.correlated_indices:
            bounds.append(CORRELATION_BOUNDS)
        return bounds

    def random_genome(self, rng: np.random.Generator) -> Genome:
        """Uniform random genome within bounds."""
        groups = tuple(
            rng.uniform(low, high, size=size)
            for size, (low, high) in zip(self.group_sizes(), self.bounds())
        )
        return Genome(groups=groups, metadata={'origin': 'random'})

    def validate(self, genome: Genome) -> None:
        if genome.group_sizes() != self.group_sizes():
            raise ConfigurationError(
                f"Genome group sizes {genome.group_sizes()} do not match {self.group_sizes()}"
            )

    def weights(self, genome: Genome) -> np.ndarray:
        """Full feature weight vector with the fixed weight re-inserted."""
        weights = genome.groups[1]
        if self.fixed_weight is None:
            return weights.copy()
        return np.insert(weights, self.fixed_position, self.fixed_weight)

    def decode_parts(self, genome: Genome) -> Tuple[Comparator, GapPenalty]:
        """
        Build the comparator and gap penalty a genome describes.

        Args:
            genome: Genome matching this codec's group sizes

        Returns:
            Tuple of (comparator, gap_penalty)

        Raises:
            ConfigurationError: If the genome shape does not match
        """
        self.validate(genome)

        gap_params = genome.groups[0]
        gap_penalty = ConvexGapPenalty(
            float(gap_params[0]),
            float(gap_params[1]),
            tuple(float(value) for value in gap_params[2:])
        )

        weights = self.weights(genome)
        if len(genome.groups) > 2:
            comparator = SparseMatrixComparator(
                self.model,
                weights,
                zip(self.correlated_indices, genome.groups[2])
            )
        else:
            comparator = LinearWeightComparator(self.model, weights)

        return comparator, gap_penalty

    def decode(self, genome: Genome) -> NeedlemanWunschAlgorithm:
        comparator, gap_penalty = self.decode_parts(genome)
        return NeedlemanWunschAlgorithm(comparator, self.optimization, gap_penalty, self.gap)

    def encode(self, comparator: LinearWeightComparator, gap_penalty: GapPenalty) -> Genome:
        """
        Genome whose decoding reproduces the given comparator and gap penalty.

        Gap parameters shorter than group 0 are padded with zeros, so
        constant and null penalties encode as their affine equivalents.
        Extras carried by a decoded penalty fill the rest of group 0.

        Raises:
            ConfigurationError: If the comparator does not fit this codec
        """
        gap_params = list(gap_penalty.parameters())[:self.extra_params]
        gap_params += [0.0] * (self.extra_params - len(gap_params))

        weights = np.asarray(comparator.weights, dtype=np.float64)
        if len(weights) != self.model.feature_count():
            raise ConfigurationError(
                f"Comparator has {len(weights)} weights, expected {self.model.feature_count()}"
            )
        if self.fixed_weight is not None:
            weights = np.delete(weights, self.fixed_position)

        groups = [np.asarray(gap_params, dtype=np.float64), weights]

        if self.correlated_indices:
            entries = list(getattr(comparator, 'sparse_weights', []))
            if len(entries) != len(self.correlated_indices):
                raise ConfigurationError(
                    f"Comparator has {len(entries)} correlation weights, "
                    f"expected {len(self.correlated_indices)}"
                )
            groups.append(np.array([weight for _, weight in entries], dtype=np.float64))

        return Genome(groups=tuple(groups), metadata={'origin': 'encoded'})

    def format_genome(self, genome: Genome, fmt: str = "{:.3f}") -> str:
        """Render groups as space-separated values joined by ' | '."""
        return format_groups(genome.groups, fmt)


def format_groups(groups: SequenceType[SequenceType[float]], fmt: str = "{:.3f}") -> str:
    return " | ".join(" ".join(fmt.format(value) for value in group) for group in groups)
