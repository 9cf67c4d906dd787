"""
Builders turning configuration sections into alignment components.

Aligner section:

    aligner:
      algorithm: needleman_wunsch     # or hirschberg
      optimization: min               # or max
      comparator:
        type: linear                  # linear | sparse | context | feature_difference | equality
        weights: [1.0, 1.0, 1.0]
      gap_penalty:
        type: convex                  # null | constant | convex
        open: 0.0
        grow: 0.0
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .calibrator import Calibrator
from .comparators import (
    Comparator,
    ContextComparator,
    LinearWeightComparator,
    SparseMatrixComparator,
    equality_comparator,
    feature_difference_comparator,
)
from .features import ConfigurationError, FeatureModel, SequenceFactory, load_feature_model
from .gap_penalties import ConstantGapPenalty, ConvexGapPenalty, GapPenalty, NullGapPenalty
from .genome import GenomeCodec
from .hirschberg import HirschbergAlgorithm
from .needleman_wunsch import NeedlemanWunschAlgorithm
from .optimization import Optimization

ALGORITHMS = {
    'needleman_wunsch': NeedlemanWunschAlgorithm,
    'hirschberg': HirschbergAlgorithm,
}
OPTIMIZATIONS = {
    'min': Optimization.MIN,
    'max': Optimization.MAX,
}
COMPARATOR_TYPES = ['linear', 'sparse', 'context', 'feature_difference', 'equality']
GAP_PENALTY_TYPES = ['null', 'constant', 'convex']


def create_factory_from_config(config: Dict[str, Any]) -> SequenceFactory:
    """Load the feature model and build a sequence factory."""
    model = load_feature_model(config['feature_model'])
    sequences = config.get('sequences', {}) or {}
    return SequenceFactory(
        model,
        gap_symbol=sequences.get('gap_symbol', '_'),
        anchor_symbol=sequences.get('anchor_symbol', '#')
    )


def _weights(section: Dict[str, Any], expected: Optional[int] = None) -> List[float]:
    if 'weights' not in section:
        raise ConfigurationError(f"Comparator type '{section.get('type')}' requires 'weights'")
    weights = [float(w) for w in section['weights']]
    if expected is not None and len(weights) != expected:
        raise ConfigurationError(f"Expected {expected} comparator weights, got {len(weights)}")
    return weights


def resolve_feature_pairs(model: FeatureModel, pairs: List[Any]) -> List[Tuple[int, int]]:
    """Feature-name pairs to index pairs; unknown names resolve to -1."""
    resolved = []
    for pair in pairs:
        if len(pair) != 2:
            raise ConfigurationError(f"Feature pairs must have two names, got {pair!r}")
        resolved.append((model.feature_index(pair[0]), model.feature_index(pair[1])))
    return resolved


def create_comparator_from_config(section: Dict[str, Any], model: FeatureModel) -> Comparator:
    """
    Build a comparator from its configuration section.

    Raises:
        ConfigurationError: On unknown type or wrong weight counts
    """
    kind = section.get('type', 'feature_difference')

    if kind == 'feature_difference':
        return feature_difference_comparator(model)
    if kind == 'equality':
        return equality_comparator(
            float(section.get('match', 0.0)),
            float(section.get('mismatch', 1.0))
        )
    if kind == 'linear':
        return LinearWeightComparator(model, _weights(section, model.feature_count()))
    if kind == 'sparse':
        correlations = section.get('correlations', []) or []
        pairs = resolve_feature_pairs(model, [entry['features'] for entry in correlations])
        sparse_weights = [(pair, float(entry['weight'])) for pair, entry in zip(pairs, correlations)]
        return SparseMatrixComparator(model, _weights(section, model.feature_count()), sparse_weights)
    if kind == 'context':
        try:
            return ContextComparator(model, _weights(section))
        except ValueError as e:
            raise ConfigurationError(str(e))

    raise ConfigurationError(
        f"Unknown comparator type: '{kind}'. Must be one of {COMPARATOR_TYPES}"
    )


def create_gap_penalty_from_config(section: Dict[str, Any]) -> GapPenalty:
    """
    Build a gap penalty from its configuration section.

    Raises:
        ConfigurationError: On unknown type
    """
    kind = section.get('type', 'convex')

    if kind == 'null':
        return NullGapPenalty()
    if kind == 'constant':
        return ConstantGapPenalty(float(section.get('value', 0.0)))
    if kind == 'convex':
        return ConvexGapPenalty(float(section.get('open', 0.0)), float(section.get('grow', 0.0)))

    raise ConfigurationError(
        f"Unknown gap penalty type: '{kind}'. Must be one of {GAP_PENALTY_TYPES}"
    )


def create_aligner_from_config(section: Dict[str, Any], factory: SequenceFactory) -> NeedlemanWunschAlgorithm:
    """Build a Needleman-Wunsch or Hirschberg aligner from the 'aligner' section."""
    section = section or {}

    algorithm = section.get('algorithm', 'needleman_wunsch')
    if algorithm not in ALGORITHMS:
        raise ConfigurationError(f"Unknown algorithm: '{algorithm}'. Must be one of {list(ALGORITHMS)}")

    optimization = section.get('optimization', 'min')
    if optimization not in OPTIMIZATIONS:
        raise ConfigurationError(f"Unknown optimization: '{optimization}'. Must be 'min' or 'max'")

    comparator = create_comparator_from_config(section.get('comparator', {}) or {}, factory.model)
    gap_penalty = create_gap_penalty_from_config(section.get('gap_penalty', {}) or {})

    return ALGORITHMS[algorithm](comparator, OPTIMIZATIONS[optimization], gap_penalty, factory.gap_segment)


def create_calibrator_from_config(
    config: Dict[str, Any],
    factory: SequenceFactory,
    seed: Optional[int] = None
) -> Calibrator:
    """
    Build a calibrator from the 'calibration' section and load its training files.

    Unreadable training files are skipped with a warning.
    """
    section = config.get('calibration', {}) or {}

    codec = GenomeCodec(
        factory.model,
        factory.gap_segment,
        extra_params=section.get('extra_params', 2),
        correlated_features=[tuple(pair) for pair in section.get('correlated_features', []) or []]
    )
    calibrator = Calibrator(
        factory,
        codec,
        population_size=section.get('population_size', 2000),
        elite_count=section.get('elite_count'),
        steady_generations=section.get('steady_generations', 100),
        max_generations=section.get('max_generations'),
        mutation_probability=section.get('mutation_probability', 0.2),
        mutation_scale=section.get('mutation_scale', 0.25),
        workers=section.get('workers', 1),
        seed=seed
    )

    for path in config['input']['training_files']:
        if calibrator.add_file(Path(path)):
            print(f"Loaded training file: {path}")

    return calibrator
