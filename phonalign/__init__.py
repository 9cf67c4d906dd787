"""
Phonetic Alignment and Calibration

This package aligns pairs of phonetic transcriptions and calibrates the
alignment scoring parameters against human-curated reference alignments.

Key Features:
- Feature-based segment comparison (linear, sparse-correlated, context-aware)
- Affine, constant and null gap penalties
- Needleman-Wunsch alignment returning every tied optimal alignment
- Hirschberg linear-space alignment
- Evolutionary parameter search (elitism + Gaussian mutation)
- Sound correspondences with their contexts

Modules:
- data_models: Core data structures (Segment, Sequence, Alignment, AlignmentResult, GenerationRecord)
- features: Feature model loading and sequence factory
- comparators: Position-pair scoring functions
- gap_penalties: Gap run cost models
- optimization: Minimize/maximize conventions
- needleman_wunsch: Full-table aligner with tie-aware traceback
- hirschberg: Linear-space aligner
- genome: Genome representation and genome <-> aligner codec
- mutation: Gaussian mutation operators
- selection: Elitist survivor selection
- calibrator: Evolutionary calibration loop
- correspondences: Correspondence and context extraction
- io_utils: Training corpus and word-table parsing, CSV/YAML reports
- config_loader: Builders from configuration sections
- visualization: Fitness history plots
- cli: Command-line interface for align and calibrate modes
"""

__version__ = "0.1.0"
__author__ = "Phonetic Alignment Team"

from .data_models import Segment, Sequence, Alignment, AlignmentResult, GenerationRecord
from .features import FeatureModel, SequenceFactory, load_feature_model
from .comparators import (
    LinearWeightComparator,
    SparseMatrixComparator,
    ContextComparator,
    FunctionComparator,
)
from .gap_penalties import NullGapPenalty, ConstantGapPenalty, ConvexGapPenalty
from .optimization import Optimization
from .needleman_wunsch import NeedlemanWunschAlgorithm, align
from .hirschberg import HirschbergAlgorithm
from .genome import Genome, GenomeCodec
from .calibrator import Calibrator, CalibrationResult, calibrate
from .correspondences import Context, Correspondence, extract_correspondences

__all__ = [
    "Segment",
    "Sequence",
    "Alignment",
    "AlignmentResult",
    "GenerationRecord",
    "FeatureModel",
    "SequenceFactory",
    "load_feature_model",
    "LinearWeightComparator",
    "SparseMatrixComparator",
    "ContextComparator",
    "FunctionComparator",
    "NullGapPenalty",
    "ConstantGapPenalty",
    "ConvexGapPenalty",
    "Optimization",
    "NeedlemanWunschAlgorithm",
    "align",
    "HirschbergAlgorithm",
    "Genome",
    "GenomeCodec",
    "Calibrator",
    "CalibrationResult",
    "calibrate",
    "Context",
    "Correspondence",
    "extract_correspondences",
]
