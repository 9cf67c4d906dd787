"""
Feature model and sequence factory.

Maps phonetic symbols to feature vectors and turns transcriptions into
Sequences. Feature models are loaded from YAML files:

    features: [syllabic, place, manner]
    segments:
      a: [4, 2, 3]
      m: [-4, 1, 2]
"""

import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .data_models import Segment, Sequence


class ConfigurationError(Exception):
    """Raised when a feature model or parameter mapping is invalid"""
    pass


class UnknownSymbolError(KeyError):
    """Raised when a symbol is not defined in the feature model"""
    pass


class FeatureModel:
    """
    Symbol-to-feature-vector mapping with a per-feature difference function.
    """

    def __init__(self, feature_names: List[str], segments: Dict[str, List[Any]]):
        self.feature_names = list(feature_names)
        self._indices = {name: idx for idx, name in enumerate(self.feature_names)}
        self._segments: Dict[str, tuple] = {}

        for symbol, values in segments.items():
            values = tuple(None if v is None else float(v) for v in values)
            if len(values) != len(self.feature_names):
                raise ConfigurationError(
                    f"Segment {symbol!r} has {len(values)} feature values, "
                    f"expected {len(self.feature_names)}"
                )
            self._segments[symbol] = values

    def feature_count(self) -> int:
        return len(self.feature_names)

    def feature_index(self, name: str) -> int:
        """Index of a named feature, or -1 if the model does not define it."""
        return self._indices.get(name, -1)

    def difference(self, a: Optional[float], b: Optional[float]) -> float:
        """
        Difference between two feature values.

        Undefined values (None) differ from any defined value by one unit
        and not at all from each other.
        """
        if a is None and b is None:
            return 0.0
        if a is None or b is None:
            return 1.0
        return abs(a - b)

    def features_for(self, symbol: str) -> tuple:
        try:
            return self._segments[symbol]
        except KeyError:
            raise UnknownSymbolError(f"Symbol not defined in feature model: {symbol!r}")

    def undefined_features(self) -> tuple:
        return (None,) * self.feature_count()

    def symbols(self) -> List[str]:
        return list(self._segments)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._segments


def load_feature_model(model_path: Union[str, Path]) -> FeatureModel:
    """
    Load a feature model from a YAML file.

    Args:
        model_path: Path to model YAML file

    Returns:
        FeatureModel instance

    Raises:
        FileNotFoundError: If the model file doesn't exist
        ConfigurationError: If the file is malformed
    """
    model_path = Path(model_path)

    if not model_path.exists():
        raise FileNotFoundError(f"Feature model not found: {model_path}")

    try:
        with open(model_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in feature model: {e}")

    if not isinstance(data, dict) or 'features' not in data or 'segments' not in data:
        raise ConfigurationError(
            f"Feature model {model_path} must define 'features' and 'segments'"
        )

    return FeatureModel(data['features'], data['segments'])


class SequenceFactory:
    """
    Builds Segments and Sequences from text using a feature model.

    The gap symbol maps to a segment whose features are all undefined.
    """

    def __init__(self, model: FeatureModel, gap_symbol: str = "_", anchor_symbol: str = "#"):
        self.model = model
        self.gap_symbol = gap_symbol
        self.anchor_symbol = anchor_symbol
        self.gap_segment = Segment(gap_symbol, model.undefined_features())

    def to_segment(self, text: str) -> Segment:
        text = text.strip()
        if text == self.gap_symbol:
            return self.gap_segment
        return Segment(text, self.model.features_for(text))

    def to_sequence(self, text: str) -> Sequence:
        """
        Tokenize a transcription into a Sequence.

        Whitespace-separated input is split into tokens; otherwise every
        character is one segment, with combining marks attached to the
        preceding character.
        """
        text = text.strip()
        if any(char.isspace() for char in text):
            tokens = text.split()
        else:
            tokens = []
            for char in text:
                if tokens and unicodedata.category(char) == "Mn":
                    tokens[-1] += char
                else:
                    tokens.append(char)
        return Sequence((self.to_segment(token) for token in tokens), self.model)

    def gap_sequence(self) -> Sequence:
        """Single-segment sequence holding the gap, used for gap comparisons."""
        return Sequence([self.gap_segment], self.model)

    def anchor_segment(self) -> Segment:
        return self.to_segment(self.anchor_symbol)
