"""
Data models for phonetic alignment.

Core data structures representing segments, sequences, alignments and
alignment results, plus per-generation calibration records.
"""

import unicodedata
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

import numpy as np


@dataclass(frozen=True)
class Segment:
    """
    Atomic phonetic unit (a single sound) carrying a feature vector.

    Equality and hashing are value-based over the feature vector only; the
    symbol is kept for display.

    Attributes:
        symbol: Display symbol (e.g. "a", "tʰ", "_")
        features: Ordered feature values; None marks an undefined value
    """
    symbol: str = field(compare=False)
    features: tuple

    def __post_init__(self):
        """Ensure features are stored as a tuple."""
        if not isinstance(self.features, tuple):
            object.__setattr__(self, "features", tuple(self.features))

    def __str__(self) -> str:
        return self.symbol


class Sequence:
    """
    Ordered, mutable list of Segments belonging to one feature model.
    """

    def __init__(self, segments: Optional[Iterable[Segment]] = None, model: Any = None):
        self.model = model
        self._segments: list[Segment] = []
        for segment in segments or []:
            self.append(segment)

    def append(self, segment: Segment) -> None:
        """
        Append a segment, enforcing one feature vector length.

        Raises:
            ValueError: If the segment's vector length differs from the sequence's
        """
        if self._segments and len(segment.features) != len(self._segments[0].features):
            raise ValueError(
                f"Segment {segment.symbol!r} has {len(segment.features)} features, "
                f"expected {len(self._segments[0].features)}"
            )
        self._segments.append(segment)

    def extend(self, segments: Iterable[Segment]) -> None:
        for segment in segments:
            self.append(segment)

    def copy(self) -> "Sequence":
        return Sequence(self._segments, self.model)

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Sequence(self._segments[index], self.model)
        return self._segments[index]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Sequence):
            return NotImplemented
        return self._segments == other._segments

    def __hash__(self) -> int:
        return hash(tuple(self._segments))

    def __str__(self) -> str:
        return "".join(segment.symbol for segment in self._segments)

    def __repr__(self) -> str:
        return f"Sequence({str(self)!r})"


def printable_length(text: str) -> int:
    """Count characters that take up horizontal space (combining marks excluded)."""
    return sum(1 for char in text if unicodedata.category(char) != "Mn")


class Alignment:
    """
    Rectangular table of aligned, gap-padded sequences.

    Rows are aligned sequences, columns are aligned positions. Every row has
    the same number of columns.

    Attributes:
        rows: List of rows, each a list of Segments
        gap: Segment used to pad rows
    """

    def __init__(self, rows: Iterable[Iterable[Segment]], gap: Segment):
        self.rows = [list(row) for row in rows]
        self.gap = gap

        if self.rows:
            width = len(self.rows[0])
            for row in self.rows:
                if len(row) != width:
                    raise ValueError(
                        f"Row {self._render(row)!r} has {len(row)} columns, expected {width}"
                    )

    @classmethod
    def from_sequences(cls, sequences: Iterable[Sequence], gap: Segment) -> "Alignment":
        """Build an alignment from already padded sequences."""
        return cls([list(sequence) for sequence in sequences], gap)

    def row_count(self) -> int:
        return len(self.rows)

    def columns(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def get_row(self, index: int) -> list[Segment]:
        return list(self.rows[index])

    def get_column(self, index: int) -> list[Segment]:
        return [row[index] for row in self.rows]

    def remove_column(self, index: int) -> None:
        for row in self.rows:
            del row[index]

    def remove_row(self, index: int) -> None:
        del self.rows[index]

    def copy(self) -> "Alignment":
        return Alignment(self.rows, self.gap)

    def strip_anchor(self, anchor: Segment) -> "Alignment":
        """
        Return a copy without the leading anchor column.

        The column is removed only when every row starts with the anchor.
        """
        stripped = self.copy()
        if stripped.columns() and all(row[0] == anchor for row in stripped.rows):
            stripped.remove_column(0)
        return stripped

    def to_sequences(self, model: Any = None) -> list[Sequence]:
        """
        Recover the unaligned sequences by dropping gap segments.

        Returns:
            One Sequence per row
        """
        return [
            Sequence((segment for segment in row if segment != self.gap), model)
            for row in self.rows
        ]

    def gap_count(self) -> int:
        return sum(1 for row in self.rows for segment in row if segment == self.gap)

    def pretty_rows(self) -> list[str]:
        """
        Render each row with columns padded to a common printable width.

        Returns:
            List of strings, one per row, e.g. ["# _ b a", "# a b a"]
        """
        widths = [
            max(printable_length(segment.symbol) for segment in column)
            for column in zip(*self.rows)
        ]
        rendered = []
        for row in self.rows:
            parts = []
            for segment, width in zip(row, widths):
                padding = width - printable_length(segment.symbol)
                parts.append(segment.symbol + " " * padding)
            rendered.append(" ".join(parts).rstrip())
        return rendered

    def pretty_table(self) -> str:
        return "\n".join(self.pretty_rows())

    @staticmethod
    def _render(row: Iterable[Segment]) -> str:
        return " ".join(segment.symbol for segment in row)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Alignment):
            return NotImplemented
        return self.rows == other.rows

    def __hash__(self) -> int:
        return hash(tuple(tuple(row) for row in self.rows))

    def __str__(self) -> str:
        return "\t".join(self.pretty_rows())

    def __repr__(self) -> str:
        return f"Alignment({self.pretty_rows()!r})"


@dataclass
class AlignmentResult:
    """
    Output of an alignment algorithm.

    Attributes:
        left: First input sequence
        right: Second input sequence
        alignments: All optimal alignments (ties included, duplicates removed)
        score: Optimal score shared by every alignment
        table: Dynamic-programming score table, (n+1) x (m+1); linear-space
            algorithms keep only their final row
    """
    left: Sequence
    right: Sequence
    alignments: list[Alignment]
    score: float
    table: Optional[np.ndarray] = None

    def best(self) -> Alignment:
        """Return the first optimal alignment."""
        return self.alignments[0]

    def table_rows(self) -> list[list[float]]:
        """Expose the score table row by row for external formatting."""
        if self.table is None:
            return []
        return [[float(value) for value in row] for row in np.atleast_2d(self.table)]

    def contains_any(self, references: Iterable[Alignment]) -> bool:
        """True if any reference alignment is among the computed alignments."""
        return any(reference in self.alignments for reference in references)


@dataclass
class GenerationRecord:
    """
    Summary of one calibration generation.

    Attributes:
        generation: Generation number, starting at 1
        population_size: Genomes evaluated in this generation
        best_fitness: Highest fitness in the generation
        worst_fitness: Lowest fitness in the generation
        mean_fitness: Average fitness
        best_parameters: Formatted parameters of the generation's best genome
        timestamp: When the generation finished
    """
    generation: int
    population_size: int
    best_fitness: float
    worst_fitness: float
    mean_fitness: float
    best_parameters: str
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now().isoformat()

    def trace_line(self) -> str:
        """One-line progress summary: generation (size) worst : best -> parameters."""
        return (f"{self.generation} ({self.population_size}) "
                f"{self.worst_fitness:.3f} : {self.best_fitness:.3f} -> {self.best_parameters}")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert record to dictionary for CSV export.

        Returns:
            Dictionary with string/number values
        """
        return {
            'generation': self.generation,
            'population_size': self.population_size,
            'best_fitness': self.best_fitness,
            'worst_fitness': self.worst_fitness,
            'mean_fitness': self.mean_fitness,
            'best_parameters': self.best_parameters,
            'timestamp': self.timestamp,
        }
