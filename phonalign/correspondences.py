"""
Sound correspondences read off pairwise alignments.

Every aligned column whose two segments differ is a correspondence. Each
side keeps its context: the segments before and after the column with gaps
removed. A boundary segment (the anchor) closes every row, so a
correspondence at the end of a word has the boundary as its following
context.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .data_models import Alignment, AlignmentResult, Segment


def _render(segments: Iterable[Segment]) -> str:
    return "".join(segment.symbol for segment in segments)


@dataclass(frozen=True)
class Context:
    """Gap-free segments around one aligned position of a row."""
    before: Tuple[Segment, ...]
    after: Tuple[Segment, ...]


@dataclass(frozen=True)
class Correspondence:
    """
    A pair of differing aligned segments with their contexts.

    Attributes:
        left: Segment from the first row
        right: Segment from the second row (either side may be the gap)
        left_context: Context of the column in the first row
        right_context: Context of the column in the second row
    """
    left: Segment
    right: Segment
    left_context: Context
    right_context: Context

    def to_dict(self) -> Dict[str, str]:
        return {
            'left_before': _render(self.left_context.before),
            'left': self.left.symbol,
            'left_after': _render(self.left_context.after),
            'right_before': _render(self.right_context.before),
            'right': self.right.symbol,
            'right_after': _render(self.right_context.after),
        }


def look_back(row: List[Segment], index: int, gap: Segment) -> Tuple[Segment, ...]:
    """Segments before index, gaps removed."""
    return tuple(segment for segment in row[:index] if segment != gap)


def look_forward(row: List[Segment], index: int, gap: Segment) -> Tuple[Segment, ...]:
    """Segments after index, gaps removed."""
    return tuple(segment for segment in row[index + 1:] if segment != gap)


def extract_correspondences(alignment: Alignment, boundary: Segment) -> List[Correspondence]:
    """
    Correspondences of one two-row alignment, in column order.

    Columns holding equal segments, the leading anchor column included, are
    skipped.

    Args:
        alignment: Two-row alignment
        boundary: Segment appended to both rows as the word end

    Returns:
        One Correspondence per differing column
    """
    if len(alignment.rows) != 2:
        raise ValueError(f"Correspondences need a two-row alignment, got {len(alignment.rows)} rows")

    top = alignment.get_row(0) + [boundary]
    bottom = alignment.get_row(1) + [boundary]
    gap = alignment.gap

    found = []
    for i in range(alignment.columns()):
        if top[i] == bottom[i]:
            continue
        found.append(Correspondence(
            left=top[i],
            right=bottom[i],
            left_context=Context(look_back(top, i, gap), look_forward(top, i, gap)),
            right_context=Context(look_back(bottom, i, gap), look_forward(bottom, i, gap)),
        ))
    return found


def collect_correspondences(results: Iterable[AlignmentResult], boundary: Segment) -> List[Correspondence]:
    """
    Distinct correspondences over every optimal alignment of every result.

    Returns:
        Correspondences in first-seen order
    """
    seen = set()
    collected = []
    for result in results:
        for alignment in result.alignments:
            for correspondence in extract_correspondences(alignment, boundary):
                if correspondence not in seen:
                    seen.add(correspondence)
                    collected.append(correspondence)
    return collected
