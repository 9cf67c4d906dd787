"""
Needleman-Wunsch global alignment with tie-aware traceback.

Scores and predecessor flags live in numpy arrays indexed by
(state, i, j). The three states are the move that ends at a cell:
DIAGONAL (segment against segment), UP (left segment against a gap) and
LEFT (gap against right segment). Keeping gap runs in their own states lets
affine gap penalties price every run exactly.

Each cell records every predecessor state achieving its optimal score, so
traceback can enumerate all tied optimal alignments.

Gapped positions are priced by comparing the segment with the gap segment
plus the gap penalty: increment(1) opens a run, increment(2) grows it.
"""

from typing import List, Optional, Tuple

import numpy as np

from .comparators import Comparator
from .data_models import Alignment, AlignmentResult, Segment, Sequence
from .gap_penalties import GapPenalty
from .optimization import Optimization

MATCH_STATE, UP_STATE, LEFT_STATE = 0, 1, 2
STATES = (MATCH_STATE, UP_STATE, LEFT_STATE)

DIAGONAL = 1 << MATCH_STATE
UP = 1 << UP_STATE
LEFT = 1 << LEFT_STATE


class NeedlemanWunschAlgorithm:
    """
    Full dynamic-programming pairwise aligner.

    Attributes:
        comparator: Position-pair scoring function
        optimization: Optimization.MIN for costs, Optimization.MAX for similarities
        gap_penalty: Gap run cost model
        gap: Segment used to pad alignments and to price gapped positions
    """

    def __init__(
        self,
        comparator: Comparator,
        optimization: Optimization,
        gap_penalty: GapPenalty,
        gap: Segment
    ):
        self.comparator = comparator
        self.optimization = optimization
        self.gap_penalty = gap_penalty
        self.gap = gap

    def __call__(self, left: Sequence, right: Sequence) -> AlignmentResult:
        return self.align(left, right)

    def __repr__(self) -> str:
        return (f"NeedlemanWunschAlgorithm(comparator={self.comparator!r}, "
                f"optimization={self.optimization.name}, gap_penalty={self.gap_penalty!r})")

    def align(self, left: Sequence, right: Sequence) -> AlignmentResult:
        """
        Align two sequences.

        Args:
            left: First sequence (table rows)
            right: Second sequence (table columns)

        Returns:
            AlignmentResult with every distinct optimal alignment
        """
        scores, pointers = self.fill(left, right)
        alignments = self.traceback(left, right, scores, pointers)
        table = self.collapse(scores)
        return AlignmentResult(
            left=left,
            right=right,
            alignments=alignments,
            score=float(table[-1, -1]),
            table=table
        )

    @property
    def open_cost(self) -> float:
        return self.gap_penalty.increment(1)

    @property
    def grow_cost(self) -> float:
        return self.gap_penalty.increment(2)

    def gap_sequence(self, model=None) -> Sequence:
        return Sequence([self.gap], model)

    def left_gap_scores(self, left: Sequence, start: int, stop: int) -> np.ndarray:
        """Scores of left[start:stop] against the gap, one per position."""
        gap = self.gap_sequence(left.model)
        return np.array(
            [self.comparator.score(left, gap, i, 0) for i in range(start, stop)],
            dtype=np.float64
        )

    def right_gap_scores(self, right: Sequence, start: int, stop: int) -> np.ndarray:
        """Scores of the gap against right[start:stop], one per position."""
        gap = self.gap_sequence(right.model)
        return np.array(
            [self.comparator.score(gap, right, 0, j) for j in range(start, stop)],
            dtype=np.float64
        )

    def _select(self, candidates: Tuple[float, float, float]) -> Tuple[float, int]:
        """Best of three state candidates and the flags of every tied state."""
        opt = self.optimization
        best = opt.best(candidates)
        flags = 0
        for state, value in zip(STATES, candidates):
            if opt.is_tie(value, best):
                flags |= 1 << state
        return best, flags

    def fill(
        self,
        left: Sequence,
        right: Sequence,
        rows: Optional[Tuple[int, int]] = None,
        cols: Optional[Tuple[int, int]] = None,
        start_state: int = MATCH_STATE
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Fill the per-state score tables and predecessor flags.

        Args:
            left: First sequence
            right: Second sequence
            rows: Optional (start, stop) range of left to align
            cols: Optional (start, stop) range of right to align
            start_state: State of the move preceding the range; UP_STATE or
                LEFT_STATE lets a leading gap run continue at the grow cost

        Returns:
            Tuple of (scores, pointers), both shaped (3, n+1, m+1)
        """
        i0, i1 = rows if rows is not None else (0, len(left))
        j0, j1 = cols if cols is not None else (0, len(right))
        n, m = i1 - i0, j1 - j0

        worst = self.optimization.default_value
        scores = np.full((3, n + 1, m + 1), worst, dtype=np.float64)
        pointers = np.zeros((3, n + 1, m + 1), dtype=np.uint8)

        left_gaps = self.left_gap_scores(left, i0, i1)
        right_gaps = self.right_gap_scores(right, j0, j1)
        open_cost, grow_cost = self.open_cost, self.grow_cost

        scores[start_state, 0, 0] = 0.0

        for a in range(1, n + 1):
            best, flags = self._select((
                scores[MATCH_STATE, a - 1, 0] + open_cost,
                scores[UP_STATE, a - 1, 0] + grow_cost,
                scores[LEFT_STATE, a - 1, 0] + open_cost,
            ))
            scores[UP_STATE, a, 0] = best + left_gaps[a - 1]
            pointers[UP_STATE, a, 0] = flags

        for b in range(1, m + 1):
            best, flags = self._select((
                scores[MATCH_STATE, 0, b - 1] + open_cost,
                scores[UP_STATE, 0, b - 1] + open_cost,
                scores[LEFT_STATE, 0, b - 1] + grow_cost,
            ))
            scores[LEFT_STATE, 0, b] = best + right_gaps[b - 1]
            pointers[LEFT_STATE, 0, b] = flags

        for a in range(1, n + 1):
            for b in range(1, m + 1):
                match = self.comparator.score(left, right, i0 + a - 1, j0 + b - 1)
                best, flags = self._select(tuple(scores[:, a - 1, b - 1]))
                scores[MATCH_STATE, a, b] = best + match
                pointers[MATCH_STATE, a, b] = flags

                best, flags = self._select((
                    scores[MATCH_STATE, a - 1, b] + open_cost,
                    scores[UP_STATE, a - 1, b] + grow_cost,
                    scores[LEFT_STATE, a - 1, b] + open_cost,
                ))
                scores[UP_STATE, a, b] = best + left_gaps[a - 1]
                pointers[UP_STATE, a, b] = flags

                best, flags = self._select((
                    scores[MATCH_STATE, a, b - 1] + open_cost,
                    scores[UP_STATE, a, b - 1] + open_cost,
                    scores[LEFT_STATE, a, b - 1] + grow_cost,
                ))
                scores[LEFT_STATE, a, b] = best + right_gaps[b - 1]
                pointers[LEFT_STATE, a, b] = flags

        return scores, pointers

    def collapse(self, scores: np.ndarray) -> np.ndarray:
        """Reduce per-state scores to the optimal score of each cell."""
        if self.optimization.name == Optimization.MAX.name:
            return scores.max(axis=0)
        return scores.min(axis=0)

    def traceback(
        self,
        left: Sequence,
        right: Sequence,
        scores: np.ndarray,
        pointers: np.ndarray,
        rows: Optional[Tuple[int, int]] = None,
        cols: Optional[Tuple[int, int]] = None,
        end_state: Optional[int] = None
    ) -> List[Alignment]:
        """
        Enumerate every optimal path from the final cell back to the origin.

        Paths are walked by index over the flag arrays; alignments with
        identical rows are reported once. When end_state is given only paths
        whose last move is in that state are followed.

        Returns:
            List of distinct alignments, diagonal-first order
        """
        i0 = rows[0] if rows is not None else 0
        j0 = cols[0] if cols is not None else 0
        n, m = scores.shape[1] - 1, scores.shape[2] - 1

        alignments: List[Alignment] = []
        seen = set()

        if n == 0 and m == 0:
            return [Alignment([[], []], self.gap)]

        if end_state is None:
            _, final_flags = self._select(tuple(scores[:, n, m]))
        else:
            final_flags = 1 << end_state

        # Entries are (i, j, state, chain); chain links columns as (column, rest)
        stack = [(n, m, state, None) for state in reversed(STATES) if final_flags & (1 << state)]
        while stack:
            a, b, state, chain = stack.pop()

            if state == MATCH_STATE:
                column = (left[i0 + a - 1], right[j0 + b - 1])
                previous = (a - 1, b - 1)
            elif state == UP_STATE:
                column = (left[i0 + a - 1], self.gap)
                previous = (a - 1, b)
            else:
                column = (self.gap, right[j0 + b - 1])
                previous = (a, b - 1)
            chain = (column, chain)

            if previous == (0, 0):
                top, bottom = [], []
                while chain is not None:
                    (upper, lower), chain = chain
                    top.append(upper)
                    bottom.append(lower)
                alignment = Alignment([top, bottom], self.gap)
                if alignment not in seen:
                    seen.add(alignment)
                    alignments.append(alignment)
                continue

            flags = pointers[state, a, b]
            for origin in reversed(STATES):
                if flags & (1 << origin):
                    stack.append((previous[0], previous[1], origin, chain))

        return alignments

    def score_alignment(self, alignment: Alignment, left: Sequence, right: Sequence) -> float:
        """
        Price an existing two-row alignment under this algorithm's cost model.

        Args:
            alignment: Alignment whose rows, minus gaps, are left and right
            left: Unaligned first sequence
            right: Unaligned second sequence

        Returns:
            Total score
        """
        left_gap = self.gap_sequence(left.model)
        right_gap = self.gap_sequence(right.model)
        score = 0.0
        i = j = 0
        state = MATCH_STATE

        for upper, lower in zip(alignment.get_row(0), alignment.get_row(1)):
            if upper == self.gap and lower == self.gap:
                continue
            if lower == self.gap:
                score += self.grow_cost if state == UP_STATE else self.open_cost
                score += self.comparator.score(left, left_gap, i, 0)
                state = UP_STATE
                i += 1
            elif upper == self.gap:
                score += self.grow_cost if state == LEFT_STATE else self.open_cost
                score += self.comparator.score(right_gap, right, 0, j)
                state = LEFT_STATE
                j += 1
            else:
                score += self.comparator.score(left, right, i, j)
                state = MATCH_STATE
                i += 1
                j += 1

        return score


def align(
    left: Sequence,
    right: Sequence,
    comparator: Comparator,
    gap_penalty: GapPenalty,
    optimization: Optimization,
    gap: Segment
) -> AlignmentResult:
    """Align two sequences with a one-off Needleman-Wunsch aligner."""
    return NeedlemanWunschAlgorithm(comparator, optimization, gap_penalty, gap).align(left, right)
