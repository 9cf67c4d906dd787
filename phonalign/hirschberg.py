"""
Hirschberg's linear-space global alignment.

Produces a single optimal alignment using divide-and-conquer over the rows
of the Needleman-Wunsch table. Each pass keeps one row per state:
- the forward pass scores every prefix by the state of its last move
- the reverse pass scores every suffix by the state of the move preceding it

The left sequence is split at its middle row and the right sequence at the
(column, state) pair optimizing forward + reverse scores. Each half is then
solved knowing the state its neighbour leaves behind, so a gap run crossing
the split is charged one opening, as in the full table.

Passes walk index ranges of the full input sequences, so context-aware
comparators always see the true neighbours of a position.
"""

from typing import List, Optional, Sequence as SequenceType, Tuple

import numpy as np

from .data_models import Alignment, AlignmentResult, Segment, Sequence
from .needleman_wunsch import LEFT_STATE, MATCH_STATE, STATES, UP_STATE, NeedlemanWunschAlgorithm

Column = Tuple[Segment, Segment]


class HirschbergAlgorithm(NeedlemanWunschAlgorithm):
    """
    Linear-space pairwise aligner returning one optimal alignment.

    Shares the constructor and cost model of NeedlemanWunschAlgorithm.
    """

    def align(self, left: Sequence, right: Sequence) -> AlignmentResult:
        columns = self._solve(left, right, 0, len(left), 0, len(right), MATCH_STATE, None)
        alignment = Alignment(
            [[upper for upper, _ in columns], [lower for _, lower in columns]],
            self.gap
        )
        last_row = self.last_row(left, right, range(len(left)), range(len(right)))
        return AlignmentResult(
            left=left,
            right=right,
            alignments=[alignment],
            score=self.score_alignment(alignment, left, right),
            table=np.atleast_2d(last_row)
        )

    def _solve(
        self,
        left: Sequence,
        right: Sequence,
        i0: int,
        i1: int,
        j0: int,
        j1: int,
        lead: int,
        trail: Optional[int]
    ) -> List[Column]:
        """
        Optimal columns for left[i0:i1] against right[j0:j1].

        Args:
            lead: State of the move just before this block
            trail: Required state of the block's last move, or None
        """
        n, m = i1 - i0, j1 - j0

        if n == 0:
            return [(self.gap, right[j]) for j in range(j0, j1)]
        if m == 0:
            return [(left[i], self.gap) for i in range(i0, i1)]

        if n == 1 or m == 1:
            scores, pointers = self.fill(left, right, (i0, i1), (j0, j1), start_state=lead)
            alignment = self.traceback(
                left, right, scores, pointers, (i0, i1), (j0, j1), end_state=trail
            )[0]
            return list(zip(alignment.get_row(0), alignment.get_row(1)))

        mid = i0 + n // 2
        forward = self.forward_rows(left, right, range(i0, mid), range(j0, j1), lead)
        reverse = self.reverse_rows(left, right, range(mid, i1), range(j0, j1), trail)

        split, state = 0, MATCH_STATE
        best = self.optimization.default_value
        for k in range(m + 1):
            for s in STATES:
                total = forward[s, k] + reverse[s, k]
                if self.optimization.is_better(total, best):
                    best = total
                    split, state = k, s

        return (self._solve(left, right, i0, mid, j0, j0 + split, lead, state)
                + self._solve(left, right, mid, i1, j0 + split, j1, state, trail))

    def forward_rows(
        self,
        left: Sequence,
        right: Sequence,
        row_indices: SequenceType[int],
        col_indices: SequenceType[int],
        lead: int = MATCH_STATE
    ) -> np.ndarray:
        """
        Best prefix scores after the given rows, per state of the last move.

        Returns:
            Array shaped (3, len(col_indices) + 1); entry [s, k] covers the
            first k columns and ends with a move in state s
        """
        opt = self.optimization
        open_cost, grow_cost = self.open_cost, self.grow_cost
        left_gap = self.gap_sequence(left.model)
        right_gap = self.gap_sequence(right.model)
        col_indices = list(col_indices)
        m = len(col_indices)
        right_gaps = [self.comparator.score(right_gap, right, 0, j) for j in col_indices]

        current = np.full((3, m + 1), opt.default_value)
        current[lead, 0] = 0.0
        for k in range(1, m + 1):
            current[LEFT_STATE, k] = opt.best((
                current[MATCH_STATE, k - 1] + open_cost,
                current[UP_STATE, k - 1] + open_cost,
                current[LEFT_STATE, k - 1] + grow_cost,
            )) + right_gaps[k - 1]

        for i in row_indices:
            left_score = self.comparator.score(left, left_gap, i, 0)
            following = np.full((3, m + 1), opt.default_value)

            for k in range(m + 1):
                if k > 0:
                    following[MATCH_STATE, k] = (
                        opt.best(current[:, k - 1])
                        + self.comparator.score(left, right, i, col_indices[k - 1])
                    )
                following[UP_STATE, k] = opt.best((
                    current[MATCH_STATE, k] + open_cost,
                    current[UP_STATE, k] + grow_cost,
                    current[LEFT_STATE, k] + open_cost,
                )) + left_score
                if k > 0:
                    following[LEFT_STATE, k] = opt.best((
                        following[MATCH_STATE, k - 1] + open_cost,
                        following[UP_STATE, k - 1] + open_cost,
                        following[LEFT_STATE, k - 1] + grow_cost,
                    )) + right_gaps[k - 1]

            current = following

        return current

    def reverse_rows(
        self,
        left: Sequence,
        right: Sequence,
        row_indices: SequenceType[int],
        col_indices: SequenceType[int],
        trail: Optional[int] = None
    ) -> np.ndarray:
        """
        Best suffix scores from the first given row, per preceding state.

        Entry [s, k] prices aligning every given row with the columns from
        offset k on, when the move just before is in state s. With trail set,
        only suffixes whose last move is in that state count.

        Returns:
            Array shaped (3, len(col_indices) + 1)
        """
        opt = self.optimization
        open_cost, grow_cost = self.open_cost, self.grow_cost
        left_gap = self.gap_sequence(left.model)
        right_gap = self.gap_sequence(right.model)
        col_indices = list(col_indices)
        m = len(col_indices)
        right_gaps = [self.comparator.score(right_gap, right, 0, j) for j in col_indices]

        def step(state, previous):
            return grow_cost if state == previous else open_cost

        current = np.full((3, m + 1), opt.default_value)
        for s in STATES:
            if trail is None or s == trail:
                current[s, m] = 0.0
        for k in range(m - 1, -1, -1):
            for s in STATES:
                current[s, k] = right_gaps[k] + step(LEFT_STATE, s) + current[LEFT_STATE, k + 1]

        for i in reversed(list(row_indices)):
            left_score = self.comparator.score(left, left_gap, i, 0)
            preceding = np.full((3, m + 1), opt.default_value)

            for k in range(m, -1, -1):
                if k < m:
                    diagonal = (self.comparator.score(left, right, i, col_indices[k])
                                + current[MATCH_STATE, k + 1])
                for s in STATES:
                    candidates = [left_score + step(UP_STATE, s) + current[UP_STATE, k]]
                    if k < m:
                        candidates.append(diagonal)
                        candidates.append(right_gaps[k] + step(LEFT_STATE, s) + preceding[LEFT_STATE, k + 1])
                    preceding[s, k] = opt.best(candidates)

            current = preceding

        return current

    def last_row(
        self,
        left: Sequence,
        right: Sequence,
        row_indices: SequenceType[int],
        col_indices: SequenceType[int]
    ) -> np.ndarray:
        """Optimal score of aligning all given rows with each prefix of the columns."""
        return self.collapse(self.forward_rows(left, right, row_indices, col_indices))
