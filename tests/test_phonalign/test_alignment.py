"""
Tests for alignment data models and the Needleman-Wunsch and Hirschberg aligners.
"""

import unittest

import numpy as np

from phonalign.comparators import (
    FunctionComparator,
    equality_comparator,
    feature_difference_comparator,
    negated,
)
from phonalign.data_models import Alignment, Segment, Sequence
from phonalign.features import FeatureModel, SequenceFactory
from phonalign.gap_penalties import ConstantGapPenalty, ConvexGapPenalty, NullGapPenalty
from phonalign.hirschberg import HirschbergAlgorithm
from phonalign.needleman_wunsch import NeedlemanWunschAlgorithm, align
from phonalign.optimization import Optimization


def make_factory() -> SequenceFactory:
    """Three-feature toy model: (syllabic, place, manner)."""
    model = FeatureModel(
        ['syllabic', 'place', 'manner'],
        {
            '#': [0, 0, 0],
            'a': [4, 2, 3],
            'o': [4, 3, 3],
            'e': [4, 1, 3],
            'm': [-4, 1, 2],
            'p': [-4, 1, 0],
            'b': [-4, 1, 1],
            'r': [-4, 2, 2],
            'k': [-4, 3, 0],
        }
    )
    return SequenceFactory(model)


def make_binary_factory() -> SequenceFactory:
    model = FeatureModel(['value'], {'#': [0], 'a': [1], 'b': [2], 'c': [3]})
    return SequenceFactory(model)


class TestDataModels(unittest.TestCase):
    """Test segments, sequences and alignments."""

    def setUp(self):
        self.factory = make_factory()

    def test_segment_equality_ignores_symbol(self):
        """Segments compare by features only."""
        self.assertEqual(Segment('a', (1.0, 2.0)), Segment('A', (1.0, 2.0)))
        self.assertNotEqual(Segment('a', (1.0, 2.0)), Segment('a', (1.0, 3.0)))

    def test_sequence_from_text(self):
        """Test tokenizing with and without whitespace."""
        compact = self.factory.to_sequence("#amapar")
        spaced = self.factory.to_sequence("# a m a p a r")

        self.assertEqual(len(compact), 7)
        self.assertEqual(compact, spaced)
        self.assertEqual(str(compact), "#amapar")

    def test_sequence_rejects_mismatched_features(self):
        """Appending a segment with a different vector length fails."""
        sequence = self.factory.to_sequence("#a")
        with self.assertRaises(ValueError):
            sequence.append(Segment('x', (1.0,)))

    def test_ragged_alignment_rejected(self):
        """Alignment rows must have equal length."""
        a = self.factory.to_segment('a')
        with self.assertRaises(ValueError):
            Alignment([[a, a], [a]], self.factory.gap_segment)

    def test_alignment_operations(self):
        """Test row/column access and removal."""
        gap = self.factory.gap_segment
        a, m = self.factory.to_segment('a'), self.factory.to_segment('m')
        alignment = Alignment([[a, m, a], [a, gap, a]], gap)

        self.assertEqual(alignment.row_count(), 2)
        self.assertEqual(alignment.columns(), 3)
        self.assertEqual(alignment.get_column(1), [m, gap])
        self.assertEqual(alignment.gap_count(), 1)

        copy = alignment.copy()
        copy.remove_column(1)
        self.assertEqual(copy.columns(), 2)
        self.assertEqual(alignment.columns(), 3)

        copy.remove_row(0)
        self.assertEqual(copy.row_count(), 1)

    def test_to_sequences_drops_gaps(self):
        """Recovered sequences contain no gap segments."""
        gap = self.factory.gap_segment
        a, m = self.factory.to_segment('a'), self.factory.to_segment('m')
        alignment = Alignment([[a, m], [gap, a]], gap)

        left, right = alignment.to_sequences(self.factory.model)
        self.assertEqual(str(left), "am")
        self.assertEqual(str(right), "a")

    def test_pretty_rows_pad_to_column_width(self):
        """Wide symbols pad their column; combining marks take no width."""
        model = FeatureModel(['f'], {'#': [0], 'a': [1], 'th': [2], 'a\u0303': [3]})
        factory = SequenceFactory(model)
        gap = factory.gap_segment
        rows = [
            [factory.to_segment('#'), factory.to_segment('th'), factory.to_segment('a')],
            [factory.to_segment('#'), factory.to_segment('a\u0303'), gap],
        ]
        alignment = Alignment(rows, gap)

        self.assertEqual(alignment.pretty_rows(), ["# th a", "# a\u0303  _"])
        self.assertEqual(str(alignment), "# th a\t# a\u0303  _")

    def test_strip_anchor(self):
        """Leading anchor column is removed only when every row has it."""
        anchored = Alignment.from_sequences(
            [self.factory.to_sequence("#am"), self.factory.to_sequence("#om")],
            self.factory.gap_segment
        )
        stripped = anchored.strip_anchor(self.factory.anchor_segment())
        self.assertEqual(stripped.columns(), 2)
        self.assertEqual(anchored.columns(), 3)

    def test_alignment_structural_equality(self):
        """Alignments with the same rows are equal and hash alike."""
        gap = self.factory.gap_segment
        a = self.factory.to_segment('a')
        first = Alignment([[a, gap], [a, a]], gap)
        second = Alignment([[a, gap], [a, a]], gap)

        self.assertEqual(first, second)
        self.assertEqual(len({first, second}), 1)


class TestNeedlemanWunsch(unittest.TestCase):
    """Test full-table alignment on fixed scenarios."""

    def setUp(self):
        self.factory = make_factory()
        self.aligner = NeedlemanWunschAlgorithm(
            feature_difference_comparator(self.factory.model),
            Optimization.MIN,
            ConvexGapPenalty(0.0, 0.0),
            self.factory.gap_segment
        )

    def align_texts(self, left: str, right: str, aligner=None):
        aligner = aligner or self.aligner
        return aligner(self.factory.to_sequence(left), self.factory.to_sequence(right))

    def test_amapar_omber(self):
        """#amapar vs #omber aligns in 7 columns."""
        result = self.align_texts("#amapar", "#omber")

        self.assertEqual(len(result.alignments), 1)
        self.assertEqual(result.best().columns(), 7)
        self.assertAlmostEqual(result.score, 6.0)
        self.assertEqual(result.best().pretty_rows(), ["# a m a p a r", "# o m _ b e r"])

    def test_amapar_kombera(self):
        """#amapar vs #kombera aligns in 9 columns."""
        result = self.align_texts("#amapar", "#kombera")

        self.assertEqual(len(result.alignments), 1)
        self.assertEqual(result.best().columns(), 9)
        self.assertAlmostEqual(result.score, 12.0)

    def test_ammapar_kamabra(self):
        """#ammapar vs #kamabra aligns in 10 columns, ties included."""
        result = self.align_texts("#ammapar", "#kamabra")

        self.assertGreaterEqual(len(result.alignments), 1)
        for alignment in result.alignments:
            self.assertEqual(alignment.columns(), 10)
        self.assertAlmostEqual(result.score, 13.0)

    def test_equality_comparator_scenario(self):
        """#baba vs #ababb under equality scoring has one optimal alignment of cost 2."""
        factory = make_binary_factory()
        result = align(
            factory.to_sequence("#baba"),
            factory.to_sequence("#ababb"),
            equality_comparator(),
            NullGapPenalty(),
            Optimization.MIN,
            factory.gap_segment
        )

        self.assertEqual(result.score, 2.0)
        self.assertEqual(len(result.alignments), 1)
        self.assertEqual(result.best().pretty_rows(), ["# _ b a b a", "# a b a b b"])

    def test_score_consistency(self):
        """Every returned alignment is priced at the table's final score."""
        for left, right in [("#amapar", "#omber"), ("#amapar", "#kombera"), ("#ammapar", "#kamabra")]:
            result = self.align_texts(left, right)
            self.assertAlmostEqual(float(result.table[-1, -1]), result.score)
            for alignment in result.alignments:
                self.assertAlmostEqual(
                    self.aligner.score_alignment(alignment, result.left, result.right),
                    result.score
                )

    def test_alignments_are_distinct(self):
        """Tied alignments are reported once each."""
        result = self.align_texts("#ammapar", "#kamabra")
        self.assertEqual(len(result.alignments), len(set(result.alignments)))

    def test_min_max_duality(self):
        """Maximizing negated scores yields the same optimal alignments."""
        comparator = feature_difference_comparator(self.factory.model)
        maximizer = NeedlemanWunschAlgorithm(
            negated(comparator),
            Optimization.MAX,
            ConvexGapPenalty(0.0, 0.0),
            self.factory.gap_segment
        )

        for left, right in [("#amapar", "#omber"), ("#ammapar", "#kamabra")]:
            minimized = self.align_texts(left, right)
            maximized = self.align_texts(left, right, maximizer)

            self.assertEqual(set(minimized.alignments), set(maximized.alignments))
            self.assertAlmostEqual(minimized.score, -maximized.score)

    def test_identity(self):
        """A sequence aligned with itself has no gaps and scores 0."""
        aligner = NeedlemanWunschAlgorithm(
            equality_comparator(), Optimization.MIN, NullGapPenalty(), self.factory.gap_segment
        )
        result = self.align_texts("#amapar", "#amapar", aligner)

        self.assertEqual(len(result.alignments), 1)
        self.assertEqual(result.best().gap_count(), 0)
        self.assertEqual(result.score, 0.0)

    def test_empty_against_nonempty(self):
        """An empty sequence aligns as an all-gap row."""
        result = self.aligner(Sequence([], self.factory.model), self.factory.to_sequence("#ab"))

        self.assertEqual(len(result.alignments), 1)
        alignment = result.best()
        self.assertEqual(alignment.columns(), 3)
        self.assertEqual(alignment.get_row(0), [self.factory.gap_segment] * 3)
        self.assertAlmostEqual(result.score, 9.0)

    def test_both_empty(self):
        """Two empty sequences give one zero-column alignment."""
        empty = Sequence([], self.factory.model)
        result = self.aligner(empty, empty)

        self.assertEqual(len(result.alignments), 1)
        self.assertEqual(result.best().columns(), 0)
        self.assertEqual(result.score, 0.0)

    def test_table_rows_shape(self):
        """Score table has (n+1) x (m+1) rows for external formatting."""
        result = self.align_texts("#am", "#a")
        rows = result.table_rows()

        self.assertEqual(len(rows), 4)
        self.assertEqual(len(rows[0]), 3)
        self.assertEqual(rows[0][0], 0.0)


class TestAffineGaps(unittest.TestCase):
    """Gap runs pay one opening each, then the growth cost."""

    def setUp(self):
        self.factory = make_binary_factory()
        gap = self.factory.gap_segment

        def score(left, right, i, j):
            if left[i] == gap or right[j] == gap:
                return 0.0
            return 0.0 if left[i] == right[j] else 10.0

        self.comparator = FunctionComparator(score)

    def run_alignment(self, left, right, penalty):
        aligner = NeedlemanWunschAlgorithm(
            self.comparator, Optimization.MIN, penalty, self.factory.gap_segment
        )
        return aligner, aligner(self.factory.to_sequence(left), self.factory.to_sequence(right))

    def test_single_run(self):
        """A contiguous deletion costs open + grow."""
        aligner, result = self.run_alignment("#accb", "#ab", ConvexGapPenalty(3.0, 1.0))

        self.assertAlmostEqual(result.score, 4.0)
        self.assertEqual(result.best().pretty_rows(), ["# a c c b", "# a _ _ b"])

    def test_separate_runs_each_open(self):
        """Two separated deletions pay the opening cost twice."""
        aligner, result = self.run_alignment("#acbc", "#ab", ConvexGapPenalty(3.0, 1.0))

        self.assertAlmostEqual(result.score, 6.0)
        for alignment in result.alignments:
            self.assertAlmostEqual(aligner.score_alignment(alignment, result.left, result.right), 6.0)

    def test_constant_penalty(self):
        """A constant penalty charges a run once regardless of length."""
        _, result = self.run_alignment("#accb", "#ab", ConstantGapPenalty(3.0))
        self.assertAlmostEqual(result.score, 3.0)

    def test_linear_space_run_across_split(self):
        """A deletion spanning the middle row still pays a single opening."""
        penalty = ConvexGapPenalty(3.0, 1.0)
        aligner = HirschbergAlgorithm(self.comparator, Optimization.MIN, penalty, self.factory.gap_segment)
        result = aligner(self.factory.to_sequence("#accccb"), self.factory.to_sequence("#ab"))

        self.assertAlmostEqual(result.score, 6.0)
        self.assertEqual(result.best().pretty_rows(), ["# a c c c c b", "# a _ _ _ _ b"])


class TestHirschberg(unittest.TestCase):
    """Test the linear-space aligner against the full table."""

    def setUp(self):
        self.factory = make_factory()
        comparator = feature_difference_comparator(self.factory.model)
        gap = self.factory.gap_segment
        self.full = NeedlemanWunschAlgorithm(comparator, Optimization.MIN, ConvexGapPenalty(0.0, 0.0), gap)
        self.linear = HirschbergAlgorithm(comparator, Optimization.MIN, ConvexGapPenalty(0.0, 0.0), gap)

    def test_matches_full_table(self):
        """With equal open and grow costs the optimum is the same."""
        for left, right in [("#amapar", "#omber"), ("#amapar", "#kombera"), ("#ammapar", "#kamabra")]:
            left_seq = self.factory.to_sequence(left)
            right_seq = self.factory.to_sequence(right)

            full = self.full(left_seq, right_seq)
            linear = self.linear(left_seq, right_seq)

            self.assertEqual(len(linear.alignments), 1)
            self.assertAlmostEqual(linear.score, full.score)
            self.assertIn(linear.best(), full.alignments)

    def test_unique_alignment_reproduced(self):
        """The unique optimal alignment is found exactly."""
        left = self.factory.to_sequence("#amapar")
        right = self.factory.to_sequence("#omber")

        self.assertEqual(self.linear(left, right).best(), self.full(left, right).best())

    def test_equality_scenario(self):
        """Hirschberg reproduces the unique equality-comparator alignment."""
        factory = make_binary_factory()
        aligner = HirschbergAlgorithm(
            equality_comparator(), Optimization.MIN, NullGapPenalty(), factory.gap_segment
        )
        result = aligner(factory.to_sequence("#baba"), factory.to_sequence("#ababb"))

        self.assertEqual(result.score, 2.0)
        self.assertEqual(result.best().pretty_rows(), ["# _ b a b a", "# a b a b b"])

    def test_convex_gaps_match_full_table(self):
        """Affine costs with open != grow give the full-table optimum."""
        rng = np.random.default_rng(3)
        comparator = feature_difference_comparator(self.factory.model)
        gap = self.factory.gap_segment
        penalty = ConvexGapPenalty(2.0, 0.1)

        for optimization, scoring in [(Optimization.MIN, comparator), (Optimization.MAX, negated(comparator))]:
            full = NeedlemanWunschAlgorithm(scoring, optimization, penalty, gap)
            linear = HirschbergAlgorithm(scoring, optimization, penalty, gap)

            for _ in range(30):
                left = "#" + "".join(rng.choice(list("aoembprk"), size=int(rng.integers(1, 9))))
                right = "#" + "".join(rng.choice(list("aoembprk"), size=int(rng.integers(1, 9))))
                left_seq = self.factory.to_sequence(left)
                right_seq = self.factory.to_sequence(right)

                expected = full(left_seq, right_seq)
                result = linear(left_seq, right_seq)

                self.assertAlmostEqual(result.score, expected.score, msg=f"{left} / {right}")
                self.assertIn(result.best(), expected.alignments)

    def test_final_row_only(self):
        """Only the last table row is kept."""
        result = self.linear(self.factory.to_sequence("#amapar"), self.factory.to_sequence("#omber"))

        self.assertEqual(result.table.shape, (1, 7))
        self.assertAlmostEqual(result.table[0, -1], result.score)

    def test_empty_input(self):
        """Empty inputs produce all-gap alignments."""
        empty = Sequence([], self.factory.model)
        result = self.linear(self.factory.to_sequence("#a"), empty)

        self.assertEqual(result.best().get_row(1), [self.factory.gap_segment] * 2)


if __name__ == '__main__':
    unittest.main()
