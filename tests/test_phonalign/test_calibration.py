"""
Tests for the genome codec, mutation, selection, corpus parsing and the calibrator.

Calibration runs are stochastic; every run here uses a fixed seed.
"""

import csv
import shutil
import tempfile
import unittest
from pathlib import Path

import numpy as np

from phonalign.calibrator import STOP_LIMIT, STOP_STEADY, Calibrator, calibrate
from phonalign.comparators import LinearWeightComparator, SparseMatrixComparator, feature_difference_comparator
from phonalign.data_models import Alignment, GenerationRecord
from phonalign.features import ConfigurationError, FeatureModel, SequenceFactory
from phonalign.gap_penalties import ConstantGapPenalty, ConvexGapPenalty
from phonalign.genome import CORRELATION_BOUNDS, GAP_BOUNDS, WEIGHT_BOUNDS, Genome, GenomeCodec
from phonalign.io_utils import parse_training_text, save_generation_log
from phonalign.mutation import breed_offspring, gaussian_mutation
from phonalign.needleman_wunsch import NeedlemanWunschAlgorithm
from phonalign.optimization import Optimization
from phonalign.selection import rank_by_fitness, select_elites


def make_factory() -> SequenceFactory:
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


TRAINING_TEXT = """% toy corpus
LEFT
RIGHT

a m a p a r | a m a p a r
o m b _ e r | o m _ b e r

% wrong number of rows
a m a
o m b
e r e

% unknown symbol
a z a
o m a

p a r
b e r
"""


class TestGenomeCodec(unittest.TestCase):
    """Test genome layout, decoding and encoding."""

    def setUp(self):
        self.factory = make_factory()
        self.codec = GenomeCodec(
            self.factory.model,
            self.factory.gap_segment,
            correlated_features=[('syllabic', 'place'), ('nasal', 'place')]
        )
        self.genome = Genome(groups=([0.5, 0.25], [0.2, 0.7], [1.5, -2.0]))

    def test_layout(self):
        """Groups: gap params, weights minus the fixed one, correlations."""
        self.assertEqual(self.codec.group_sizes(), [2, 2, 2])
        self.assertEqual(self.codec.bounds(), [GAP_BOUNDS, WEIGHT_BOUNDS, CORRELATION_BOUNDS])
        self.assertEqual(self.codec.correlated_indices, [(0, 1), (-1, 1)])

    def test_no_correlations_two_groups(self):
        codec = GenomeCodec(self.factory.model, self.factory.gap_segment)
        self.assertEqual(codec.group_sizes(), [2, 2])

    def test_random_genome_within_bounds(self):
        """Random genomes respect group sizes and bounds."""
        genome = self.codec.random_genome(np.random.default_rng(7))

        self.assertEqual(genome.group_sizes(), [2, 2, 2])
        for group, (low, high) in zip(genome.groups, self.codec.bounds()):
            self.assertTrue(np.all(group >= low))
            self.assertTrue(np.all(group <= high))

    def test_decode(self):
        """Fixed weight is re-inserted and correlations keep their pairs."""
        algorithm = self.codec.decode(self.genome)

        self.assertIsInstance(algorithm, NeedlemanWunschAlgorithm)
        self.assertIs(algorithm.optimization, Optimization.MIN)
        self.assertEqual(algorithm.gap_penalty, ConvexGapPenalty(0.5, 0.25))
        self.assertIsInstance(algorithm.comparator, SparseMatrixComparator)
        np.testing.assert_array_equal(algorithm.comparator.weights, [0.2, 1.0, 0.7])
        self.assertEqual(algorithm.comparator.sparse_weights, [((0, 1), 1.5), ((-1, 1), -2.0)])

    def test_round_trip(self):
        """Decoding then encoding reproduces the parameter values."""
        comparator, gap_penalty = self.codec.decode_parts(self.genome)
        encoded = self.codec.encode(comparator, gap_penalty)

        self.assertTrue(encoded.same_parameters(self.genome))

        again, again_penalty = self.codec.decode_parts(encoded)
        np.testing.assert_array_equal(again.weights, comparator.weights)
        self.assertEqual(again.sparse_weights, comparator.sparse_weights)
        self.assertEqual(again_penalty, gap_penalty)

    def test_round_trip_keeps_extra_parameters(self):
        """Group 0 values beyond open and grow survive decode then encode."""
        codec = GenomeCodec(self.factory.model, self.factory.gap_segment, extra_params=3)
        genome = codec.random_genome(np.random.default_rng(1))

        comparator, gap_penalty = codec.decode_parts(genome)
        self.assertEqual(len(gap_penalty.extras), 1)
        self.assertEqual(gap_penalty.cost(2), gap_penalty.open_penalty + gap_penalty.grow_penalty)

        encoded = codec.encode(comparator, gap_penalty)
        self.assertTrue(encoded.same_parameters(genome))
        np.testing.assert_array_equal(encoded.groups[0], genome.groups[0])

    def test_encode_constant_penalty(self):
        """Shorter gap parameter lists are zero padded."""
        codec = GenomeCodec(self.factory.model, self.factory.gap_segment)
        comparator = LinearWeightComparator(self.factory.model, [0.3, 1.0, 0.4])
        genome = codec.encode(comparator, ConstantGapPenalty(1.5))

        np.testing.assert_array_equal(genome.groups[0], [1.5, 0.0])
        np.testing.assert_array_equal(genome.groups[1], [0.3, 0.4])

    def test_encode_wrong_weight_count(self):
        codec = GenomeCodec(self.factory.model, self.factory.gap_segment)
        comparator = LinearWeightComparator(self.factory.model, [1.0, 1.0])
        with self.assertRaises(ConfigurationError):
            codec.encode(comparator, ConvexGapPenalty(0.0, 0.0))

    def test_invalid_configuration(self):
        """Too few extra params or a mismatched genome is rejected."""
        with self.assertRaises(ConfigurationError):
            GenomeCodec(self.factory.model, self.factory.gap_segment, extra_params=1)

        with self.assertRaises(ConfigurationError):
            self.codec.decode(Genome(groups=([0.0, 0.0], [1.0, 1.0])))

    def test_format_genome(self):
        self.assertEqual(
            self.codec.format_genome(self.genome),
            "0.500 0.250 | 0.200 0.700 | 1.500 -2.000"
        )


class TestOperators(unittest.TestCase):
    """Test Gaussian mutation and elitist selection."""

    def setUp(self):
        self.bounds = [(-2.0, 2.0), (0.0, 1.0)]
        self.genome = Genome(groups=([0.0, 1.0], [0.5, 0.5, 0.5]), fitness=0.4)

    def test_no_mutation(self):
        """Probability 0 leaves every gene unchanged."""
        child, log = gaussian_mutation(self.genome, self.bounds, 0.0, 0.25, np.random.default_rng(0))

        self.assertTrue(child.same_parameters(self.genome))
        self.assertIsNone(child.fitness)
        self.assertIn("no genes mutated", log[0])

    def test_mutation_clipped_and_copied(self):
        """Mutated genes stay in bounds and the parent is untouched."""
        child, log = gaussian_mutation(self.genome, self.bounds, 1.0, 10.0, np.random.default_rng(1))

        for group, (low, high) in zip(child.groups, self.bounds):
            self.assertTrue(np.all(group >= low))
            self.assertTrue(np.all(group <= high))
        np.testing.assert_array_equal(self.genome.groups[1], [0.5, 0.5, 0.5])
        self.assertTrue(any('gaussian' in entry for entry in log))

    def test_breed_offspring(self):
        parents = [self.genome, self.genome.copy()]
        children = breed_offspring(parents, 5, self.bounds, 0.5, 0.1, np.random.default_rng(2))

        self.assertEqual(len(children), 5)
        for child in children:
            self.assertEqual(child.metadata['origin'], 'mutation')
            self.assertIsNone(child.fitness)

    def test_breed_requires_parents(self):
        with self.assertRaises(ValueError):
            breed_offspring([], 1, self.bounds, 0.5, 0.1, np.random.default_rng(3))

    def test_select_elites(self):
        """Top-K by fitness, ties in population order."""
        population = [Genome(groups=([float(i)],)) for i in range(4)]
        fitnesses = [0.2, 0.9, 0.5, 0.9]

        self.assertEqual(rank_by_fitness(population, fitnesses), [1, 3, 2, 0])

        elites = select_elites(population, fitnesses, 2)
        self.assertEqual([e.groups[0][0] for e in elites], [1.0, 3.0])
        self.assertEqual([e.fitness for e in elites], [0.9, 0.9])


class TestCorpusParsing(unittest.TestCase):
    """Test training text parsing."""

    def setUp(self):
        self.factory = make_factory()

    def test_blocks_parsed_and_bad_blocks_skipped(self):
        """Mismatched and unknown-symbol blocks are skipped."""
        blocks = parse_training_text(TRAINING_TEXT, self.factory)

        self.assertEqual(len(blocks), 2)
        self.assertEqual(len(blocks[0]), 2)
        self.assertEqual(len(blocks[1]), 1)

    def test_anchor_added(self):
        """Every row starts with the anchor."""
        blocks = parse_training_text(TRAINING_TEXT, self.factory)
        reference = blocks[0][1]

        self.assertEqual(reference.pretty_rows(), ["# a m a p a r", "# o m _ b e r"])
        self.assertEqual(reference.get_column(0), [self.factory.anchor_segment()] * 2)

    def test_header_only(self):
        self.assertEqual(parse_training_text("A\nB\n", self.factory), [])


class TestCalibrator(unittest.TestCase):
    """Test fitness evaluation and the evolutionary loop."""

    def setUp(self):
        self.factory = make_factory()
        self.test_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def make_calibrator(self, **options):
        settings = dict(population_size=6, elite_count=2, steady_generations=2, max_generations=4, seed=11)
        settings.update(options)
        return Calibrator(self.factory, **settings)

    def reference_aligner(self):
        return NeedlemanWunschAlgorithm(
            feature_difference_comparator(self.factory.model),
            Optimization.MIN,
            ConvexGapPenalty(0.0, 0.0),
            self.factory.gap_segment
        )

    def test_zero_eligible_pairs(self):
        """Single-row references are not counted; fitness is exactly 0.0."""
        calibrator = self.make_calibrator()
        calibrator.add_text("single", "LEFT\n\na m a\n\no m b e r\n")

        self.assertEqual(len(calibrator.training_data["single"]), 2)
        self.assertEqual(calibrator.training_pairs(), [])
        genome = calibrator.codec.random_genome(np.random.default_rng(0))
        self.assertEqual(calibrator.fitness(genome), 0.0)

    def test_empty_corpus(self):
        calibrator = self.make_calibrator()
        self.assertEqual(calibrator.evaluate(self.reference_aligner()), 0.0)

    def test_missing_file_skipped(self):
        """Unreadable training files are reported and skipped."""
        calibrator = self.make_calibrator()

        self.assertFalse(calibrator.add_file(self.test_dir / "missing.sdm"))
        self.assertEqual(len(calibrator.training_data), 0)

    def test_add_file(self):
        path = self.test_dir / "toy.sdm"
        path.write_text(TRAINING_TEXT, encoding='utf-8')
        calibrator = self.make_calibrator()

        self.assertTrue(calibrator.add_file(path))
        self.assertEqual(len(calibrator.training_pairs()), 2)

    def test_evaluate_counts_matches(self):
        """Fitness is the fraction of pairs whose result contains a reference."""
        aligner = self.reference_aligner()
        left = self.factory.to_sequence("#amapar")
        right = self.factory.to_sequence("#omber")
        correct = aligner(left, right).best()
        wrong = Alignment(
            [list(left) + [self.factory.gap_segment] * len(right),
             [self.factory.gap_segment] * len(left) + list(right)],
            self.factory.gap_segment
        )

        calibrator = self.make_calibrator()
        calibrator.add_blocks("matched", [[wrong, correct]])
        self.assertEqual(calibrator.evaluate(aligner), 1.0)

        calibrator.add_blocks("unmatched", [[wrong]])
        self.assertEqual(calibrator.evaluate(aligner), 0.5)

    def test_run_stops_on_steady_fitness(self):
        """Without a generation cap, a flat fitness stops the run after the steady count."""
        calibrator = self.make_calibrator(max_generations=None, steady_generations=2)
        result = calibrator.run(verbose=False)

        self.assertEqual(result.generations, 3)
        self.assertEqual(result.stop_reason, STOP_STEADY)
        self.assertEqual([r.best_fitness for r in result.history], [0.0, 0.0, 0.0])

    def test_run_stops_at_generation_cap(self):
        calibrator = self.make_calibrator(max_generations=1, steady_generations=5)
        result = calibrator.run(verbose=False)

        self.assertEqual(result.generations, 1)
        self.assertEqual(result.stop_reason, STOP_LIMIT)

    def test_run_seeded(self):
        """A seeded run is reproducible and keeps its best fitness."""
        first = self.make_calibrator()
        first.add_text("toy", TRAINING_TEXT)
        result = first.run(verbose=False)

        self.assertLessEqual(result.generations, 4)
        self.assertEqual(len(result.history), result.generations)
        self.assertEqual(result.best_fitness, max(r.best_fitness for r in result.history))
        self.assertIsInstance(result.algorithm, NeedlemanWunschAlgorithm)

        # Elites survive, so the generation best never drops
        bests = [r.best_fitness for r in result.history]
        self.assertEqual(bests, sorted(bests))

        second = self.make_calibrator()
        second.add_text("toy", TRAINING_TEXT)
        repeat = second.run(verbose=False)
        self.assertTrue(repeat.best_genome.same_parameters(result.best_genome))

    def test_threaded_evaluation_matches_sequential(self):
        """Thread pool evaluation gives the same run as sequential evaluation."""
        sequential = self.make_calibrator(workers=1)
        sequential.add_text("toy", TRAINING_TEXT)
        threaded = self.make_calibrator(workers=3)
        threaded.add_text("toy", TRAINING_TEXT)

        a = sequential.run(verbose=False)
        b = threaded.run(verbose=False)

        self.assertEqual([r.best_fitness for r in a.history], [r.best_fitness for r in b.history])
        self.assertTrue(a.best_genome.same_parameters(b.best_genome))

    def test_trace_format(self):
        """Trace lines show generation, size, worst : best -> parameters."""
        record = GenerationRecord(
            generation=3, population_size=6, best_fitness=0.5, worst_fitness=0.0,
            mean_fitness=0.25, best_parameters="0.100 0.200 | 0.300 0.400"
        )
        self.assertEqual(record.trace_line(), "3 (6) 0.000 : 0.500 -> 0.100 0.200 | 0.300 0.400")

    def test_invalid_settings(self):
        with self.assertRaises(ValueError):
            Calibrator(self.factory, population_size=1)
        with self.assertRaises(ValueError):
            Calibrator(self.factory, population_size=4, elite_count=4)

    def test_write_best_alignments(self):
        """Report lists correctness and both renderings per pair."""
        calibrator = self.make_calibrator()
        calibrator.add_text("toy", TRAINING_TEXT)
        output = self.test_dir / "best.csv"

        calibrator.write_best_alignments(self.reference_aligner(), output)

        with open(output, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0], ['correct', 'left', 'right', 'output_left', 'output_right'])
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][1:3], ["# a m a p a r", "# o m b _ e r"])
        self.assertEqual(rows[1][3:5], ["# a m a p a r", "# o m _ b e r"])
        self.assertEqual(rows[1][0], '1')

        with self.assertRaises(FileExistsError):
            calibrator.write_best_alignments(self.reference_aligner(), output)

    def test_generation_log(self):
        calibrator = self.make_calibrator()
        calibrator.add_text("toy", TRAINING_TEXT)
        result = calibrator.run(verbose=False)

        path = save_generation_log(result.history, self.test_dir / "log.csv")
        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        self.assertEqual(len(rows), result.generations)
        self.assertEqual(rows[0]['generation'], '1')

    def test_calibrate_function(self):
        """Module-level calibrate returns a genome for an in-memory corpus."""
        corpus = {"toy": parse_training_text(TRAINING_TEXT, self.factory)}
        genome = calibrate(
            self.factory,
            corpus,
            correlated_features=[('place', 'manner')],
            population_size=4,
            steady_generations=1,
            seed=5,
            max_generations=2
        )

        self.assertEqual(genome.group_sizes(), [2, 2, 1])
        self.assertIsNotNone(genome.fitness)


if __name__ == '__main__':
    unittest.main()
