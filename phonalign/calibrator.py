"""
Evolutionary calibration of alignment parameters.

Searches for the genome whose decoded Needleman-Wunsch aligner reproduces
the most human-curated reference alignments. Each generation:
1. Evaluate every genome (optionally on a thread pool)
2. Keep the top-K genomes unchanged (elitism)
3. Refill the population with Gaussian mutations of the elites

The search stops once the best fitness has not improved for
`steady_generations` generations, or at the optional generation cap.
The stopping point depends on the random stream, so reproducible runs need
a fixed seed.
"""

import csv
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from .data_models import Alignment, GenerationRecord, Sequence
from .features import SequenceFactory
from .genome import Genome, GenomeCodec
from .io_utils import TrainingCorpus, load_training_file, parse_training_text
from .mutation import breed_offspring
from .needleman_wunsch import NeedlemanWunschAlgorithm
from .optimization import Optimization
from .selection import rank_by_fitness, select_elites

# (equivalent references, left sequence, right sequence)
TrainingPair = Tuple[List[Alignment], Sequence, Sequence]

STOP_STEADY = "steady"
STOP_LIMIT = "max_generations"


@dataclass
class CalibrationResult:
    """
    Outcome of a calibration run.

    Attributes:
        best_genome: Fittest genome found in any generation
        best_fitness: Its fitness
        algorithm: best_genome decoded into an aligner
        history: One record per generation
        generations: Number of generations evaluated
        stop_reason: STOP_STEADY or STOP_LIMIT
    """
    best_genome: Genome
    best_fitness: float
    algorithm: NeedlemanWunschAlgorithm
    history: List[GenerationRecord] = field(default_factory=list)
    generations: int = 0
    stop_reason: str = ""

    def trace(self) -> str:
        return "\n".join(record.trace_line() for record in self.history)


class Calibrator:
    """
    Evolves alignment parameters against a training corpus.

    The corpus and feature model are loaded before run() and only read
    afterwards, so fitness evaluations can share them across threads.

    Attributes:
        factory: Sequence factory used to parse training data
        codec: Genome <-> aligner mapping
        population_size: Genomes per generation
        elite_count: Genomes carried over unchanged each generation
        steady_generations: Generations without improvement before stopping
        max_generations: Optional hard cap on generations
        mutation_probability: Per-parameter mutation probability
        mutation_scale: Mutation standard deviation as a fraction of the bounds
        workers: Threads used for fitness evaluation (1 = sequential)
        rng: Random number generator driving initialization and mutation
    """

    def __init__(
        self,
        factory: SequenceFactory,
        codec: Optional[GenomeCodec] = None,
        population_size: int = 2000,
        elite_count: Optional[int] = None,
        steady_generations: int = 100,
        max_generations: Optional[int] = None,
        mutation_probability: float = 0.2,
        mutation_scale: float = 0.25,
        workers: int = 1,
        seed: Optional[int] = None
    ):
        if population_size < 2:
            raise ValueError(f"population_size must be at least 2, got {population_size}")
        if elite_count is None:
            elite_count = max(1, population_size // 10)
        if not 1 <= elite_count < population_size:
            raise ValueError(f"elite_count must be in [1, {population_size - 1}], got {elite_count}")
        if steady_generations < 1:
            raise ValueError(f"steady_generations must be positive, got {steady_generations}")
        if max_generations is not None and max_generations < 1:
            raise ValueError(f"max_generations must be positive, got {max_generations}")
        if not 0.0 <= mutation_probability <= 1.0:
            raise ValueError(f"mutation_probability must be in [0, 1], got {mutation_probability}")

        self.factory = factory
        self.codec = codec if codec is not None else GenomeCodec(factory.model, factory.gap_segment)
        self.population_size = population_size
        self.elite_count = elite_count
        self.steady_generations = steady_generations
        self.max_generations = max_generations
        self.mutation_probability = mutation_probability
        self.mutation_scale = mutation_scale
        self.workers = max(1, int(workers))
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self._training_data: TrainingCorpus = {}

    @property
    def training_data(self) -> Mapping[str, List[List[Alignment]]]:
        """Read-only view of source -> blocks of reference alignments."""
        return MappingProxyType(self._training_data)

    def add_blocks(self, source: str, blocks: List[List[Alignment]]) -> None:
        self._training_data[source] = list(blocks)

    def add_text(self, source: str, text: str) -> int:
        """
        Parse training text and add it under the given source name.

        Returns:
            Number of blocks accepted
        """
        blocks = parse_training_text(text, self.factory, source=source)
        self.add_blocks(source, blocks)
        return len(blocks)

    def add_file(self, path: Union[str, Path]) -> bool:
        """
        Load a training file. Unreadable files are reported and skipped.

        Returns:
            True if the file was loaded
        """
        try:
            blocks = load_training_file(path, self.factory)
        except (OSError, UnicodeDecodeError) as e:
            print(f"Warning: skipping training file {path}: {e}")
            return False

        self.add_blocks(str(path), blocks)
        return True

    def training_pairs(self, sources: Optional[Iterable[str]] = None) -> List[TrainingPair]:
        """
        Training pairs with at least two reference rows.

        The unaligned sequences come from the first reference of each block
        with its gaps removed.
        """
        if sources is None:
            sources = self._training_data.keys()

        pairs = []
        for source in sources:
            for references in self._training_data.get(source, []):
                if not references or references[0].row_count() < 2:
                    continue
                sequences = references[0].to_sequences(self.factory.model)
                pairs.append((references, sequences[0], sequences[1]))
        return pairs

    def evaluate(
        self,
        algorithm: NeedlemanWunschAlgorithm,
        pairs: Optional[List[TrainingPair]] = None
    ) -> float:
        """
        Fraction of training pairs whose alignment result contains a reference.

        Returns:
            Fitness in [0, 1]; 0.0 when there are no eligible pairs
        """
        if pairs is None:
            pairs = self.training_pairs()
        if not pairs:
            return 0.0

        correct = 0
        for references, left, right in pairs:
            if algorithm(left, right).contains_any(references):
                correct += 1
        return correct / len(pairs)

    def fitness(self, genome: Genome, pairs: Optional[List[TrainingPair]] = None) -> float:
        return self.evaluate(self.codec.decode(genome), pairs)

    def evaluate_population(self, population: List[Genome]) -> List[float]:
        """
        Evaluate every genome without a cached fitness.

        With workers > 1 the evaluations run on a thread pool; all results
        are collected before returning.

        Returns:
            Fitness per genome, in population order
        """
        pairs = self.training_pairs()
        pending = [genome for genome in population if genome.fitness is None]

        if self.workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                scores = list(pool.map(lambda genome: self.fitness(genome, pairs), pending))
        else:
            scores = [self.fitness(genome, pairs) for genome in pending]

        for genome, score in zip(pending, scores):
            genome.fitness = score

        return [genome.fitness for genome in population]

    def initial_population(self) -> List[Genome]:
        return [self.codec.random_genome(self.rng) for _ in range(self.population_size)]

    def next_generation(self, population: List[Genome], fitnesses: List[float]) -> List[Genome]:
        """Elites plus Gaussian-mutated offspring of the elites."""
        elites = select_elites(population, fitnesses, self.elite_count)
        offspring = breed_offspring(
            elites,
            self.population_size - len(elites),
            self.codec.bounds(),
            self.mutation_probability,
            self.mutation_scale,
            self.rng
        )
        return elites + offspring

    def run(self, verbose: bool = True) -> CalibrationResult:
        """
        Run the evolutionary search.

        Args:
            verbose: Print a trace line per generation

        Returns:
            CalibrationResult with the best genome and per-generation history
        """
        pair_count = len(self.training_pairs())
        if verbose:
            print("=" * 70)
            print("CALIBRATION")
            print("=" * 70)
            print(f"Training sources: {len(self._training_data)}")
            print(f"Training pairs: {pair_count}")
            print(f"Genome groups: {self.codec.group_sizes()}")
            print(f"Population: {self.population_size} (elites: {self.elite_count})")
            print(f"Random seed: {self.seed}")
            print()
        if pair_count == 0:
            print("Warning: no training pairs with at least two rows, every fitness will be 0")

        population = self.initial_population()
        history: List[GenerationRecord] = []
        best: Optional[Genome] = None
        steady = 0
        generation = 0

        while True:
            generation += 1
            fitnesses = self.evaluate_population(population)
            ranking = rank_by_fitness(population, fitnesses)
            leader = population[ranking[0]]

            record = GenerationRecord(
                generation=generation,
                population_size=len(population),
                best_fitness=fitnesses[ranking[0]],
                worst_fitness=fitnesses[ranking[-1]],
                mean_fitness=float(np.mean(fitnesses)),
                best_parameters=self.codec.format_genome(leader)
            )
            history.append(record)
            if verbose:
                print(record.trace_line())

            if best is None or Optimization.MAX.is_better(leader.fitness, best.fitness):
                best = leader.copy()
                steady = 0
            else:
                steady += 1

            if steady >= self.steady_generations:
                stop_reason = STOP_STEADY
                reason = f"no improvement for {steady} generations"
                break
            if self.max_generations is not None and generation >= self.max_generations:
                stop_reason = STOP_LIMIT
                reason = f"reached {self.max_generations} generations"
                break

            population = self.next_generation(population, fitnesses)

        if verbose:
            print()
            print("=" * 70)
            print("SUMMARY")
            print("=" * 70)
            print(f"Stopped: {reason}")
            print(f"Best fitness: {best.fitness:.3f}")
            print(f"Best parameters: {self.codec.format_genome(best)}")

        return CalibrationResult(
            best_genome=best,
            best_fitness=best.fitness,
            algorithm=self.codec.decode(best),
            history=history,
            generations=generation,
            stop_reason=stop_reason
        )

    def write_best_alignments(
        self,
        algorithm: NeedlemanWunschAlgorithm,
        output_path: Union[str, Path],
        sources: Optional[Iterable[str]] = None,
        overwrite: bool = False
    ) -> Path:
        """
        Write a CSV comparing reference and computed alignments.

        Only two-row references are reported. Columns: correct flag (1/0),
        reference rows, then the first computed alignment's rows.

        Raises:
            FileExistsError: If file exists and overwrite=False
        """
        output_path = Path(output_path)

        if output_path.exists() and not overwrite:
            raise FileExistsError(f"Alignment report already exists: {output_path}")

        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['correct', 'left', 'right', 'output_left', 'output_right'])

            for references, left, right in self.training_pairs(sources):
                expected = references[0].pretty_rows()
                if len(expected) != 2:
                    continue
                result = algorithm(left, right)
                computed = result.best().pretty_rows()
                writer.writerow([int(result.contains_any(references))] + expected + computed)

        return output_path


def calibrate(
    factory: SequenceFactory,
    corpus: Mapping[str, List[List[Alignment]]],
    correlated_features: Iterable[Tuple[str, str]] = (),
    extra_params: int = 2,
    population_size: int = 2000,
    steady_generations: int = 100,
    seed: Optional[int] = None,
    verbose: bool = False,
    **options
) -> Genome:
    """
    Calibrate on an already parsed corpus and return the best genome.

    Remaining keyword options are passed to Calibrator.
    """
    codec = GenomeCodec(
        factory.model,
        factory.gap_segment,
        extra_params=extra_params,
        correlated_features=correlated_features
    )
    calibrator = Calibrator(
        factory,
        codec,
        population_size=population_size,
        steady_generations=steady_generations,
        seed=seed,
        **options
    )
    for source, blocks in corpus.items():
        calibrator.add_blocks(source, blocks)

    return calibrator.run(verbose=verbose).best_genome
