"""
Orchestration module for phonetic alignment.

Implements the align and calibrate run workflows.
"""

from itertools import combinations
from typing import Dict, List, Optional, Tuple
from pathlib import Path
import numpy as np

from .config_loader import (
    create_aligner_from_config,
    create_calibrator_from_config,
    create_factory_from_config,
)
from .correspondences import collect_correspondences
from .data_models import Sequence
from .features import SequenceFactory, UnknownSymbolError
from .io_utils import (
    load_word_table,
    save_alignments,
    save_correspondences,
    save_generation_log,
    save_parameters,
)


def _setup_seed(run_config: Dict) -> int:
    seed = run_config.get('random_seed')
    if seed is None or seed == 'random':
        seed = int(np.random.randint(0, 2**31))
    print(f"Random seed: {seed}")
    return int(seed)


def _prepare_output_root(run_config: Dict) -> Path:
    output_root = Path(run_config['output']['root'])
    overwrite = run_config['output'].get('overwrite', False)

    if output_root.exists() and not overwrite:
        raise FileExistsError(
            f"Output directory already exists: {output_root}\n"
            f"Set 'output.overwrite: true' in config to overwrite"
        )

    output_root.mkdir(parents=True, exist_ok=overwrite)
    print(f"Output directory: {output_root}\n")
    return output_root


def _anchored_sequence(factory: SequenceFactory, text: str) -> Sequence:
    """Sequence for a table cell, with the anchor prefixed when missing."""
    text = text.strip()
    if not text.startswith(factory.anchor_symbol):
        separator = " " if any(char.isspace() for char in text) else ""
        text = f"{factory.anchor_symbol}{separator}{text}"
    return factory.to_sequence(text)


def table_pairs(
    table: Dict[str, List[str]],
    factory: SequenceFactory
) -> Dict[str, List[Tuple[Sequence, Sequence]]]:
    """
    Word pairs for every pair of table columns.

    Rows with an empty cell are skipped, as are rows with unknown symbols
    (with a warning).

    Args:
        table: Column name -> cell texts, as loaded by load_word_table
        factory: Sequence factory resolving symbols

    Returns:
        "first-second" key -> (left, right) sequence pairs in row order
    """
    groups = {}
    for first, second in combinations(table, 2):
        key = f"{first}-{second}"
        pairs = []
        for row, (left_text, right_text) in enumerate(zip(table[first], table[second]), start=1):
            if not left_text or not right_text:
                continue
            try:
                pairs.append((_anchored_sequence(factory, left_text), _anchored_sequence(factory, right_text)))
            except UnknownSymbolError as e:
                print(f"Warning: skipping row {row} of {key}: {e}")
        groups[key] = pairs
    return groups


def run_align_mode(run_config: Dict) -> None:
    """
    Align configured word pairs and extract sound correspondences.

    Args:
        run_config: Run configuration dict from YAML

    Algorithm:
        1. Load feature model and build the sequence factory
        2. Build the aligner from run_config['aligner']
        3. Collect pairs from run_config['input']['pairs'] and, with
           run_config['input']['table'], from every pair of table columns
        4. Align each pair and print every optimal alignment
        5. Save alignments.csv / alignments_<A>-<B>.csv and, unless
           output.contexts is false, contexts.csv / contexts_<A>-<B>.csv

    Returns:
        None (writes to disk)
    """
    print("=" * 70)
    print("ALIGN MODE")
    print("=" * 70)

    print(f"Loading feature model from: {run_config['feature_model']}")
    factory = create_factory_from_config(run_config)
    aligner = create_aligner_from_config(run_config.get('aligner', {}), factory)
    print(f"Aligner: {aligner!r}")

    groups: Dict[str, List[Tuple[Sequence, Sequence]]] = {}
    if run_config['input'].get('pairs'):
        groups[''] = [
            (factory.to_sequence(str(left)), factory.to_sequence(str(right)))
            for left, right in run_config['input']['pairs']
        ]
    table_config = run_config['input'].get('table')
    if table_config:
        print(f"Loading word table from: {table_config['path']}")
        table = load_word_table(
            table_config['path'],
            table_config.get('columns'),
            table_config.get('delimiter', "\t")
        )
        groups.update(table_pairs(table, factory))

    output_root = _prepare_output_root(run_config)
    overwrite = run_config['output'].get('overwrite', False)
    write_contexts = run_config['output'].get('contexts', True)
    boundary = factory.anchor_segment()

    written = []
    total = 0
    for key, pairs in groups.items():
        suffix = f"_{key}" if key else ""
        if key:
            print(f"\n--- {key}: {len(pairs)} pairs ---")

        results = []
        for left, right in pairs:
            result = aligner(left, right)
            results.append(result)

            print(f"{left} / {right}: score {result.score:.3f}, "
                  f"{len(result.alignments)} optimal alignment(s)")
            for alignment in result.alignments:
                for row in alignment.pretty_rows():
                    print(f"    {row}")
                print()
        total += len(results)

        written.append(save_alignments(results, output_root / f"alignments{suffix}.csv", overwrite=overwrite))
        if write_contexts:
            correspondences = collect_correspondences(results, boundary)
            print(f"Correspondences{' ' + key if key else ''}: {len(correspondences)}")
            written.append(save_correspondences(
                correspondences, output_root / f"contexts{suffix}.csv", overwrite=overwrite
            ))

    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    print(f"Aligned: {total} pairs")
    for path in written:
        print(f"Saved: {path}")


def run_calibrate_mode(run_config: Dict) -> None:
    """
    Calibrate aligner parameters against training corpora.

    Args:
        run_config: Run configuration dict from YAML

    Algorithm:
        1. Load feature model and build the sequence factory
        2. Setup RNG seed
        3. Load training files (unreadable files are skipped)
        4. Run the evolutionary search
        5. Save generation log, best parameters, best-alignment report
           and optionally the fitness plot to output_root

    Returns:
        None (writes to disk)
    """
    print("=" * 70)
    print("CALIBRATE MODE")
    print("=" * 70)

    print(f"Loading feature model from: {run_config['feature_model']}")
    factory = create_factory_from_config(run_config)
    seed = _setup_seed(run_config)

    calibrator = create_calibrator_from_config(run_config, factory, seed=seed)
    output_root = _prepare_output_root(run_config)
    overwrite = run_config['output'].get('overwrite', False)

    result = calibrator.run(verbose=True)
    codec = calibrator.codec
    comparator, gap_penalty = codec.decode_parts(result.best_genome)

    log_path = save_generation_log(result.history, output_root / "generation_log.csv", overwrite=overwrite)
    parameters_path = save_parameters(
        {
            'fitness': float(result.best_fitness),
            'generations': result.generations,
            'random_seed': seed,
            'genome': [group.tolist() for group in result.best_genome.groups],
            'gap_penalty': {
                'type': 'convex',
                'open': gap_penalty.open_penalty,
                'grow': gap_penalty.grow_penalty,
                'extras': list(gap_penalty.extras),
            },
            'weights': comparator.weights.tolist(),
            'correlations': [
                {'features': list(names), 'weight': weight}
                for names, (_, weight) in zip(codec.correlated_features,
                                              getattr(comparator, 'sparse_weights', []))
            ],
        },
        output_root / "best_parameters.yaml",
        overwrite=overwrite
    )
    report_path = calibrator.write_best_alignments(
        result.algorithm,
        output_root / "best_alignments.csv",
        overwrite=overwrite
    )

    plot_path: Optional[Path] = None
    if run_config['output'].get('plot', False):
        from .visualization import plot_fitness_history
        plot_path = plot_fitness_history(result.history, output_root / "fitness_history.png")

    print()
    print("=" * 70)
    print("OUTPUTS")
    print("=" * 70)
    print(f"Generation log: {log_path}")
    print(f"Best parameters: {parameters_path}")
    print(f"Alignment report: {report_path}")
    if plot_path is not None:
        print(f"Fitness plot: {plot_path}")
