"""
I/O utilities for phonetic alignment.

Handles training-corpus parsing, word tables, and the CSV/YAML reports
written for alignments, correspondences and calibration runs.

Training corpora are plain text. '%' starts a comment. Blocks are separated
by blank lines; the first block lists one header line per language and fixes
the row count. Every later block has one line per language, each line
holding pipe-separated equivalent alignments of whitespace-separated
symbols:

    % Latin / Italian
    LAT
    ITA

    a m a p a r | a m a p a r
    o m b e r _ | o m b _ e r
"""

import csv
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import yaml

from .correspondences import Correspondence
from .data_models import Alignment, AlignmentResult, GenerationRecord
from .features import SequenceFactory, UnknownSymbolError

COMMENT = re.compile(r"%[^\r\n]*")
BLOCK = re.compile(r"(?:\r\n|\n|\r)[ \t]*(?:\r\n|\n|\r)")
NEWLINES = re.compile(r"\r\n|\n|\r")
PIPE = re.compile(r"\s+\|\s+")

# source -> blocks -> equivalent reference alignments
TrainingCorpus = Dict[str, List[List[Alignment]]]


class CorpusFormatError(ValueError):
    """Raised when a training block does not match the corpus header"""
    pass


def parse_block(lines: List[str], row_count: int, factory: SequenceFactory) -> List[Alignment]:
    """
    Parse one training block into its equivalent reference alignments.

    Args:
        lines: Block lines, one per language
        row_count: Expected number of lines
        factory: Sequence factory resolving symbols

    Returns:
        One Alignment per pipe-separated column

    Raises:
        CorpusFormatError: If line or column counts disagree, or rows are ragged
        UnknownSymbolError: If a symbol is not in the feature model
    """
    if len(lines) != row_count:
        raise CorpusFormatError(f"expected {row_count} rows, found {len(lines)}")

    cells = [PIPE.split(line.strip()) for line in lines]
    width = len(cells[0])
    if any(len(row) != width for row in cells):
        raise CorpusFormatError(f"rows have differing column counts {[len(row) for row in cells]}")

    alignments = []
    for column in range(width):
        rows = []
        for row in cells:
            item = row[column].strip()
            if not item.startswith(factory.anchor_symbol):
                item = f"{factory.anchor_symbol} {item}"
            rows.append([factory.to_segment(token) for token in item.split()])
        try:
            alignments.append(Alignment(rows, factory.gap_segment))
        except ValueError as e:
            raise CorpusFormatError(str(e))

    return alignments


def parse_training_text(text: str, factory: SequenceFactory, source: str = "<text>") -> List[List[Alignment]]:
    """
    Parse training text into blocks of reference alignments.

    Malformed blocks and blocks with unknown symbols are reported and skipped.

    Args:
        text: Corpus content
        factory: Sequence factory resolving symbols
        source: Name used in warnings

    Returns:
        List of blocks, each a list of equivalent reference alignments
    """
    row_count = 0
    blocks = []

    for block_idx, block in enumerate(BLOCK.split(text)):
        block = COMMENT.sub("", block).strip()
        if not block:
            continue

        lines = [line for line in NEWLINES.split(block) if line.strip()]

        # Header block: one line per language
        if row_count == 0:
            row_count = len(lines)
            continue

        try:
            blocks.append(parse_block(lines, row_count, factory))
        except (CorpusFormatError, UnknownSymbolError) as e:
            print(f"Warning: skipping block {block_idx} in {source}: {e}")

    return blocks


def load_training_file(path: Union[str, Path], factory: SequenceFactory) -> List[List[Alignment]]:
    """
    Load a training corpus file.

    Args:
        path: Path to corpus file
        factory: Sequence factory resolving symbols

    Returns:
        Parsed blocks

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Training file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        text = f.read()

    return parse_training_text(text, factory, source=str(path))


def _prepare_output(output_path: Union[str, Path], overwrite: bool, label: str) -> Path:
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"{label} already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def save_generation_log(
    history: Iterable[GenerationRecord],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save calibration generation records to CSV file.

    Args:
        history: GenerationRecord objects in generation order
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved log

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _prepare_output(output_path, overwrite, "Generation log")

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        fieldnames = ['generation', 'population_size', 'best_fitness', 'worst_fitness',
                      'mean_fitness', 'best_parameters', 'timestamp']
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        for record in history:
            writer.writerow(record.to_dict())

    return output_path


def save_alignments(
    results: Iterable[AlignmentResult],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save alignment results to CSV, one line per optimal alignment.

    Args:
        results: Alignment results
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _prepare_output(output_path, overwrite, "Alignment file")

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['left', 'right', 'score', 'rank', 'aligned_left', 'aligned_right'])

        for result in results:
            for rank, alignment in enumerate(result.alignments, start=1):
                top, bottom = alignment.pretty_rows()
                writer.writerow([str(result.left), str(result.right),
                                 f"{result.score:.6g}", rank, top, bottom])

    return output_path


def save_parameters(
    parameters: dict,
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save calibrated parameters to a YAML file.

    Args:
        parameters: Parameter dictionary
        output_path: Path for output YAML
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _prepare_output(output_path, overwrite, "Parameter file")

    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.dump(parameters, f, default_flow_style=False, sort_keys=False)

    return output_path


def load_word_table(
    path: Union[str, Path],
    columns: Optional[List[str]] = None,
    delimiter: str = "\t"
) -> Dict[str, List[str]]:
    """
    Load a word table: a header of language names, then one cognate set per row.

    Args:
        path: Path to the delimited table
        columns: Columns to keep, in order; all columns when None
        delimiter: Cell delimiter

    Returns:
        Column name -> cell texts, rows in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        CorpusFormatError: If the table is empty or lacks a requested column
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Word table not found: {path}")

    with open(path, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        header = [name.strip() for name in reader.fieldnames or []]
        rows = [{(key or '').strip(): (value or '') for key, value in row.items()} for row in reader]

    if not header:
        raise CorpusFormatError(f"Word table has no header: {path}")

    columns = list(columns) if columns else header
    missing = [name for name in columns if name not in header]
    if missing:
        raise CorpusFormatError(f"Word table {path} has no column(s) {missing}; found {header}")

    return {name: [row.get(name, '').strip() for row in rows] for name in columns}


def save_correspondences(
    correspondences: Iterable[Correspondence],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save correspondences with their contexts to CSV, one line each.

    Args:
        correspondences: Correspondence objects
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = _prepare_output(output_path, overwrite, "Context file")

    fieldnames = ['left_before', 'left', 'left_after', 'right_before', 'right', 'right_after']
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for correspondence in correspondences:
            writer.writerow(correspondence.to_dict())

    return output_path
