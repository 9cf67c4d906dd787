"""
CLI module for phonetic alignment.

Handles run configuration loading, validation, and mode dispatching.
"""

from typing import Dict, Any
from pathlib import Path
import yaml

from .config_loader import ALGORITHMS, COMPARATOR_TYPES, GAP_PENALTY_TYPES, OPTIMIZATIONS

MODES = ['align', 'calibrate']


class ConfigValidationError(Exception):
    """Raised when run configuration is invalid."""
    pass


def load_run_config(config_path: str) -> Dict[str, Any]:
    """
    Load run configuration from YAML file.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        Dictionary containing run configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if config is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration must be a mapping")

    return config


def validate_run_config(config: Dict[str, Any]) -> None:
    """
    Validate run configuration structure.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    # Check mode field
    if 'mode' not in config:
        raise ConfigValidationError("Missing required field: 'mode'")

    mode = config['mode']
    if mode not in MODES:
        raise ConfigValidationError(
            f"Invalid mode: '{mode}'. Must be 'align' or 'calibrate'"
        )

    # Check common required fields
    required_common = ['feature_model', 'input', 'output']
    for field in required_common:
        if field not in config:
            raise ConfigValidationError(f"Missing required field: '{field}'")

    model_path = Path(config['feature_model'])
    if not model_path.exists():
        raise ConfigValidationError(f"Feature model not found: {model_path}")

    # Validate input section
    if not isinstance(config['input'], dict):
        raise ConfigValidationError("'input' must be a dictionary")

    # Validate output section
    if not isinstance(config['output'], dict):
        raise ConfigValidationError("'output' must be a dictionary")

    if 'root' not in config['output']:
        raise ConfigValidationError("Missing required field: 'output.root'")

    if 'sequences' in config and not isinstance(config['sequences'], dict):
        raise ConfigValidationError("'sequences' must be a dictionary")

    # Mode-specific validation
    if mode == 'align':
        _validate_align_config(config)
    elif mode == 'calibrate':
        _validate_calibrate_config(config)


def _validate_align_config(config: Dict[str, Any]) -> None:
    """
    Validate align mode configuration.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    pairs = config['input'].get('pairs')
    table = config['input'].get('table')
    if not pairs and not table:
        raise ConfigValidationError("Align mode requires 'input.pairs' or 'input.table'")

    if pairs is not None:
        if not isinstance(pairs, list):
            raise ConfigValidationError("'input.pairs' must be a list")
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ConfigValidationError(
                    f"Each entry of 'input.pairs' must be a [left, right] pair, got: {pair}"
                )

    if table is not None:
        _validate_table_config(table)

    aligner = config.get('aligner', {})
    if not isinstance(aligner, dict):
        raise ConfigValidationError("'aligner' must be a dictionary")

    algorithm = aligner.get('algorithm', 'needleman_wunsch')
    if algorithm not in ALGORITHMS:
        raise ConfigValidationError(
            f"Invalid 'aligner.algorithm': '{algorithm}'. Must be one of {list(ALGORITHMS)}"
        )

    optimization = aligner.get('optimization', 'min')
    if optimization not in OPTIMIZATIONS:
        raise ConfigValidationError(
            f"Invalid 'aligner.optimization': '{optimization}'. Must be 'min' or 'max'"
        )

    comparator = aligner.get('comparator', {}) or {}
    if comparator.get('type', 'feature_difference') not in COMPARATOR_TYPES:
        raise ConfigValidationError(
            f"Invalid 'aligner.comparator.type': '{comparator.get('type')}'. "
            f"Must be one of {COMPARATOR_TYPES}"
        )

    gap_penalty = aligner.get('gap_penalty', {}) or {}
    if gap_penalty.get('type', 'convex') not in GAP_PENALTY_TYPES:
        raise ConfigValidationError(
            f"Invalid 'aligner.gap_penalty.type': '{gap_penalty.get('type')}'. "
            f"Must be one of {GAP_PENALTY_TYPES}"
        )


def _validate_table_config(table: Any) -> None:
    """Validate the 'input.table' section of align mode."""
    if not isinstance(table, dict):
        raise ConfigValidationError("'input.table' must be a dictionary")

    if 'path' not in table:
        raise ConfigValidationError("Missing required field: 'input.table.path'")
    if not Path(table['path']).exists():
        raise ConfigValidationError(f"Word table not found: {table['path']}")

    columns = table.get('columns')
    if columns is not None:
        if not isinstance(columns, list) or len(columns) < 2:
            raise ConfigValidationError(
                f"'input.table.columns' must list at least two columns, got: {columns}"
            )

    delimiter = table.get('delimiter', "\t")
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ConfigValidationError(
            f"'input.table.delimiter' must be a single character, got: {delimiter!r}"
        )


def _validate_calibrate_config(config: Dict[str, Any]) -> None:
    """
    Validate calibrate mode configuration.

    Training files are not checked for existence here; unreadable files
    are skipped when loading.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    files = config['input'].get('training_files')
    if not isinstance(files, list) or not files:
        raise ConfigValidationError("Calibrate mode requires a non-empty 'input.training_files' list")

    section = config.get('calibration', {})
    if not isinstance(section, dict):
        raise ConfigValidationError("'calibration' must be a dictionary")

    positive_ints = ['population_size', 'steady_generations', 'workers', 'elite_count', 'max_generations']
    for key in positive_ints:
        value = section.get(key)
        if value is None:
            continue
        if not isinstance(value, int) or value <= 0:
            raise ConfigValidationError(
                f"'calibration.{key}' must be a positive integer, got: {value}"
            )

    extra_params = section.get('extra_params', 2)
    if not isinstance(extra_params, int) or extra_params < 2:
        raise ConfigValidationError(
            f"'calibration.extra_params' must be an integer >= 2, got: {extra_params}"
        )

    probability = section.get('mutation_probability', 0.2)
    if not isinstance(probability, (int, float)) or not 0.0 <= probability <= 1.0:
        raise ConfigValidationError(
            f"'calibration.mutation_probability' must be in [0, 1], got: {probability}"
        )

    for pair in section.get('correlated_features', []) or []:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ConfigValidationError(
                f"Each entry of 'calibration.correlated_features' must be a pair of names, got: {pair}"
            )


def run_from_config(config_path: str) -> None:
    """
    Load run configuration and execute appropriate mode.

    This is the main entry point called by align_cli.py.

    Args:
        config_path: Path to run configuration YAML file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
        Various exceptions from mode implementations
    """
    # Load and validate config
    print(f"Loading configuration from: {config_path}")
    config = load_run_config(config_path)

    print(f"Validating configuration...")
    validate_run_config(config)

    mode = config['mode']
    print(f"Mode: {mode}\n")

    # Dispatch to appropriate mode
    if mode == 'align':
        from .orchestration import run_align_mode
        run_align_mode(config)
    elif mode == 'calibrate':
        from .orchestration import run_calibrate_mode
        run_calibrate_mode(config)
    else:
        # Should never reach here due to validation
        raise ConfigValidationError(f"Invalid mode: {mode}")

    print("\nRun completed successfully!")
