#!/usr/bin/env python3
"""
phonalign - align phonetic transcriptions and calibrate alignment scoring.

Usage:
    python3 align_cli.py [--check] RUN_CONFIG.yaml

Options:
    --check      Validate RUN_CONFIG.yaml and exit without aligning
    -h, --help   Show this message

The run config selects the mode:
    mode: align       input.pairs and/or input.table (a TSV word table);
                      writes alignments*.csv and contexts*.csv
    mode: calibrate   input.training_files plus a calibration section;
                      writes generation_log.csv, best_parameters.yaml,
                      best_alignments.csv and optionally fitness_history.png

Examples:
    python3 align_cli.py examples/align_run.yaml
    python3 align_cli.py examples/align_table_run.yaml
    python3 align_cli.py --check examples/calibrate_run.yaml
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def parse_args(argv):
    """Return (config_path, check_only), or None when usage should be shown."""
    args = list(argv)
    check_only = '--check' in args
    args = [arg for arg in args if arg != '--check']

    if len(args) != 1 or args[0] in ('-h', '--help'):
        return None
    return args[0], check_only


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    parsed = parse_args(argv)
    if parsed is None:
        print(__doc__)
        sys.exit(0 if any(arg in ('-h', '--help') for arg in argv) else 1)

    config_path, check_only = parsed

    try:
        from phonalign.cli import load_run_config, run_from_config, validate_run_config
        if check_only:
            validate_run_config(load_run_config(config_path))
            print(f"Configuration OK: {config_path}")
        else:
            run_from_config(config_path)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
