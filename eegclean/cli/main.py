"""Main CLI entry point for eegclean."""

import argparse
import sys
from pathlib import Path

from .init_config import init_config_command
from .run import run_command
from .spectrum import spectrum_command


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='eegclean',
        description="eegclean - EEG conditioning, ICA artifact rejection and Welch spectra",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write the default configuration
  eegclean init-config config.yaml

  # Process sessions unattended
  eegclean run raw/sub-01.txt raw/sub-02.txt --output derivatives/

  # Use manual review files (<session>.review.yaml) and resume from checkpoints
  eegclean run raw/*.txt --output derivatives/ --review-dir review/ --resume

  # Recompute the spectrum of a processed session
  eegclean spectrum sub-01 --output derivatives/
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Run command
    run_parser = subparsers.add_parser(
        'run',
        help='Process recordings',
        description='Run the full pipeline on one or more recordings'
    )
    run_parser.add_argument(
        'files',
        type=Path,
        nargs='+',
        help='Input recordings (.txt/.csv/.tsv/.dat exports or .fif)'
    )
    run_parser.add_argument(
        '--output',
        type=Path,
        required=True,
        help='Output directory (one subdirectory per session)'
    )
    run_parser.add_argument(
        '--config',
        type=Path,
        help='Pipeline configuration file (YAML)'
    )
    run_parser.add_argument(
        '--review-dir',
        type=Path,
        help='Directory with <session>.review.yaml files (default: no manual review)'
    )
    run_parser.add_argument(
        '--montage',
        type=Path,
        help='Electrode positions file (default: BioSemi 32-channel cap)'
    )
    run_parser.add_argument(
        '--seed',
        type=int,
        help='ICA random seed (overrides the configuration)'
    )
    run_parser.add_argument(
        '--resume',
        action='store_true',
        help='Reuse pre-/post-rejection checkpoints where available'
    )
    run_parser.add_argument(
        '--log-file',
        type=Path,
        help='Also write the log to this file'
    )
    run_parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Debug logging'
    )

    # Spectrum command
    spectrum_parser = subparsers.add_parser(
        'spectrum',
        help='Recompute the spectrum of a processed session',
        description='Restart spectral estimation from the persisted cleaned recording'
    )
    spectrum_parser.add_argument(
        'session',
        type=str,
        help='Session identifier'
    )
    spectrum_parser.add_argument(
        '--output',
        type=Path,
        required=True,
        help='Output directory used by "run"'
    )
    spectrum_parser.add_argument(
        '--config',
        type=Path,
        help='Pipeline configuration file (YAML)'
    )

    # Init-config command
    init_parser = subparsers.add_parser(
        'init-config',
        help='Write the default configuration',
        description='Write the default pipeline configuration as YAML'
    )
    init_parser.add_argument(
        'path',
        type=Path,
        help='Destination YAML file'
    )
    init_parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite an existing file'
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == 'run':
            exit_code = run_command(args)
        elif args.command == 'spectrum':
            exit_code = spectrum_command(args)
        elif args.command == 'init-config':
            exit_code = init_config_command(args)
        else:
            parser.print_help()
            exit_code = 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
