"""
ctgranger Command Line Interface

Usage:
    python -m ctgranger <command> [args]

Commands:
    simulate    Draw one signal pair from the model and write it as CSV
    test        Run the bootstrap Granger test on a CSV of signals

Examples:
    python -m ctgranger simulate --theta 20 20 1 1 0.8 0 10 0 \\
        --times 0 5 10 15 20 30 45 60 90 120 --seed 223 -o sim.csv
    python -m ctgranger test --input sim.csv --alternative stor --replicates 100

The input CSV for `test` needs the columns time, root and shoot. Signals
must already be detrended and standardized.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import polars as pl

from ctgranger.config import get_config, load_config
from ctgranger.exceptions import GrangerError
from ctgranger.inference.granger import granger_test
from ctgranger.model.simulate import sim_proc

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('time', 'root', 'shoot')


def _error(message: str) -> int:
    """Print error and return a failing exit code."""
    print(f"ERROR: {message}", file=sys.stderr)
    return 1


def _confirm_overwrite(path: Path, assume_yes: bool) -> bool:
    """Ask before overwriting an existing output file."""
    if assume_yes or not path.exists():
        return True
    print(f"WARNING: Output file '{path}' already exists.")
    try:
        response = input("   Overwrite? [y/N]: ")
    except EOFError:
        print("   Running non-interactively; use -y/--yes to overwrite.", file=sys.stderr)
        return False
    return response.lower() == 'y'


def read_signals(path: Path) -> pl.DataFrame:
    """Read a signals CSV and check its columns."""
    df = pl.read_csv(path)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise GrangerError(f"{path} is missing columns {missing}; found {df.columns}")
    return df.select([pl.col(c).cast(pl.Float64) for c in REQUIRED_COLUMNS]).sort('time')


# ============================================================
# COMMANDS
# ============================================================

def cmd_simulate(args) -> int:
    """Simulate one signal pair."""
    try:
        sim = sim_proc(args.theta, args.times, random_state=args.seed)
    except GrangerError as e:
        return _error(str(e))

    df = pl.DataFrame({'time': sim.times, 'root': sim.root, 'shoot': sim.shoot})

    if args.output is None:
        print(df.write_csv(), end='')
        return 0

    output = Path(args.output)
    if not _confirm_overwrite(output, args.yes):
        print("   Aborted.")
        return 1
    df.write_csv(output)
    logger.info(f"Wrote {len(df)} simulated observations to {output}")
    return 0


def cmd_test(args) -> int:
    """Run the Granger test."""
    input_path = Path(args.input)
    if not input_path.exists():
        return _error(f"Input file not found: {input_path}")

    try:
        config = load_config(args.config) if args.config else get_config()
        df = read_signals(input_path)
        result = granger_test(
            df['root'].to_numpy(),
            df['shoot'].to_numpy(),
            df['time'].to_numpy(),
            alternative=args.alternative,
            H=args.replicates,
            seed=args.seed,
            showprogress=not args.quiet,
            config=config,
        )
    except (GrangerError, FileNotFoundError) as e:
        return _error(str(e))
    except pl.exceptions.PolarsError as e:
        return _error(f"Could not read signals from {input_path}: {e}")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.summary())

    if args.bootstrap_output:
        result.bootstrap.to_frame().write_csv(args.bootstrap_output)
        logger.info(f"Wrote bootstrap statistics to {args.bootstrap_output}")
    return 0


# ============================================================
# MAIN
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ctgranger',
        description='Granger causality for irregularly sampled signal pairs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m ctgranger simulate --theta 20 20 1 1 0.8 0 10 0 --times 0 5 10 15 20 30 45 60 90 120
    python -m ctgranger test --input signals.csv --alternative stor
        """,
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Debug logging',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # simulate command
    sim_parser = subparsers.add_parser(
        'simulate',
        help='Simulate one signal pair',
    )
    sim_parser.add_argument(
        '--theta',
        type=float,
        nargs=8,
        required=True,
        metavar='V',
        help='phi_root phi_shoot sigma2_root sigma2_shoot psi_root psi_shoot gamma_root gamma_shoot',
    )
    sim_parser.add_argument(
        '--times',
        type=float,
        nargs='+',
        required=True,
        metavar='T',
        help='Strictly increasing time points',
    )
    sim_parser.add_argument('--seed', type=int, default=None, help='Random seed')
    sim_parser.add_argument(
        '-o', '--output',
        default=None,
        metavar='FILE',
        help='[OUTPUT] CSV path (default: stdout)',
    )
    sim_parser.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Overwrite existing output without asking',
    )

    # test command
    test_parser = subparsers.add_parser(
        'test',
        help='Run the bootstrap Granger test',
    )
    test_parser.add_argument(
        '-i', '--input',
        required=True,
        metavar='FILE',
        help='[INPUT] CSV with columns time, root, shoot',
    )
    test_parser.add_argument(
        '-a', '--alternative',
        default='twodir',
        choices=['twodir', 'rtos', 'stor'],
        help='Alternative hypothesis (default: twodir)',
    )
    test_parser.add_argument(
        '-H', '--replicates',
        type=int,
        default=100,
        help='Bootstrap replicates (default: 100)',
    )
    test_parser.add_argument('--seed', type=int, default=123, help='Bootstrap seed (default: 123)')
    test_parser.add_argument('--config', default=None, metavar='FILE', help='YAML config overrides')
    test_parser.add_argument('--json', action='store_true', help='Print result as JSON')
    test_parser.add_argument(
        '--bootstrap-output',
        default=None,
        metavar='FILE',
        help='[OUTPUT] CSV of per-replicate statistics',
    )
    test_parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress output',
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """ctgranger CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        'simulate': cmd_simulate,
        'test': cmd_test,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
