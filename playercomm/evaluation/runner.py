#!/usr/bin/env python3
"""
Latency benchmark runner for player communication.

Usage:
    python -m playercomm.evaluation.runner [--rounds N] [--transport both]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..channel import ChannelError
from ..utils.log import configure_logging
from .benchmark import run_latency_benchmarks
from .results import new_run_root, write_results
from .sysinfo import capture_system_info

logger = logging.getLogger(__name__)

TRANSPORTS = {
    'in-process': ['in-process'],
    'network': ['network'],
    'both': ['in-process', 'network'],
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='playercomm-benchmark',
                                     description='Player exchange latency benchmarks')
    parser.add_argument('--rounds', type=int, default=100,
                        help='Messages per player (default: 100)')
    parser.add_argument('--transport', choices=sorted(TRANSPORTS), default='both',
                        help='Transport(s) to benchmark (default: both)')
    parser.add_argument('--port', type=int, default=0,
                        help='TCP port for the network benchmark (default: any free port)')
    parser.add_argument('--output-dir', type=str, default='results',
                        help='Directory for timestamped result folders (default: results)')
    parser.add_argument('--format', choices=['csv', 'json', 'both'], default='both',
                        help='Output format for data files')
    parser.add_argument('--verbose', action='store_true', help='Log every message exchanged')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    configure_logging(args.verbose)
    if not args.verbose:
        logging.getLogger('playercomm.player').setLevel(logging.WARNING)

    if args.rounds <= 0:
        logger.error("--rounds must be positive")
        return 1

    try:
        results = run_latency_benchmarks(args.rounds, TRANSPORTS[args.transport], args.port)
    except ChannelError as e:
        logger.error(f"Benchmark could not connect: {e}")
        return 1

    run_root = new_run_root(Path(args.output_dir))
    written = write_results(run_root, results, capture_system_info(), args.format)

    for result in results:
        print(f"{result.transport:>10}: {result.rounds} rounds, "
              f"mean {result.mean_us:.1f} us, p95 {result.p95_us:.1f} us")
    print(f"Results written to {run_root} ({len(written)} files)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
