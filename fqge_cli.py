#!/usr/bin/env python3
"""
Full-stack quality gate (FQGE).

Runs the infrastructure, API, data consistency and performance stages in
order, appends a report to the report file and exits 0 only if every stage
passed.

Usage:
  python fqge_cli.py
  python fqge_cli.py --mode simulated
  python fqge_cli.py 1001 --stages data_consistency
  python fqge_cli.py --config gate.yaml --log-file reports/fqge_report.log
"""

from __future__ import annotations

import argparse
import signal
import sys
from typing import List, Optional

from cli.args.base import add_base_args
from cli.commands.gate import run_gate, run_list_stages


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Full-stack quality gate: infrastructure, API, data, performance.")
    add_base_args(parser)
    return parser.parse_args(argv)


def _raise_keyboard_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt(f"signal {signum}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.list_stages:
        return run_list_stages()

    # CI cancellation (SIGTERM) takes the same path as Ctrl-C.
    previous = signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        return run_gate(args)
    except KeyboardInterrupt:
        print("fqge: cancelled", file=sys.stderr)
        return 1
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)


if __name__ == "__main__":
    raise SystemExit(main())
