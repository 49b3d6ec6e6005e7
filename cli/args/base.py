from __future__ import annotations

import argparse

from pipeline.config import GateSettings
from pipeline.framework import DEFAULT_STAGE_ORDER
from quality_gate.domain import ExecutionMode


def add_base_args(parser: argparse.ArgumentParser) -> None:
    """Register the gate's CLI flags.

    This includes:
    - the optional seed value for the data consistency stage
    - execution mode (live vs simulated)
    - configuration sources (YAML file, .env file)
    - stage selection and report location
    """

    parser.add_argument(
        "order_id",
        nargs="?",
        default=None,
        help=(
            "Numeric order id to validate in the data consistency stage. Only used when the api stage is "
            "not selected; otherwise the id created by the api stage is used."
        ),
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ExecutionMode],
        default=None,
        help=(
            "live = missing tools/metrics fail the stage, simulated = documented defaults stand in "
            "(default: GATE_MODE or live)"
        ),
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Optional YAML file with settings/thresholds (environment variables still win).",
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        default=None,
        help="Load KEY=VALUE pairs from this file (default: .env at the repo root, if present).",
    )
    parser.add_argument(
        "--stages",
        default=None,
        help=f"Comma-separated subset of stages to run, in pipeline order (default: {','.join(DEFAULT_STAGE_ORDER)})",
    )
    parser.add_argument(
        "--log-file",
        dest="log_file",
        default=None,
        help=f"Append-only report file (default: LOG_FILE or {GateSettings.log_file})",
    )
    parser.add_argument(
        "--list-stages",
        action="store_true",
        help="List the available stages and exit.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Also log executed commands (debug level).",
    )
