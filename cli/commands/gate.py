from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Dict, Optional

from pipeline.framework import list_stages, parse_stage_names, run_pipeline
from pipeline.report import render_report, stage_letters, write_report
from pipeline.wiring import build_gate, configure_logging, load_env_file
from quality_gate.domain import ConfigError

logger = logging.getLogger(__name__)

EXIT_USAGE = 2

_ORDER_ID_RE = re.compile(r"^[0-9]+$")


def seed_values_from_args(order_id: Optional[str]) -> Dict[str, str]:
    if order_id is None or not str(order_id).strip():
        return {}
    value = str(order_id).strip()
    if not _ORDER_ID_RE.match(value):
        raise ConfigError(f"Invalid ORDER_ID {order_id!r}: expected a numeric order id")
    return {"order_id": value}


def run_list_stages() -> int:
    for s in list_stages():
        print(f"{s.name:<18} {s.description}")
    return 0


def _overrides_from_args(args) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.log_file:
        overrides["log_file"] = args.log_file
    return overrides


def run_gate(args) -> int:
    """Resolve configuration, run the selected stages and write the report.

    Returns the process exit code: 0 approved, 1 rejected or cancelled,
    2 configuration/usage error.
    """
    try:
        if args.env_file:
            env_path = Path(args.env_file)
            if not env_path.exists():
                raise ConfigError(f"Env file not found: {env_path}")
            load_env_file(env_path)
        else:
            load_env_file()

        stage_names = parse_stage_names(args.stages)
        seed = seed_values_from_args(args.order_id)
        gate = build_gate(
            config_path=Path(args.config_path) if args.config_path else None,
            overrides=_overrides_from_args(args),
            stage_names=stage_names,
        )
    except ConfigError as e:
        print(f"fqge: configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    log_file = Path(gate.settings.log_file)
    configure_logging(log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    logger.info("Starting FQGE Quality Gate")
    logger.info("Mode: %s; stages: %s", gate.settings.mode.value, ", ".join(stage_names))

    report = run_pipeline(gate.definitions, ctx=gate.context, seed_values=seed)

    text = render_report(
        report,
        log_file=log_file,
        letters=stage_letters(gate.definitions),
        mode=gate.settings.mode,
    )
    sys.stdout.write(text)
    sys.stdout.flush()
    write_report(text, log_file)

    if report.approved:
        logger.info("All stages passed")
    else:
        logger.error("Quality gate rejected: %s", ", ".join(r.name for r in report.stage_results if not r.passed))
    return report.exit_code
