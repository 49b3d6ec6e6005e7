"""pipeline.wiring

This module is the **composition root** for the Python runtime.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load configuration / environment variables
- configure logging
- choose real vs stub runners (useful for testing)
- build the stage definitions for this run

Keeping this wiring in one place prevents configuration and dependency setup
from being duplicated across entrypoints (CLI, scripts, CI).
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from dotenv import load_dotenv

import pipeline.stages  # noqa: F401  (registers builtin stages)
from pipeline.config import GateSettings, load_settings
from pipeline.framework import DEFAULT_STAGE_ORDER, GateContext, build_stage_definitions
from quality_gate.domain import StageDefinition

ROOT_DIR: Path = Path(__file__).resolve().parents[1]
ENV_PATH: Path = ROOT_DIR / ".env"

LOG_FORMAT = "%(asctime)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so repeated runs in one process replace them.
_HANDLER_TAG = "_fqge_handler"


def load_env_file(dotenv_path: Optional[Path] = None) -> bool:
    """Load ``.env`` into ``os.environ`` without overriding exported variables."""
    p = Path(dotenv_path) if dotenv_path is not None else ENV_PATH
    if not p.exists():
        return False
    return bool(load_dotenv(p, override=False))


def configure_logging(log_file: Optional[Path], *, level: int = logging.INFO) -> None:
    """Timestamped lines on stdout, mirrored (appended) into the report file."""
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        p = Path(log_file)
        p.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(p, mode="a", encoding="utf-8"))

    for h in handlers:
        h.setFormatter(formatter)
        setattr(h, _HANDLER_TAG, True)
        root.addHandler(h)
    root.setLevel(level)


@dataclass(frozen=True)
class Gate:
    """Everything one run needs, assembled once."""

    settings: GateSettings
    context: GateContext
    definitions: List[StageDefinition]


def build_gate(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    stage_names: Sequence[str] = DEFAULT_STAGE_ORDER,
    env: Optional[Mapping[str, str]] = None,
    context: Optional[GateContext] = None,
) -> Gate:
    """Resolve settings and build the stage definitions for this run.

    ``context`` lets tests inject fake runners; its settings are replaced by the
    ones resolved here.
    """
    settings = load_settings(env=env, config_path=config_path, overrides=overrides)
    if context is None:
        ctx = GateContext(settings=settings)
    else:
        ctx = GateContext(settings=settings, cmd_runner=context.cmd_runner, http_runner=context.http_runner)
    return Gate(settings=settings, context=ctx, definitions=build_stage_definitions(settings, stage_names))
