"""pipeline.framework

A small stage framework for the quality gate.

- **GateContext (ctx)**: an immutable job packet (settings, runners)
- **CarriedValues**: values handed from one stage to a later one
- **Stages**: builders registered with :func:`register_stage` that turn
  settings into a frozen :class:`~quality_gate.domain.StageDefinition`
- **Executor / runner**: run one stage, then the whole ordered pipeline

Importing :mod:`pipeline.stages` registers the builtin stages.
"""

from .context import CarriedValues, GateContext
from .executor import execute_stage
from .registry import (
    DEFAULT_STAGE_ORDER,
    build_stage_definitions,
    get_stage,
    list_stages,
    parse_stage_names,
    register_stage,
)
from .runner import run_pipeline

__all__ = [
    "CarriedValues",
    "DEFAULT_STAGE_ORDER",
    "GateContext",
    "build_stage_definitions",
    "execute_stage",
    "get_stage",
    "list_stages",
    "parse_stage_names",
    "register_stage",
    "run_pipeline",
]
