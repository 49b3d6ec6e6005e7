from __future__ import annotations

import logging
import traceback
from typing import Dict, List, Mapping, Optional, Sequence, Set

from quality_gate.domain import (
    ErrorKind,
    PipelineReport,
    StageDefinition,
    StageResult,
    StageStatus,
)

from .context import CarriedValues, GateContext
from .executor import execute_stage

logger = logging.getLogger(__name__)


def plan_results(definitions: Sequence[StageDefinition]) -> List[StageResult]:
    """One PENDING result per stage, in execution order."""
    return [StageResult(name=d.name, label=d.label or d.name) for d in definitions]


def check_order(definitions: Sequence[StageDefinition], *, seeded: Sequence[str] = ()) -> List[str]:
    """Pre-flight: warn about stages that require values only produced later."""
    warnings: List[str] = []
    available: Set[str] = set(seeded)
    for i, d in enumerate(definitions):
        later: Set[str] = set()
        for sd in definitions[i + 1 :]:
            later.update(sd.produces)
        wrong_order = [k for k in d.requires if k not in available and k in later]
        if wrong_order:
            warnings.append(
                f"deps: stage '{d.name}' requires values produced later in the pipeline: {wrong_order}"
            )
        available.update(d.produces)
    return warnings


def seed_carried_values(
    definitions: Sequence[StageDefinition],
    seed_values: Optional[Mapping[str, str]],
) -> CarriedValues:
    """Seed values only stand in for producers that are not part of this run."""
    carried = CarriedValues()
    producers: Dict[str, str] = {}
    for d in definitions:
        for p in d.produces:
            producers.setdefault(p, d.name)

    for key, value in (seed_values or {}).items():
        if value is None or str(value).strip() == "":
            continue
        if key in producers:
            logger.info("Ignoring supplied %s; stage '%s' produces it in this run", key, producers[key])
            continue
        carried.put(key, str(value).strip(), source="seed")
        logger.info("Using supplied %s=%s", key, str(value).strip())
    return carried


def _cancel_remaining(results: Sequence[StageResult]) -> None:
    for r in results:
        if not r.status.is_terminal:
            r.complete(StageStatus.FAIL, reason="Cancelled", error_kind=ErrorKind.CANCELLED)


def run_pipeline(
    definitions: Sequence[StageDefinition],
    *,
    ctx: GateContext,
    seed_values: Optional[Mapping[str, str]] = None,
) -> PipelineReport:
    """Run every stage in order and fold the results into a report.

    Stages keep running after an earlier failure; a stage whose required
    carried value is unavailable fails with ``MissingInput`` without running
    anything. An operator abort (``KeyboardInterrupt``) completes the current
    and all remaining stages as ``Cancelled``.
    """
    carried = seed_carried_values(definitions, seed_values)
    for msg in check_order(definitions, seeded=list(carried.data)):
        logger.warning("%s", msg)

    results = plan_results(definitions)
    cancelled = False

    for defn, result in zip(definitions, results):
        logger.info("Starting %s", defn.label or defn.name)
        try:
            execute_stage(defn, result, ctx=ctx, carried=carried)
        except KeyboardInterrupt:
            cancelled = True
            logger.warning("Run cancelled during %s", defn.label or defn.name)
            break
        except Exception as e:
            # Unexpected stage errors still end as FAIL.
            logger.error("%s: internal error: %s", defn.name, e)
            logger.debug("%s", traceback.format_exc(limit=50))
            if not result.status.is_terminal:
                result.complete(StageStatus.FAIL, reason=f"internal error: {e}", error_kind=ErrorKind.EXECUTION)

        if result.passed:
            logger.info("%s PASSED", defn.label or defn.name)
        else:
            logger.error("%s FAILED: %s", defn.label or defn.name, result.reason)

    if cancelled:
        _cancel_remaining(results)

    return PipelineReport.from_results(results, cancelled=cancelled)
