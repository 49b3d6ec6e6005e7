"""pipeline.framework.executor

Run one :class:`~quality_gate.domain.StageDefinition` and record the outcome.

Lifecycle
---------
``PENDING -> RUNNING -> {PASS, FAIL}``

Every failure path raises a :class:`~quality_gate.domain.GateError` inside
:func:`execute_stage` and is converted into a ``FAIL`` result in exactly one
place. The only exception that leaves this module is ``KeyboardInterrupt``
(after the result has been completed as ``Cancelled``), so the orchestrator
can stop scheduling further stages.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping

from quality_gate.domain import (
    CommandSpec,
    ErrorKind,
    ExecutionError,
    ExecutionMode,
    GateError,
    MissingInput,
    ParseError,
    StageDefinition,
    StageResult,
    StageStatus,
)
from quality_gate.io import remove_path
from tools.core_cmd import CmdResult
from tools.extractors import derive_metrics, extract_metrics

from pipeline.thresholds import evaluate_rules

from .context import CarriedValues, GateContext

logger = logging.getLogger(__name__)


def _elapsed_ms(t0: float) -> int:
    return int(round((time.monotonic() - t0) * 1000.0))


def render(template: str, values: Mapping[str, str]) -> str:
    """Render a ``{placeholder}`` template; unknown names are a MissingInput."""
    try:
        return template.format_map(values)
    except KeyError as e:
        raise MissingInput([str(e.args[0])]) from None


def _render_body(body: Any, values: Mapping[str, str]) -> Any:
    if isinstance(body, str):
        return render(body, values)
    if isinstance(body, Mapping):
        return {k: _render_body(v, values) for k, v in body.items()}
    if isinstance(body, (list, tuple)):
        return [_render_body(v, values) for v in body]
    return body


def run_command(spec: CommandSpec, *, ctx: GateContext, values: Mapping[str, str]) -> CmdResult:
    """Render one CommandSpec and hand it to the matching runner."""
    timeout = ctx.timeout_for(spec.timeout_seconds)

    if spec.kind == "http":
        return ctx.http_runner(
            spec.method,
            render(str(spec.url), values),
            json_body=_render_body(spec.json_body, values) if spec.json_body is not None else None,
            timeout_seconds=timeout,
            mode=ctx.mode,
        )

    for template in spec.cleanup_paths:
        path = render(template, values)
        try:
            if remove_path(path):
                logger.info("Removed previous artifact %s", path)
        except OSError as e:
            raise ExecutionError(f"{spec.name}: could not remove {path} ({e})") from e

    argv = [render(a, values) for a in spec.argv]
    stdin_text = render(spec.stdin, values) if spec.stdin is not None else None
    return ctx.cmd_runner(
        argv,
        stdin_text=stdin_text,
        timeout_seconds=timeout,
        mode=ctx.mode,
        secret_args=spec.secret_args,
    )


def _collect_diagnostics(defn: StageDefinition, *, ctx: GateContext, values: Mapping[str, str]) -> str:
    """Run the stage's diagnostic hook; never raises for ordinary errors."""
    if defn.diagnostic is None:
        return ""

    logger.info("Performing root cause analysis for %s", defn.label or defn.name)
    try:
        res = run_command(defn.diagnostic, ctx=ctx, values=values)
    except Exception as e:
        logger.warning("Diagnostics for %s failed: %s", defn.name, e)
        return f"diagnostics unavailable: {e}"

    text = res.output
    if res.exit_code != 0:
        logger.warning("Diagnostics command %s exited with code %s", res.command_str, res.exit_code)
        text = f"{text}\n(diagnostics exited with code {res.exit_code})".lstrip("\n")
    for line in text.splitlines():
        logger.info("%s", line)
    if defn.diagnostic_hint:
        logger.info("%s", defn.diagnostic_hint)
        text = f"{text}\n{defn.diagnostic_hint}".lstrip("\n")
    return text


def _run_commands(
    defn: StageDefinition,
    result: StageResult,
    *,
    ctx: GateContext,
    values: Mapping[str, str],
    metrics: Dict[str, Any],
    substituted: List[str],
) -> None:
    for spec in defn.commands:
        logger.info("%s: running %s", defn.name, spec.name)
        res = run_command(spec, ctx=ctx, values=values)
        result.append_output(f"$ {res.command_str}")
        result.append_output(res.output)

        if res.exit_code != 0:
            raise ExecutionError(f"{spec.name} exited with code {res.exit_code}", kind=ErrorKind.EXIT_CODE)

        outcome = extract_metrics(res, spec.extractions, mode=ctx.mode)
        metrics.update(outcome.metrics)
        substituted.extend(outcome.substituted)
        if outcome.missing and ctx.mode is ExecutionMode.LIVE:
            raise ParseError(outcome.missing)


def execute_stage(
    defn: StageDefinition,
    result: StageResult,
    *,
    ctx: GateContext,
    carried: CarriedValues,
) -> StageResult:
    """Execute *defn*, completing *result* exactly once.

    On PASS, the metrics named in ``defn.produces`` are published into
    *carried* for later stages.
    """
    missing = [k for k in defn.requires if not carried.has(k)]
    if missing:
        err = MissingInput(missing)
        logger.warning("%s: %s", defn.name, err)
        result.complete(StageStatus.FAIL, reason=str(err), error_kind=err.kind, duration_ms=0)
        return result

    for k in defn.requires:
        logger.info("%s: using %s=%s (from %s)", defn.name, k, carried.get(k), carried.sources.get(k, "unknown"))

    values = ctx.template_values(carried.data)
    metrics: Dict[str, Any] = {}
    substituted: List[str] = []

    t0 = time.monotonic()
    result.start()
    try:
        try:
            _run_commands(defn, result, ctx=ctx, values=values, metrics=metrics, substituted=substituted)
            metrics.update(derive_metrics(metrics, defn.derived))

            outcome = evaluate_rules(metrics, defn.rules)
            result.rule_evaluations = list(outcome.evaluations)
            for ev in outcome.evaluations:
                logger.info("%s: %s [%s]", defn.name, ev.reason, "ok" if ev.passed else "FAIL")
            violation = outcome.violation()
            if violation is not None:
                raise violation
        except GateError as e:
            result.extracted_metrics = dict(metrics)
            result.substituted_metrics = list(substituted)
            result.diagnostics = _collect_diagnostics(defn, ctx=ctx, values=values)
            result.complete(StageStatus.FAIL, reason=str(e), error_kind=e.kind, duration_ms=_elapsed_ms(t0))
            return result

        result.extracted_metrics = dict(metrics)
        result.substituted_metrics = list(substituted)
        result.complete(
            StageStatus.PASS,
            reason=f"{len(defn.rules)} rule(s) passed",
            duration_ms=_elapsed_ms(t0),
        )
    except KeyboardInterrupt:
        if not result.status.is_terminal:
            result.complete(
                StageStatus.FAIL,
                reason="Cancelled",
                error_kind=ErrorKind.CANCELLED,
                duration_ms=_elapsed_ms(t0),
            )
        raise

    for name in defn.produces:
        if name in metrics:
            carried.put(name, metrics[name], source=defn.name)
            logger.info("%s: carrying %s=%s", defn.name, name, metrics[name])
    return result
