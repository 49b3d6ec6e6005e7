"""pipeline.report

Render a :class:`~quality_gate.domain.PipelineReport` as the flat text report
and append it to the report file.

The layout is what operators already grep for::

    FQGE Validation Report
    ======================
    Stage A (Infrastructure): PASS
    Stage B (API Integrity): FAIL - order_response_ms 250 >= maximum 200
    ...
    FINAL DECISION: REJECTION - B Failure(s) - Immediate Rollback Required
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from quality_gate.domain import ExecutionMode, PipelineReport, StageDefinition, StageResult
from quality_gate.io import append_text

from pipeline.thresholds import format_value

TITLE = "FQGE Validation Report"
APPROVAL_LINE = "FINAL DECISION: APPROVAL - Ready for UAT/Production Promotion"
REJECTION_TEMPLATE = "FINAL DECISION: REJECTION - {tags} Failure(s) - Immediate Rollback Required"


def stage_letters(definitions: Iterable[StageDefinition]) -> dict:
    return {d.name: d.letter for d in definitions if d.letter}


def _stage_lines(r: StageResult) -> List[str]:
    line = f"{r.label or r.name}: {r.status.value}"
    if not r.passed and r.reason:
        line += f" - {r.reason}"
    lines = [line]

    if r.extracted_metrics:
        shown = ", ".join(f"{k}={format_value(v)}" for k, v in r.extracted_metrics.items())
        lines.append(f"    metrics: {shown}")
    if r.substituted_metrics:
        lines.append(f"    simulated defaults: {', '.join(r.substituted_metrics)}")
    if not r.passed and r.diagnostics:
        lines.append("    diagnostics:")
        lines.extend(f"      {ln}" for ln in r.diagnostics.splitlines())
    return lines


def render_report(
    report: PipelineReport,
    *,
    log_file: Optional[Path] = None,
    letters: Optional[Mapping[str, str]] = None,
    mode: Optional[ExecutionMode] = None,
) -> str:
    """Deterministic text rendering of *report* (apart from its timestamp)."""
    letters = letters or {}
    lines = [TITLE, "=" * len(TITLE)]
    if report.generated_at:
        lines.append(f"Generated: {report.generated_at}")
    if mode is not None:
        lines.append(f"Mode: {mode.value}")
    lines.append("")

    for r in report.stage_results:
        lines.extend(_stage_lines(r))
    lines.append("")

    if report.cancelled:
        lines.append("Run cancelled before completion.")
    if report.approved:
        lines.append(APPROVAL_LINE)
    else:
        tags = [letters.get(r.name, r.name) for r in report.stage_results if r.name in report.failed_stage_names]
        lines.append(REJECTION_TEMPLATE.format(tags=" ".join(tags)))
        # Only rejections point operators at the full console log.
        if log_file is not None:
            lines.append("")
            lines.append(f"Full console output available in {log_file}")
    return "\n".join(lines) + "\n"


def write_report(text: str, path: Path) -> Path:
    """Append the rendered report to the report file (never truncates)."""
    p = Path(path)
    append_text(p, "\n" + text)
    return p
