"""tools/extractors.py

Declarative metric extraction from free-form tool output.

Why this exists
---------------
Tool output is free-form text meant for humans. Rather than one
``grep | awk | cut`` chain per metric, every metric is a named
:class:`~quality_gate.domain.ExtractionRule` evaluated by a single
extractor, so each rule is testable against captured sample output.

Design constraints
------------------
* Pure functions only (no IO, no subprocess).
* Absence is never fatal here: :func:`extract_metric` returns ``None``.
  What absence *means* is decided by the execution mode:

  - LIVE: the metric is reported as missing; the stage executor turns that
    into a ``ParseError`` failure.
  - SIMULATED: the rule's documented default is substituted and the
    substitution is logged and recorded.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from quality_gate.domain import DerivedMetric, ExecutionMode, ExtractionRule

from .core_cmd import CmdResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionOutcome:
    metrics: Dict[str, Any]
    substituted: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()


def coerce_value(raw: Any, value_type: str) -> Any:
    """Best-effort coercion; returns None when *raw* does not fit *value_type*."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None

    if value_type == "str":
        text = str(raw).strip()
        return text or None

    text = str(raw).strip()
    if not text:
        return None
    try:
        num = float(text)
    except ValueError:
        return None
    if not math.isfinite(num):
        return None

    if value_type == "int":
        if not num.is_integer():
            return None
        return int(num)
    return num


def _non_blank_lines(text: str) -> List[str]:
    return [ln for ln in (text or "").splitlines() if ln.strip()]


def _select_line(lines: Sequence[str], rule: ExtractionRule) -> Optional[str]:
    if rule.token is not None:
        hits = [ln for ln in lines if rule.token in ln]
        return hits[-1] if hits else None
    idx = int(rule.line_index or 0)
    try:
        return lines[idx]
    except IndexError:
        return None


def _extract_field(text: str, rule: ExtractionRule) -> Optional[str]:
    line = _select_line(_non_blank_lines(text), rule)
    if line is None:
        return None
    if rule.field_index is None:
        value = line
    else:
        parts = line.split(rule.separator) if rule.separator else line.split()
        try:
            value = parts[rule.field_index]
        except IndexError:
            return None
    if rule.strip:
        value = value.strip().strip(rule.strip)
    return value


def extract_metric(
    text: str,
    rule: ExtractionRule,
    *,
    result_fields: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Apply one rule to *text*; return a typed value or None when absent."""
    if rule.kind == "result":
        return coerce_value((result_fields or {}).get(str(rule.token)), rule.value_type)

    if rule.kind == "line_count":
        return len(_non_blank_lines(text))

    if rule.kind == "text":
        return coerce_value((text or "").strip(), rule.value_type)

    if rule.kind == "regex":
        m = re.search(str(rule.pattern), text or "", re.MULTILINE)
        if not m:
            return None
        raw = m.group(1) if m.groups() else m.group(0)
        if rule.strip:
            raw = raw.strip().strip(rule.strip)
        return coerce_value(raw, rule.value_type)

    return coerce_value(_extract_field(text, rule), rule.value_type)


def extract_metrics(
    result: CmdResult,
    rules: Sequence[ExtractionRule],
    *,
    mode: ExecutionMode = ExecutionMode.LIVE,
) -> ExtractionOutcome:
    """Apply every rule of one command to its result."""
    metrics: Dict[str, Any] = {}
    substituted: List[str] = []
    missing: List[str] = []

    for rule in rules:
        value = extract_metric(result.stdout, rule, result_fields=result.fields)
        if value is not None:
            metrics[rule.metric] = value
            continue

        if mode is ExecutionMode.SIMULATED and rule.default is not None:
            value = coerce_value(rule.default, rule.value_type)
            logger.warning(
                "SIMULATED: metric %s not found in %s output; using default %r",
                rule.metric,
                result.command_str.split(" ", 1)[0],
                value,
            )
            metrics[rule.metric] = value
            substituted.append(rule.metric)
            continue

        missing.append(rule.metric)

    return ExtractionOutcome(metrics=metrics, substituted=tuple(substituted), missing=tuple(missing))


def derive_metrics(metrics: Mapping[str, Any], derived: Sequence[DerivedMetric]) -> Dict[str, Any]:
    """Compute ratio metrics; inputs that are missing or zero leave the metric unset."""
    out: Dict[str, Any] = {}
    for d in derived:
        num = metrics.get(d.numerator)
        den = metrics.get(d.denominator)
        if not isinstance(num, (int, float)) or not isinstance(den, (int, float)) or not den:
            continue
        out[d.metric] = float(num) / float(den) * d.scale
    return out
