"""pipeline.thresholds

Threshold evaluation: compare extracted metrics against configured limits.

Everything here is a pure function of ``(value, rule)``; evaluating the same
pair twice always yields the same verdict and reason.

Boundary semantics follow the operator literally: a value equal to the
threshold passes ``<=``, ``>=`` and ``==`` and fails ``<`` and ``>``.
Numbers are compared exactly as parsed; nothing is rounded.
"""

from __future__ import annotations

import operator as _op
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from quality_gate.domain import RuleEvaluation, ThresholdRule, ThresholdViolation

_COMPARE: Dict[str, Callable[[Any, Any], bool]] = {
    "<": _op.lt,
    ">": _op.gt,
    "<=": _op.le,
    ">=": _op.ge,
    "==": _op.eq,
}

# What the observed relation is when the rule does NOT hold.
_NEGATED: Dict[str, str] = {
    "<": ">=",
    ">": "<=",
    "<=": ">",
    ">=": "<",
    "==": "!=",
}

_LIMIT_LABEL: Dict[str, str] = {
    "<": "maximum",
    "<=": "maximum",
    ">": "minimum",
    ">=": "minimum",
    "==": "expected",
}


@dataclass(frozen=True)
class ThresholdOutcome:
    passed: bool
    evaluations: Tuple[RuleEvaluation, ...]

    @property
    def first_failure(self) -> Optional[RuleEvaluation]:
        for ev in self.evaluations:
            if not ev.passed:
                return ev
        return None

    def violation(self) -> Optional[ThresholdViolation]:
        ev = self.first_failure
        if ev is None:
            return None
        return ThresholdViolation(ev.rule.metric, ev.value, ev.rule, ev.reason)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _as_number(v: Any) -> Optional[float]:
    if _is_number(v):
        return v
    try:
        return float(str(v).strip())
    except (TypeError, ValueError):
        return None


def format_value(v: Any) -> str:
    """Render at natural precision: ``85``, ``0.5``, ``'COMPLETED'``."""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    if _is_number(v):
        return str(v)
    return repr(v)


def evaluate_rule(value: Any, rule: ThresholdRule) -> RuleEvaluation:
    """Apply one rule to one value."""
    if value is None:
        return RuleEvaluation(rule=rule, value=None, passed=False, reason=f"{rule.metric} missing")

    threshold = rule.threshold
    if rule.operator == "==" and not (_is_number(value) and _as_number(threshold) is not None):
        lhs, rhs = str(value), str(threshold)
    else:
        lhs = _as_number(value)
        rhs = _as_number(threshold)
        if lhs is None:
            return RuleEvaluation(
                rule=rule,
                value=value,
                passed=False,
                reason=f"{rule.metric} value {format_value(value)} is not numeric",
            )
        if rhs is None:
            return RuleEvaluation(
                rule=rule,
                value=value,
                passed=False,
                reason=f"{rule.metric} threshold {threshold!r} is not numeric",
            )

    passed = bool(_COMPARE[rule.operator](lhs, rhs))
    shown_value = format_value(value)
    shown_limit = format_value(rhs if _is_number(rhs) else threshold)
    if passed:
        reason = f"{rule.metric} {shown_value} {rule.operator} {shown_limit}"
    else:
        reason = f"{rule.metric} {shown_value} {_NEGATED[rule.operator]} {_LIMIT_LABEL[rule.operator]} {shown_limit}"
    return RuleEvaluation(rule=rule, value=value, passed=passed, reason=reason)


def evaluate_rules(metrics: Mapping[str, Any], rules: Sequence[ThresholdRule]) -> ThresholdOutcome:
    """AND-combine every rule; all evaluations are kept for diagnostics."""
    evaluations = tuple(evaluate_rule(metrics.get(r.metric), r) for r in rules)
    return ThresholdOutcome(passed=all(ev.passed for ev in evaluations), evaluations=evaluations)
