"""quality_gate.domain.results

Execution records: per-stage results and the final pipeline report.

Lifecycle of a :class:`StageResult`
-----------------------------------
``PENDING -> RUNNING -> {PASS, FAIL}``

* created ``PENDING`` when the orchestrator plans the run
* ``start()`` moves it to ``RUNNING``
* ``complete()`` moves it to a terminal state exactly once; a stage that never
  started (missing input, cancellation) may go straight from ``PENDING`` to
  ``FAIL``
* after completion the record is sealed and further writes raise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .definitions import ThresholdRule
from .errors import ErrorKind


def now_iso() -> str:
    """Return current UTC time as ISO-8601 string."""

    return datetime.now(timezone.utc).isoformat()


class StageStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PASS = "PASS"
    FAIL = "FAIL"

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.PASS, StageStatus.FAIL)


class OverallStatus(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ExecutionMode(str, Enum):
    """Whether missing tools/metrics are errors (LIVE) or simulated (SIMULATED)."""

    LIVE = "live"
    SIMULATED = "simulated"

    @classmethod
    def parse(cls, raw: Any) -> "ExecutionMode":
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        for m in cls:
            if m.value == text:
                return m
        raise ValueError(f"Unknown execution mode {raw!r}. Valid: {[m.value for m in cls]}")


@dataclass(frozen=True)
class RuleEvaluation:
    """One threshold rule applied to one value."""

    rule: ThresholdRule
    value: Any
    passed: bool
    reason: str


@dataclass
class StageResult:
    """Execution record for one stage."""

    name: str
    label: str = ""
    status: StageStatus = StageStatus.PENDING
    output: str = ""
    duration_ms: int = 0
    extracted_metrics: Dict[str, Any] = field(default_factory=dict)

    reason: str = ""
    error_kind: Optional[ErrorKind] = None
    rule_evaluations: List[RuleEvaluation] = field(default_factory=list)
    substituted_metrics: List[str] = field(default_factory=list)
    diagnostics: str = ""

    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise RuntimeError(f"StageResult {self.name!r} is final ({self.status.value}); cannot set {key}")
        super().__setattr__(key, value)

    @property
    def passed(self) -> bool:
        return self.status is StageStatus.PASS

    def start(self) -> None:
        if self.status is not StageStatus.PENDING:
            raise RuntimeError(f"Stage {self.name!r} cannot start from {self.status.value}")
        self.status = StageStatus.RUNNING
        self.started_at = now_iso()

    def append_output(self, text: str) -> None:
        if not text:
            return
        sep = "" if not self.output or self.output.endswith("\n") else "\n"
        self.output = f"{self.output}{sep}{text}"

    def complete(
        self,
        status: StageStatus,
        *,
        reason: str = "",
        error_kind: Optional[ErrorKind] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Move to a terminal state and seal the record."""
        if not status.is_terminal:
            raise ValueError(f"complete() requires PASS or FAIL, got {status.value}")
        if self.status.is_terminal:
            raise RuntimeError(f"Stage {self.name!r} already completed ({self.status.value})")
        if status is StageStatus.PASS and self.status is not StageStatus.RUNNING:
            raise RuntimeError(f"Stage {self.name!r} cannot pass without running")

        self.status = status
        self.reason = reason
        self.error_kind = error_kind
        if duration_ms is not None:
            self.duration_ms = int(duration_ms)
        self.finished_at = now_iso()

        # Freeze containers before sealing the record itself.
        self.extracted_metrics = MappingProxyType(dict(self.extracted_metrics))  # type: ignore[assignment]
        self.rule_evaluations = tuple(self.rule_evaluations)  # type: ignore[assignment]
        self.substituted_metrics = tuple(self.substituted_metrics)  # type: ignore[assignment]
        self._sealed = True


@dataclass(frozen=True)
class PipelineReport:
    """Final, immutable summary built once from the ordered stage results."""

    stage_results: Tuple[StageResult, ...]
    overall_status: OverallStatus
    failed_stage_names: FrozenSet[str]
    cancelled: bool = False
    generated_at: str = ""

    @classmethod
    def from_results(cls, results: Iterable[StageResult], *, cancelled: bool = False) -> "PipelineReport":
        ordered = tuple(results)
        unfinished = [r.name for r in ordered if not r.status.is_terminal]
        if unfinished:
            raise ValueError(f"Cannot build report; stages not finished: {unfinished}")

        failed = frozenset(r.name for r in ordered if r.status is StageStatus.FAIL)
        return cls(
            stage_results=ordered,
            overall_status=OverallStatus.REJECTED if failed else OverallStatus.APPROVED,
            failed_stage_names=failed,
            cancelled=cancelled,
            generated_at=now_iso(),
        )

    @property
    def approved(self) -> bool:
        return self.overall_status is OverallStatus.APPROVED

    @property
    def exit_code(self) -> int:
        return 0 if self.approved else 1

    def get(self, name: str) -> Optional[StageResult]:
        for r in self.stage_results:
            if r.name == name:
                return r
        return None
