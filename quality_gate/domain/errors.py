"""quality_gate.domain.errors

Error vocabulary for stage execution.

Every failure a stage can end in maps onto one :class:`ErrorKind`. The
executor raises these exceptions internally and converts them into a ``FAIL``
:class:`~quality_gate.domain.results.StageResult` in exactly one place, so the
user-visible outcome is always the report plus an exit code, never a trace.

None of these are retried.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from .definitions import ThresholdRule


class ErrorKind(str, Enum):
    EXECUTION = "ExecutionError"
    TIMEOUT = "TimeoutError"
    EXIT_CODE = "NonZeroExit"
    PARSE = "ParseError"
    THRESHOLD = "ThresholdViolation"
    MISSING_INPUT = "MissingInput"
    CANCELLED = "Cancelled"


class GateError(Exception):
    """Base class for stage failures."""

    kind: ErrorKind = ErrorKind.EXECUTION


class ExecutionError(GateError):
    """The external tool is missing, unreachable, or exited non-zero."""

    kind = ErrorKind.EXECUTION

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class CommandTimeoutError(GateError, TimeoutError):
    """The command exceeded its timeout; the process was killed and reaped."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, command_str: str, timeout_seconds: float) -> None:
        super().__init__(f"{command_str} timed out after {timeout_seconds:g}s")
        self.command_str = command_str
        self.timeout_seconds = timeout_seconds


class ParseError(GateError):
    """A metric could not be parsed from output of a successful command."""

    kind = ErrorKind.PARSE

    def __init__(self, metrics: Sequence[str]) -> None:
        self.metrics = tuple(metrics)
        super().__init__(f"metric unparseable: {', '.join(self.metrics)}")


class ThresholdViolation(GateError):
    """A parsed metric failed its configured rule."""

    kind = ErrorKind.THRESHOLD

    def __init__(self, metric: str, value: Any, rule: "ThresholdRule", reason: str) -> None:
        super().__init__(reason)
        self.metric = metric
        self.value = value
        self.rule = rule


class MissingInput(GateError):
    """A carried value required by a stage was not produced upstream."""

    kind = ErrorKind.MISSING_INPUT

    def __init__(self, names: Sequence[str]) -> None:
        self.names = tuple(names)
        super().__init__(f"MissingInput: required upstream value(s) not available: {', '.join(self.names)}")


class ConfigError(ValueError):
    """Invalid configuration (bad numeric override, unknown stage name, ...)."""
