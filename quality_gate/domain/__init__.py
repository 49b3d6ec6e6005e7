"""quality_gate.domain

Domain objects that form the *contract* between the runner, the extractor,
the evaluator and the orchestrator.

Key idea
--------
External tools print free-form text. Stage definitions describe, declaratively,
which command to run, which metrics to pull out of its output and which limits
those metrics must respect. Execution records the outcome in a
:class:`StageResult`; the orchestrator folds the ordered results into a
:class:`PipelineReport`.
"""

from __future__ import annotations

from .definitions import (
    CommandSpec,
    DerivedMetric,
    ExtractionRule,
    StageDefinition,
    ThresholdRule,
)
from .errors import (
    CommandTimeoutError,
    ConfigError,
    ErrorKind,
    ExecutionError,
    GateError,
    MissingInput,
    ParseError,
    ThresholdViolation,
)
from .results import (
    ExecutionMode,
    OverallStatus,
    PipelineReport,
    RuleEvaluation,
    StageResult,
    StageStatus,
)

__all__ = [
    "CommandSpec",
    "CommandTimeoutError",
    "ConfigError",
    "DerivedMetric",
    "ErrorKind",
    "ExecutionError",
    "ExecutionMode",
    "ExtractionRule",
    "GateError",
    "MissingInput",
    "OverallStatus",
    "ParseError",
    "PipelineReport",
    "RuleEvaluation",
    "StageDefinition",
    "StageResult",
    "StageStatus",
    "ThresholdRule",
    "ThresholdViolation",
]
