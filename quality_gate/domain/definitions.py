"""quality_gate.domain.definitions

Static, declarative stage definitions.

A stage is described once at startup and never mutated:

* which commands to run (:class:`CommandSpec`), in order
* which metrics to pull from each command's output (:class:`ExtractionRule`)
* which limits those metrics must respect (:class:`ThresholdRule`)
* which carried values it needs from earlier stages and which it publishes

Templates (argv, stdin, url, json body) are rendered with ``str.format_map``
against the resolved settings plus the carried values, e.g. ``"{order_id}"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

OPERATORS: Tuple[str, ...] = ("<", ">", "<=", ">=", "==")

EXTRACTION_KINDS: Tuple[str, ...] = ("field", "regex", "text", "line_count", "result")

VALUE_TYPES: Tuple[str, ...] = ("int", "float", "str")


@dataclass(frozen=True)
class ExtractionRule:
    """How to read one named metric out of a command's output.

    Kinds
    -----
    field:
        Pick the *last* line containing ``token`` (or the ``line_index``-th
        non-blank line), split on ``separator`` (whitespace when ``None``),
        take ``field_index`` (negative indexes allowed) and strip ``strip`` chars.
    regex:
        First capture group of ``pattern`` (``re.MULTILINE``).
    text:
        The whole stripped output.
    line_count:
        Number of non-blank output lines.
    result:
        Intrinsic field of the command result (``exit_code``, ``elapsed_ms``,
        ``status_code``); ``token`` names the field.

    ``default`` is only ever used in simulated mode.
    """

    metric: str
    kind: str = "field"
    token: Optional[str] = None
    line_index: Optional[int] = None
    field_index: Optional[int] = None
    separator: Optional[str] = None
    pattern: Optional[str] = None
    strip: str = ""
    value_type: str = "float"
    default: Any = None

    def __post_init__(self) -> None:
        if self.kind not in EXTRACTION_KINDS:
            raise ValueError(f"Unknown extraction kind {self.kind!r} for {self.metric!r}")
        if self.value_type not in VALUE_TYPES:
            raise ValueError(f"Unknown value_type {self.value_type!r} for {self.metric!r}")
        if self.kind == "regex" and not self.pattern:
            raise ValueError(f"Extraction {self.metric!r}: regex kind requires a pattern")
        if self.kind == "result" and not self.token:
            raise ValueError(f"Extraction {self.metric!r}: result kind requires a token")
        if self.kind == "field" and self.token is None and self.line_index is None:
            raise ValueError(f"Extraction {self.metric!r}: field kind requires token or line_index")


@dataclass(frozen=True)
class DerivedMetric:
    """``numerator / denominator * scale`` computed after extraction."""

    metric: str
    numerator: str
    denominator: str
    scale: float = 100.0


@dataclass(frozen=True)
class ThresholdRule:
    """A (metric, comparison operator, limit) triple."""

    metric: str
    operator: str
    threshold: Any

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise ValueError(f"Unsupported operator {self.operator!r}. Valid: {list(OPERATORS)}")

    def describe(self) -> str:
        return f"{self.metric} {self.operator} {self.threshold}"


@dataclass(frozen=True)
class CommandSpec:
    """One external invocation inside a stage.

    ``kind="exec"`` runs ``argv`` as a subprocess (stdin optional).
    ``kind="http"`` issues ``method url`` with an optional JSON body.
    ``timeout_seconds=None`` means "use the configured default".
    """

    name: str
    kind: str = "exec"
    argv: Tuple[str, ...] = ()
    stdin: Optional[str] = None
    method: str = "GET"
    url: Optional[str] = None
    json_body: Optional[Mapping[str, Any]] = None
    timeout_seconds: Optional[float] = None
    extractions: Tuple[ExtractionRule, ...] = ()

    # argv positions that carry secrets (masked in logs / report output)
    secret_args: Tuple[int, ...] = ()

    # Files/directories (templates) removed before the command runs.
    cleanup_paths: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in ("exec", "http"):
            raise ValueError(f"Unknown command kind {self.kind!r} for {self.name!r}")
        if self.kind == "exec" and not self.argv:
            raise ValueError(f"Command {self.name!r}: exec kind requires argv")
        if self.kind == "http" and not self.url:
            raise ValueError(f"Command {self.name!r}: http kind requires url")


@dataclass(frozen=True)
class StageDefinition:
    """Metadata describing one stage of the gate.

    ``requires`` names carried values that must exist before the stage runs.
    ``produces`` names extracted metrics published as carried values once the
    stage passes.
    """

    name: str
    label: str
    commands: Tuple[CommandSpec, ...]
    rules: Tuple[ThresholdRule, ...] = ()
    requires: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()
    derived: Tuple[DerivedMetric, ...] = field(default_factory=tuple)
    diagnostic: Optional[CommandSpec] = None

    # Logged alongside the diagnostic snapshot.
    diagnostic_hint: str = ""

    # Short tag used in the final decision line ("A", "B", ...).
    letter: str = ""
