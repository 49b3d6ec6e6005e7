from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from pipeline.config import GateSettings
from quality_gate.domain import ConfigError, StageDefinition

StageBuilder = Callable[[GateSettings], StageDefinition]

# The gate's fixed execution order.
DEFAULT_STAGE_ORDER: Tuple[str, ...] = (
    "infrastructure",
    "api",
    "data_consistency",
    "performance",
)


@dataclass(frozen=True)
class RegisteredStage:
    """A stage builder plus the metadata needed to list it.

    The builder is called once per run with the resolved settings, so
    thresholds and connection details are baked into a frozen
    :class:`~quality_gate.domain.StageDefinition` before anything executes.
    """

    name: str
    builder: StageBuilder
    description: str = ""


_STAGE_REGISTRY: Dict[str, RegisteredStage] = {}


def register_stage(name: str, *, description: str = ""):
    """Decorator to register a stage builder."""

    def _decorator(fn: StageBuilder) -> StageBuilder:
        _STAGE_REGISTRY[name] = RegisteredStage(name=name, builder=fn, description=description)
        return fn

    return _decorator


def get_stage(name: str) -> RegisteredStage:
    if name not in _STAGE_REGISTRY:
        raise KeyError(f"Unknown stage: {name}")
    return _STAGE_REGISTRY[name]


def list_stages() -> List[RegisteredStage]:
    """Registered stages, pipeline order first, anything else by name."""
    order = {n: i for i, n in enumerate(DEFAULT_STAGE_ORDER)}
    stages = list(_STAGE_REGISTRY.values())
    stages.sort(key=lambda s: (order.get(s.name, len(order)), s.name))
    return stages


def parse_stage_names(raw: str | None) -> Tuple[str, ...]:
    """Parse ``"api,performance"`` into a tuple in pipeline order.

    ``None``/empty selects every stage. Unknown names raise
    :class:`~quality_gate.domain.ConfigError`.
    """
    if raw is None or not str(raw).strip():
        return DEFAULT_STAGE_ORDER

    wanted: List[str] = []
    for part in str(raw).split(","):
        s = part.strip()
        if s and s not in wanted:
            wanted.append(s)

    unknown = [s for s in wanted if s not in DEFAULT_STAGE_ORDER]
    if unknown:
        raise ConfigError(f"Unknown stage(s): {unknown}. Valid: {list(DEFAULT_STAGE_ORDER)}")
    # Selection never reorders the pipeline.
    return tuple(n for n in DEFAULT_STAGE_ORDER if n in wanted)


def build_stage_definitions(settings: GateSettings, names: Sequence[str] = DEFAULT_STAGE_ORDER) -> List[StageDefinition]:
    return [get_stage(n).builder(settings) for n in names]
