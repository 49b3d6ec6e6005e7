from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from pipeline.config import GateSettings
from quality_gate.domain import ExecutionMode
from tools.core_cmd import CmdResult, run_cmd
from tools.http_probe import run_http

CommandRunner = Callable[..., CmdResult]
HttpRunner = Callable[..., CmdResult]


@dataclass(frozen=True)
class GateContext:
    """Immutable job packet for one gate run.

    Attributes
    ----------
    settings:
        Resolved configuration (connection details, thresholds, timeouts).
    cmd_runner / http_runner:
        The Command Runner entry points. Tests swap these for fakes; production
        code always uses :func:`tools.core_cmd.run_cmd` and
        :func:`tools.http_probe.run_http`.
    """

    settings: GateSettings = field(default_factory=GateSettings)
    cmd_runner: CommandRunner = run_cmd
    http_runner: HttpRunner = run_http

    @property
    def mode(self) -> ExecutionMode:
        return self.settings.mode

    def timeout_for(self, timeout_seconds: Optional[float]) -> float:
        if timeout_seconds is None:
            return float(self.settings.command_timeout_seconds)
        return float(timeout_seconds)

    def template_values(self, carried: Mapping[str, str]) -> Dict[str, str]:
        """Settings plus carried values; carried values win on name clashes."""
        values = self.settings.template_values()
        values.update({k: str(v) for k, v in carried.items()})
        return values


@dataclass
class CarriedValues:
    """Values handed from one stage to a later one (e.g. ``order_id``).

    Only a stage that passed publishes into this store, so a value being
    present means its producer succeeded (or it was seeded from the CLI).
    """

    data: Dict[str, str] = field(default_factory=dict)

    # name -> stage that published it ("seed" for CLI-provided values)
    sources: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    def put(self, key: str, value: Any, *, source: str) -> None:
        self.data[key] = str(value)
        self.sources[key] = source
