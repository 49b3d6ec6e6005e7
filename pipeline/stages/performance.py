"""Stage D: JMeter load test against the configured limits.

On failure a process/socket/IO snapshot is collected from the application
host over SSH.
"""

from __future__ import annotations

from pipeline.config import GateSettings
from pipeline.framework.registry import register_stage
from quality_gate.domain import StageDefinition, ThresholdRule
from tools.jmeter import load_test_command
from tools.ssh import RCA_HINT, diagnostics_command


@register_stage("performance", description="JMeter throughput, latency and error rate")
def build_performance_stage(settings: GateSettings) -> StageDefinition:
    return StageDefinition(
        name="performance",
        label="Stage D (Performance)",
        letter="D",
        commands=(load_test_command(timeout_seconds=settings.load_test_timeout_seconds),),
        rules=(
            ThresholdRule("throughput", ">=", settings.min_throughput),
            ThresholdRule("avg_response_ms", "<=", settings.max_avg_response_ms),
            ThresholdRule("error_rate_pct", "<=", settings.max_error_rate),
        ),
        diagnostic=diagnostics_command(),
        diagnostic_hint=RCA_HINT,
    )
