"""Stage A: database reachability plus root disk and memory headroom."""

from __future__ import annotations

from pipeline.config import GateSettings
from pipeline.framework.registry import register_stage
from quality_gate.domain import ExtractionRule, StageDefinition, ThresholdRule
from tools.host import DISK_USAGE_COMMAND, MEMORY_COMMAND, MEMORY_USAGE_PCT
from tools.sqlplus import sqlplus_command

DB_PING_QUERY = "SELECT 1 FROM dual"


@register_stage("infrastructure", description="DB reachability, disk usage, memory usage")
def build_infrastructure_stage(settings: GateSettings) -> StageDefinition:
    db_ping = sqlplus_command(
        "db_ping",
        [DB_PING_QUERY],
        extractions=(
            ExtractionRule(metric="db_ping", kind="regex", pattern=r"^\s*(1)\s*$", value_type="int", default=1),
        ),
    )
    return StageDefinition(
        name="infrastructure",
        label="Stage A (Infrastructure)",
        letter="A",
        commands=(db_ping, DISK_USAGE_COMMAND, MEMORY_COMMAND),
        derived=(MEMORY_USAGE_PCT,),
        rules=(
            ThresholdRule("db_ping", "==", 1),
            ThresholdRule("disk_usage_pct", "<=", settings.max_disk_usage_pct),
            ThresholdRule("memory_usage_pct", "<=", settings.max_memory_usage_pct),
        ),
    )
