"""Stage B: database reachability, mock API health and order creation.

The stage first counts rows in ``customers``, ``orders`` and ``invoices``
through SQL*Plus; an ORA- error there fails the stage before any HTTP call.

Publishes ``order_id`` (read from the numeric ``"id"`` field of the POST
response) for the data consistency stage.
"""

from __future__ import annotations

from pipeline.config import GateSettings
from pipeline.framework.registry import register_stage
from quality_gate.domain import CommandSpec, ExtractionRule, StageDefinition, ThresholdRule
from tools.sqlplus import sqlplus_command

ORDER_ID_PATTERN = r'"id"\s*:\s*"?([0-9]+)'

ORDER_PAYLOAD = {
    "customer_id": 1,
    "items": [{"sku": "FQGE-PROBE", "quantity": 1}],
}

# metric name -> table; each row comes back as "<metric> <count>"
ROW_COUNT_TABLES = (
    ("customer_count", "customers"),
    ("order_count", "orders"),
    ("invoice_count", "invoices"),
)

ROW_COUNT_QUERIES = tuple(f"SELECT '{metric}', COUNT(*) FROM {table}" for metric, table in ROW_COUNT_TABLES)


@register_stage("api", description="Database reachability, API health check and order creation latency")
def build_api_stage(settings: GateSettings) -> StageDefinition:
    row_counts = sqlplus_command(
        "db_row_counts",
        ROW_COUNT_QUERIES,
        extractions=tuple(
            ExtractionRule(metric=metric, token=metric, field_index=-1, value_type="int", default=0)
            for metric, _ in ROW_COUNT_TABLES
        ),
    )
    status_check = CommandSpec(
        name="api_status",
        kind="http",
        method="GET",
        url="{api_base_url}/api/status",
        extractions=(
            ExtractionRule(metric="status_http_code", kind="result", token="status_code", value_type="int", default=200),
        ),
    )
    create_order = CommandSpec(
        name="create_order",
        kind="http",
        method="POST",
        url="{api_base_url}{order_endpoint}",
        json_body=ORDER_PAYLOAD,
        extractions=(
            ExtractionRule(metric="order_http_code", kind="result", token="status_code", value_type="int", default=200),
            ExtractionRule(metric="order_response_ms", kind="result", token="elapsed_ms", value_type="float", default=50),
            ExtractionRule(metric="order_id", kind="regex", pattern=ORDER_ID_PATTERN, value_type="str", default="1001"),
        ),
    )
    return StageDefinition(
        name="api",
        label="Stage B (API Integrity)",
        letter="B",
        commands=(row_counts, status_check, create_order),
        rules=(
            ThresholdRule("status_http_code", "==", 200),
            ThresholdRule("order_http_code", "==", settings.order_expected_status),
            ThresholdRule("order_response_ms", "<", settings.max_order_response_ms),
        ),
        produces=("order_id",),
    )
