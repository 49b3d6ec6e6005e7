"""Stage C: the order created by stage B is persisted and consistent.

Checks
------
* the order's status is ``COMPLETED``
* no completed order is missing its invoice (``MINUS`` query returns no rows)
* data-integrity issue counts are all zero
"""

from __future__ import annotations

from pipeline.config import GateSettings
from pipeline.framework.registry import register_stage
from quality_gate.domain import ExtractionRule, StageDefinition, ThresholdRule
from tools.sqlplus import sqlplus_command

ORDER_STATUS_QUERY = "SELECT order_status FROM orders WHERE id = {order_id}"

MISSING_INVOICES_QUERY = """\
SELECT id FROM orders WHERE order_status = 'COMPLETED'
MINUS
SELECT order_id FROM invoices"""

INTEGRITY_QUERY = """\
SELECT 'Orphaned Orders' AS issue_type, COUNT(*) AS issue_count
FROM orders o LEFT JOIN customers c ON o.customer_id = c.id
WHERE c.id IS NULL
UNION ALL
SELECT 'Invalid Status', COUNT(*)
FROM orders
WHERE order_status NOT IN ('PENDING', 'PROCESSING', 'COMPLETED', 'CANCELLED')
UNION ALL
SELECT 'Negative Totals', COUNT(*)
FROM orders
WHERE total < 0
UNION ALL
SELECT 'Duplicate Invoices', COUNT(*)
FROM (SELECT order_id FROM invoices GROUP BY order_id HAVING COUNT(*) > 1)"""

# issue label in the query output -> metric name
INTEGRITY_ISSUES = (
    ("Orphaned Orders", "orphaned_orders"),
    ("Invalid Status", "invalid_status_orders"),
    ("Negative Totals", "negative_total_orders"),
    ("Duplicate Invoices", "duplicate_invoices"),
)


@register_stage("data_consistency", description="Order status, invoice consistency, integrity counts")
def build_data_consistency_stage(settings: GateSettings) -> StageDefinition:
    order_status = sqlplus_command(
        "order_status",
        [ORDER_STATUS_QUERY],
        extractions=(ExtractionRule(metric="order_status", kind="text", value_type="str", default="COMPLETED"),),
    )
    missing_invoices = sqlplus_command(
        "missing_invoices",
        [MISSING_INVOICES_QUERY],
        extractions=(ExtractionRule(metric="orders_without_invoice", kind="line_count", value_type="int"),),
    )
    integrity = sqlplus_command(
        "integrity_checks",
        [INTEGRITY_QUERY],
        extractions=tuple(
            ExtractionRule(metric=metric, token=label, field_index=-1, value_type="int", default=0)
            for label, metric in INTEGRITY_ISSUES
        ),
    )

    rules = [
        ThresholdRule("order_status", "==", "COMPLETED"),
        ThresholdRule("orders_without_invoice", "==", 0),
    ]
    rules.extend(ThresholdRule(metric, "==", 0) for _, metric in INTEGRITY_ISSUES)

    return StageDefinition(
        name="data_consistency",
        label="Stage C (Data Persistence)",
        letter="C",
        commands=(order_status, missing_invoices, integrity),
        rules=tuple(rules),
        requires=("order_id",),
    )
