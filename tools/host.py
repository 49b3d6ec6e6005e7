"""tools/host.py

Local host resource probes (``df`` / ``free``).

Sample outputs the extraction rules are written against::

    $ df -P /
    Filesystem     1024-blocks     Used Available Capacity Mounted on
    /dev/sda1        102400000 51200000  51200000      50% /

    $ free
                   total        used        free      shared  buff/cache   available
    Mem:        16318480     5123456     6400000      123456     4795024    10800000
    Swap:        2097148           0     2097148
"""

from __future__ import annotations

from quality_gate.domain import CommandSpec, DerivedMetric, ExtractionRule

DISK_USAGE_COMMAND = CommandSpec(
    name="disk_usage",
    argv=("df", "-P", "/"),
    extractions=(
        ExtractionRule(
            metric="disk_usage_pct",
            kind="field",
            line_index=-1,
            field_index=4,
            strip="%",
            value_type="int",
            default=50,
        ),
    ),
)

MEMORY_COMMAND = CommandSpec(
    name="memory_usage",
    argv=("free",),
    extractions=(
        ExtractionRule(metric="mem_total_kb", token="Mem:", field_index=1, value_type="int", default=100),
        ExtractionRule(metric="mem_used_kb", token="Mem:", field_index=2, value_type="int", default=50),
    ),
)

MEMORY_USAGE_PCT = DerivedMetric(metric="memory_usage_pct", numerator="mem_used_kb", denominator="mem_total_kb")
