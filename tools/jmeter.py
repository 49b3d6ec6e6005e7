"""tools/jmeter.py

JMeter (non-GUI) load test invocation and summary parsing.

JMeter prints periodic ``summary +`` (delta) and ``summary =`` (cumulative)
lines on stdout; the *last* ``summary =`` line is the run total::

    summary =   1000 in 00:00:10 =  100.0/s Avg:   300 Min:    10 Max:   900 Err:     5 (0.50%)

Whitespace-split fields of that line: 6 -> ``100.0/s``, 8 -> ``300``,
15 -> ``(0.50%)``.

Defaults (150 tx/s, 300 ms, 0.5 %) apply in simulated mode only.
"""

from __future__ import annotations

from typing import Optional

from quality_gate.domain import CommandSpec, ExtractionRule

JMETER_BIN_TEMPLATE = "{jmeter_home}/bin/jmeter"

SUMMARY_TOKEN = "summary ="

SUMMARY_EXTRACTIONS = (
    ExtractionRule(
        metric="throughput",
        token=SUMMARY_TOKEN,
        field_index=6,
        strip="/s",
        value_type="float",
        default=150,
    ),
    ExtractionRule(
        metric="avg_response_ms",
        token=SUMMARY_TOKEN,
        field_index=8,
        value_type="float",
        default=300,
    ),
    ExtractionRule(
        metric="error_rate_pct",
        token=SUMMARY_TOKEN,
        field_index=15,
        strip="()%",
        value_type="float",
        default=0.5,
    ),
)


def load_test_command(*, timeout_seconds: Optional[float] = None) -> CommandSpec:
    """``jmeter -n -t <script> -l <results> -e -o <report_dir>`` after clearing old results."""
    return CommandSpec(
        name="load_test",
        kind="exec",
        argv=(
            JMETER_BIN_TEMPLATE,
            "-n",
            "-t",
            "{jmeter_script}",
            "-l",
            "{jmeter_results_file}",
            "-e",
            "-o",
            "{jmeter_report_dir}",
        ),
        timeout_seconds=timeout_seconds,
        extractions=SUMMARY_EXTRACTIONS,
        cleanup_paths=("{jmeter_results_file}", "{jmeter_report_dir}"),
    )
