"""quality_gate.io

Filesystem helpers for the gate's persisted state.

The only persisted state is a single append-only text report file; tool
artifacts (JMeter results, HTML report) are owned by the tools themselves and
only cleared before a run.
"""

from __future__ import annotations

from .fs import append_text, remove_path

__all__ = [
    "append_text",
    "remove_path",
]
