"""quality_gate

Core package for the full-stack quality gate.

Why this exists
---------------
Stage outcomes are explicit records owned by the orchestrator, never
ambient global flags. This package owns the pieces every entrypoint agrees on:

* domain types (stage definitions, stage results, the final report)
* IO rules for the append-only report file

The CLI (:mod:`fqge_cli`) and the stage modules under :mod:`pipeline` are thin
composition roots that wire these together.
"""

from __future__ import annotations
