"""tools/ssh.py

Remote diagnostics snapshot over SSH.

Used as a stage's failure hook: collects process, socket and disk I/O
snapshots from the application host so a failed performance run can be
classified as CPU-bound (app server) or I/O-bound (network/DB).
"""

from __future__ import annotations

from typing import Optional

from quality_gate.domain import CommandSpec

SNAPSHOT_SCRIPT = """\
echo "=== TOP OUTPUT ==="
top -b -n1 | head -20
echo "=== NETSTAT OUTPUT ==="
netstat -tuln | head -10
echo "=== DISK I/O ==="
iostat -x 1 1 | head -10
"""

RCA_HINT = "RCA: Suspected component - check snapshot for CPU-bound (App Server) or I/O-bound (Network/DB) issues"


def diagnostics_command(*, timeout_seconds: Optional[float] = 60) -> CommandSpec:
    return CommandSpec(
        name="remote_snapshot",
        kind="exec",
        argv=(
            "ssh",
            "-i",
            "{ssh_key}",
            "-o",
            "BatchMode=yes",
            "-o",
            "ConnectTimeout=10",
            "{remote_user}@{remote_host}",
            "sh -s",
        ),
        stdin=SNAPSHOT_SCRIPT,
        timeout_seconds=timeout_seconds,
    )
