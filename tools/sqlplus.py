"""tools/sqlplus.py

SQL*Plus command construction.

Every query runs as ``sqlplus -s user/password@host/sid`` with the script fed
on stdin, headings/feedback/paging disabled so the output is just the rows.
``WHENEVER SQLERROR`` makes ORA- errors show up as a non-zero exit code instead
of text that would otherwise be scraped as data.
"""

from __future__ import annotations

from typing import Optional, Sequence

from quality_gate.domain import CommandSpec, ExtractionRule

SQLPLUS_BIN = "sqlplus"

# Rendered against settings; the password position is masked in logs.
CONNECT_TEMPLATE = "{db_user}/{db_pass}@{db_host}/{db_sid}"

SCRIPT_PREAMBLE = (
    "WHENEVER SQLERROR EXIT SQL.SQLCODE",
    "SET HEADING OFF",
    "SET FEEDBACK OFF",
    "SET PAGESIZE 0",
    "SET TRIMSPOOL ON",
)


def render_script(statements: Sequence[str]) -> str:
    """Build a SQL*Plus stdin script from one or more statements."""
    lines = list(SCRIPT_PREAMBLE)
    for stmt in statements:
        s = stmt.strip()
        if not s:
            continue
        lines.append(s if s.endswith(";") else s + ";")
    lines.append("EXIT;")
    return "\n".join(lines) + "\n"


def sqlplus_command(
    name: str,
    statements: Sequence[str],
    *,
    extractions: Sequence[ExtractionRule] = (),
    timeout_seconds: Optional[float] = None,
) -> CommandSpec:
    return CommandSpec(
        name=name,
        kind="exec",
        argv=(SQLPLUS_BIN, "-s", CONNECT_TEMPLATE),
        stdin=render_script(statements),
        timeout_seconds=timeout_seconds,
        extractions=tuple(extractions),
        secret_args=(2,),
    )
