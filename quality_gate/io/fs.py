"""quality_gate.io.fs

Append-only text writes and pre-run cleanup.

Why this module exists
----------------------
The report file is a public contract: CI jobs archive it and operators grep
it. Every writer goes through :func:`append_text` so the file is only ever
appended to (never truncated) and always ends each write with a newline.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path


def append_text(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Append *text* to *path*, creating parent directories as needed."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if text and not text.endswith("\n"):
        text += "\n"
    with p.open("a", encoding=encoding) as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree if present. Returns True if something was removed."""

    p = Path(path)
    if p.is_dir() and not p.is_symlink():
        shutil.rmtree(p)
        return True
    if p.exists() or p.is_symlink():
        p.unlink()
        return True
    return False
