"""tools/core_cmd.py

Command-execution helpers shared across tool adapters.

This module deliberately avoids tool-specific knowledge. It provides:

* :func:`which_or_raise` - resolve executables reliably across environments.
* :func:`run_cmd` - run subprocesses (no shell=True) under a timeout and
  capture output.

Contract of :func:`run_cmd`
---------------------------
* never raises on non-zero exit codes (that is a normal result)
* missing binary -> :class:`ExecutionError` (LIVE) or a simulated empty
  result (SIMULATED)
* timeout -> the process and everything it started are killed and reaped, then
  :class:`CommandTimeoutError` is raised
* operator abort (KeyboardInterrupt) -> the process is killed and reaped,
  then the interrupt propagates
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from quality_gate.domain import CommandTimeoutError, ExecutionError, ExecutionMode

logger = logging.getLogger(__name__)

MASK = "****"


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str

    # True when the tool could not run and SIMULATED mode stood in for it.
    simulated: bool = False

    # Intrinsic values readable by "result" extraction rules.
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def output(self) -> str:
        """stdout followed by stderr, for the stage record."""
        parts = [p.rstrip("\n") for p in (self.stdout, self.stderr) if p and p.strip()]
        return "\n".join(parts)


def mask_command(cmd: Sequence[str], secret_args: Sequence[int] = ()) -> str:
    """Join argv for logging with secret positions replaced by ``****``."""
    secret = set(secret_args)
    return " ".join(MASK if i in secret else str(a) for i, a in enumerate(cmd))


def simulated_result(command_str: str, reason: str) -> CmdResult:
    """Empty, successful result used when SIMULATED mode stands in for a tool."""
    logger.warning("SIMULATED: %s not executed (%s)", command_str, reason)
    return CmdResult(
        exit_code=0,
        elapsed_seconds=0.0,
        command_str=command_str,
        stdout="",
        stderr="",
        simulated=True,
        fields={"exit_code": 0, "elapsed_ms": 0.0},
    )


def which_or_raise(bin_name: str, fallbacks: Optional[List[str]] = None) -> str:
    """Locate an executable and return its absolute path.

    Accepts bare names (resolved on PATH) and explicit paths such as
    ``/opt/jmeter/bin/jmeter``.
    """
    found = shutil.which(bin_name)
    if found:
        return found

    for candidate in fallbacks or []:
        p = Path(candidate)
        if p.exists() and os.access(str(p), os.X_OK):
            return str(p)

    raise FileNotFoundError(
        f"Executable '{bin_name}' not found on PATH.\n"
        f"Install it and ensure it's available to this Python process.\n"
        f"Tried fallbacks: {fallbacks or []}"
    )


def _kill_and_reap(proc: subprocess.Popen) -> None:
    """Kill the child's whole process group and wait for it.

    Wrapper scripts (``bin/jmeter`` starts Java) leave grandchildren that would
    otherwise keep running and hold the output pipes open.
    """
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except OSError:
        # Already exited.
        pass
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        proc.wait()


def run_cmd(
    cmd: Sequence[str],
    *,
    stdin_text: Optional[str] = None,
    cwd: Optional[Path] = None,
    timeout_seconds: float = 0,
    env: Optional[Dict[str, str]] = None,
    mode: ExecutionMode = ExecutionMode.LIVE,
    secret_args: Sequence[int] = (),
    fallbacks: Optional[List[str]] = None,
) -> CmdResult:
    """Run a subprocess and capture stdout/stderr (no ``shell=True``)."""
    if not cmd:
        raise ValueError("run_cmd requires a non-empty command")

    command_str = mask_command(cmd, secret_args)

    try:
        exe = which_or_raise(str(cmd[0]), fallbacks)
    except FileNotFoundError as e:
        if mode is ExecutionMode.SIMULATED:
            return simulated_result(command_str, f"'{cmd[0]}' not found")
        raise ExecutionError(f"{cmd[0]}: executable not found") from e

    # If env is provided, merge it onto the current process environment.
    env2 = None
    if env is not None:
        env2 = os.environ.copy()
        env2.update(env)

    logger.debug("exec: %s", command_str)
    t0 = time.monotonic()
    try:
        proc = subprocess.Popen(
            [exe, *[str(a) for a in cmd[1:]]],
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.PIPE if stdin_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env2,
            # Own process group, so a timeout can kill everything it started.
            start_new_session=True,
        )
    except OSError as e:
        raise ExecutionError(f"{command_str}: could not start ({e})") from e

    timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
    try:
        stdout, stderr = proc.communicate(input=stdin_text, timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_and_reap(proc)
        raise CommandTimeoutError(command_str, float(timeout_seconds)) from None
    except BaseException:
        # KeyboardInterrupt / SystemExit: never leave the child behind.
        _kill_and_reap(proc)
        raise

    elapsed = time.monotonic() - t0
    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=elapsed,
        command_str=command_str,
        stdout=stdout or "",
        stderr=stderr or "",
        fields={"exit_code": proc.returncode, "elapsed_ms": round(elapsed * 1000.0, 1)},
    )
