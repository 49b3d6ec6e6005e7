"""tools/http_probe.py

All mock-API HTTP calls live here.

This is the HTTP flavour of :func:`tools.core_cmd.run_cmd`: it returns the same
:class:`~tools.core_cmd.CmdResult` shape so the extractor and executor do not
care whether a metric came from a subprocess or a web request.

* any HTTP status is a normal result (``exit_code=0``, ``fields.status_code``)
* connection failures -> :class:`ExecutionError` (LIVE) or a simulated empty
  result (SIMULATED)
* request timeouts -> :class:`CommandTimeoutError`
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import requests

from quality_gate.domain import CommandTimeoutError, ExecutionError, ExecutionMode

from .core_cmd import CmdResult, simulated_result

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json"}


def run_http(
    method: str,
    url: str,
    *,
    json_body: Optional[Mapping[str, Any]] = None,
    timeout_seconds: float = 30,
    mode: ExecutionMode = ExecutionMode.LIVE,
    session: Optional[requests.Session] = None,
) -> CmdResult:
    """Issue one request and capture status code, latency and body."""
    method = method.upper()
    command_str = f"{method} {url}"
    http = session or requests

    logger.debug("http: %s", command_str)
    t0 = time.monotonic()
    try:
        resp = http.request(
            method,
            url,
            json=dict(json_body) if json_body is not None else None,
            headers=DEFAULT_HEADERS,
            timeout=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
        )
    except requests.Timeout as e:
        # ConnectTimeout: the host never answered, same as a refused connection.
        if mode is ExecutionMode.SIMULATED and isinstance(e, requests.ConnectTimeout):
            return simulated_result(command_str, "connect timed out")
        raise CommandTimeoutError(command_str, float(timeout_seconds)) from None
    except requests.RequestException as e:
        if mode is ExecutionMode.SIMULATED:
            return simulated_result(command_str, f"request failed: {e.__class__.__name__}")
        raise ExecutionError(f"{command_str}: request failed ({e})") from e
    elapsed = time.monotonic() - t0

    return CmdResult(
        exit_code=0,
        elapsed_seconds=elapsed,
        command_str=command_str,
        stdout=resp.text or "",
        stderr="",
        fields={
            "exit_code": 0,
            "status_code": int(resp.status_code),
            "elapsed_ms": round(elapsed * 1000.0, 1),
        },
    )
