"""pipeline.config

Resolved gate settings.

Precedence (lowest to highest)
------------------------------
1. built-in defaults (the stock docker-compose environment)
2. optional YAML file (``--config``); keys may be field names
   (``min_throughput``) or env-style names (``MIN_THROUGHPUT``), optionally
   grouped under ``settings:`` / ``thresholds:`` sections
3. environment variables (``.env`` is loaded into the environment first by
   :mod:`pipeline.wiring`, without overriding exported variables)
4. explicit overrides (CLI flags)

Execution mode is a single explicit setting (``GATE_MODE``); stages never
sniff the environment themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from quality_gate.domain import ConfigError, ExecutionMode


@dataclass(frozen=True)
class GateSettings:
    # Remote application host (diagnostics over SSH)
    remote_host: str = "fqge-app"
    remote_user: str = "root"
    ssh_key: str = "/root/.ssh/id_rsa"

    # Database (SQL*Plus)
    db_host: str = "oracle-db"
    db_user: str = "fqge_user"
    db_pass: str = "fqge_password"
    db_sid: str = "XE"

    # Mock API
    api_base_url: str = "http://mock-api:80"
    order_endpoint: str = "/api/order"
    order_expected_status: int = 200
    max_order_response_ms: float = 200

    # Load test (JMeter)
    jmeter_home: str = "/opt/jmeter"
    jmeter_script: str = "load_test.jmx"
    jmeter_results_file: str = "jmeter_results.jtl"
    jmeter_report_dir: str = "jmeter_report"

    # Performance thresholds
    min_throughput: float = 100
    max_avg_response_ms: float = 500
    max_error_rate: float = 1

    # Infrastructure thresholds
    max_disk_usage_pct: float = 90
    max_memory_usage_pct: float = 95

    # Execution
    command_timeout_seconds: float = 120
    load_test_timeout_seconds: float = 1800
    mode: ExecutionMode = ExecutionMode.LIVE
    log_file: str = "fqge_report.log"

    def template_values(self) -> Dict[str, str]:
        """Flat string mapping used to render command templates."""
        out: Dict[str, str] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            out[f.name] = v.value if isinstance(v, ExecutionMode) else _fmt_number(v)
        return out

    def with_overrides(self, overrides: Mapping[str, Any]) -> "GateSettings":
        return replace(self, **_coerce_mapping(overrides, source="overrides"))


SECRET_FIELDS = frozenset({"db_pass"})

_FIELD_DEFAULTS: Dict[str, Any] = {f.name: f.default for f in fields(GateSettings)}

ENV_KEYS: Dict[str, str] = {name: name.upper() for name in _FIELD_DEFAULTS}
ENV_KEYS["mode"] = "GATE_MODE"

_ENV_TO_FIELD: Dict[str, str] = {v: k for k, v in ENV_KEYS.items()}


def _fmt_number(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _coerce(name: str, raw: Any, *, source: str) -> Any:
    default = _FIELD_DEFAULTS[name]
    try:
        if isinstance(default, ExecutionMode):
            return ExecutionMode.parse(raw)
        if name.endswith("_status"):
            return int(str(raw).strip())
        if isinstance(default, (int, float)):
            value = float(str(raw).strip())
            if value < 0:
                raise ValueError("must be >= 0")
            return value
    except ValueError as e:
        raise ConfigError(f"Invalid value for {ENV_KEYS[name]} ({source}): {raw!r} ({e})") from e
    return str(raw)


def _field_name(key: str) -> Optional[str]:
    k = str(key).strip()
    if k in _FIELD_DEFAULTS:
        return k
    if k in _ENV_TO_FIELD:
        return _ENV_TO_FIELD[k]
    if k.lower() in _FIELD_DEFAULTS:
        return k.lower()
    return None


def _coerce_mapping(raw: Mapping[str, Any], *, source: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        name = _field_name(key)
        if name is None:
            raise ConfigError(f"Unknown setting {key!r} ({source})")
        out[name] = _coerce(name, value, source=source)
    return out


def load_yaml_settings(path: Path) -> Dict[str, Any]:
    """Read a YAML settings file into a flat, coerced mapping."""
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {p} ({e})") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config YAML must be a mapping at top level: {p}")

    flat: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("settings", "thresholds") and isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return _coerce_mapping(flat, source=str(p))


def settings_from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    picked = {ENV_KEYS[name]: env[ENV_KEYS[name]] for name in _FIELD_DEFAULTS if ENV_KEYS[name] in env}
    # Empty strings behave like "unset", matching ${VAR:-default}.
    picked = {k: v for k, v in picked.items() if str(v).strip() != ""}
    return _coerce_mapping(picked, source="environment")


def load_settings(
    *,
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> GateSettings:
    """Resolve settings from defaults, YAML, environment and overrides."""
    merged: Dict[str, Any] = {}
    if config_path is not None:
        merged.update(load_yaml_settings(config_path))
    merged.update(settings_from_env(os.environ if env is None else env))
    if overrides:
        merged.update(_coerce_mapping(overrides, source="overrides"))
    return replace(GateSettings(), **merged)
