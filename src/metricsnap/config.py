"""Configuration loading and validation for metricsnap."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class StateConfig:
    """Where baselines are kept and how old they may get."""

    directory: str = ""
    max_age_seconds: float | None = 600.0


@dataclass
class LinuxConfig:
    """Linux host plugin settings."""

    proc_stat: str = "/proc/stat"
    proc_vmstat: str = "/proc/vmstat"
    proc_diskstats: str = "/proc/diskstats"
    disk_exclude: str = r"^(ram|loop)\d+$"
    ss_command: list[str] = field(default_factory=lambda: ["ss", "-a"])
    ss_timeout_seconds: float = 10.0
    tempfile: str = ""


@dataclass
class MongoDBConfig:
    """MongoDB plugin settings."""

    host: str = "localhost"
    port: int = 27017
    username: str = ""
    password: str = field(default_factory=lambda: os.environ.get("MONGODB_PASSWORD", ""))
    timeout_seconds: float = 10.0
    verbose: bool = False
    tempfile: str = ""


@dataclass
class OtelExporterConfig:
    """OpenTelemetry exporter settings."""

    endpoint: str = "http://localhost:4318"
    service_name: str = "metricsnap"
    headers: dict[str, str] = field(default_factory=dict)
    export_interval_ms: int = 10000


@dataclass
class LocalExporterConfig:
    """Local file exporter settings."""

    enabled: bool = False
    output_dir: str = "./metricsnap_data"
    format: str = "jsonl"


@dataclass
class AgentExporterConfig:
    """Monitoring agent (stdout) exporter settings."""

    enabled: bool = True


@dataclass
class MetricsnapConfig:
    """Top-level metricsnap configuration."""

    mode: str = "local"
    state: StateConfig = field(default_factory=StateConfig)
    linux: LinuxConfig = field(default_factory=LinuxConfig)
    mongodb: MongoDBConfig = field(default_factory=MongoDBConfig)
    otel: OtelExporterConfig = field(default_factory=OtelExporterConfig)
    local_exporter: LocalExporterConfig = field(default_factory=LocalExporterConfig)
    agent_exporter: AgentExporterConfig = field(default_factory=AgentExporterConfig)


def _merge_dict(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *source* into *target*."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge_dict(target[key], value)
        else:
            target[key] = value
    return target


_ENV_MAP: dict[str, tuple[str, ...]] = {
    "METRICSNAP_MODE": ("mode",),
    "METRICSNAP_STATE_DIR": ("state", "directory"),
    "METRICSNAP_STATE_MAX_AGE": ("state", "max_age_seconds"),
    "METRICSNAP_MONGODB_HOST": ("mongodb", "host"),
    "METRICSNAP_MONGODB_PORT": ("mongodb", "port"),
    "METRICSNAP_MONGODB_USERNAME": ("mongodb", "username"),
    "METRICSNAP_OTEL_ENDPOINT": ("otel", "endpoint"),
    "METRICSNAP_OTEL_SERVICE_NAME": ("otel", "service_name"),
    "METRICSNAP_LOCAL_OUTPUT_DIR": ("local_exporter", "output_dir"),
}

_INT_KEYS = {"port"}
_FLOAT_KEYS = {"max_age_seconds"}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using the METRICSNAP_ prefix."""
    for env_key, path in _ENV_MAP.items():
        value = os.environ.get(env_key)
        if value is None:
            continue
        obj = data
        for part in path[:-1]:
            obj = obj.setdefault(part, {})
        final_key = path[-1]
        if final_key in _INT_KEYS:
            obj[final_key] = int(value)
        elif final_key in _FLOAT_KEYS:
            obj[final_key] = float(value)
        else:
            obj[final_key] = value
    return data


def _section(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        data = {}
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _dict_to_config(data: dict[str, Any]) -> MetricsnapConfig:
    """Convert a raw dictionary to a MetricsnapConfig dataclass."""
    return MetricsnapConfig(
        mode=data.get("mode", "local"),
        state=_section(StateConfig, data.get("state")),
        linux=_section(LinuxConfig, data.get("linux")),
        mongodb=_section(MongoDBConfig, data.get("mongodb")),
        otel=_section(OtelExporterConfig, data.get("otel")),
        local_exporter=_section(LocalExporterConfig, data.get("local_exporter")),
        agent_exporter=_section(AgentExporterConfig, data.get("agent_exporter")),
    )


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> MetricsnapConfig:
    """Load configuration from a YAML file with environment overrides.

    Looks for ``metricsnap.yaml`` in the current directory if *path* is None.
    *overrides* (typically from command-line flags) are merged last.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path("metricsnap.yaml")
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                data = loaded

    data = _apply_env_overrides(data)
    if overrides:
        _merge_dict(data, overrides)
    return _dict_to_config(data)
