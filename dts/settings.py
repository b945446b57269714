from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("DTS_DB_PATH", "dts.db")
    service_group: str = os.getenv("DTS_SERVICE_GROUP", "DEFAULT_GROUP")
    tools_suffix: str = os.getenv("DTS_TOOLS_SUFFIX", "-mcp-tools.json")
    poll_interval_s: float = _env_float("DTS_POLL_INTERVAL_S", 30.0)
    config_timeout_ms: int = _env_int("DTS_CONFIG_TIMEOUT_MS", 5000)
    sweep_workers: int = _env_int("DTS_SWEEP_WORKERS", 4)
    stop_grace_s: float = _env_float("DTS_STOP_GRACE_S", 60.0)

    # Backend version probe
    server_addr: str = os.getenv("DTS_SERVER_ADDR", "127.0.0.1:8848")
    version_path: str = os.getenv("DTS_VERSION_PATH", "/nacos/v1/console/server/state")
    version_timeout_s: float = _env_float("DTS_VERSION_TIMEOUT_S", 3.0)
    gate_version: str = os.getenv("DTS_GATE_VERSION", "3.0.0")

    # Demo process: run the watcher inside the API process.
    autostart_watcher: bool = _env_bool("DTS_AUTOSTART_WATCHER", True)


settings = Settings()
