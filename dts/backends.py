"""Collaborator contracts and the error taxonomy.

The engine only talks to the outside world through these four protocols.
Implementations may block up to their own timeouts and may raise; the
engine contains every exception and reports it through the event journal.
"""
from __future__ import annotations

from typing import Callable, Protocol

from .errors import BackendUnavailable, MalformedConfig, SinkError, ToolSyncError, VersionFetchFailure
from .models import Instance, ToolDefinition

__all__ = [
    "BackendUnavailable",
    "ConfigStore",
    "MalformedConfig",
    "ServiceDirectory",
    "SinkError",
    "ToolSink",
    "ToolSyncError",
    "VersionFetchFailure",
    "VersionSource",
]


InstanceListener = Callable[[str], None]  # service name
ConfigListener = Callable[[str], None]  # changed config key


class ServiceDirectory(Protocol):
    def list_services(self, group: str) -> list[str]: ...

    def list_instances(self, service: str, group: str) -> list[Instance]: ...

    def subscribe(self, service: str, group: str, on_event: InstanceListener) -> None:
        """Register for instance-change push. Must be idempotent."""
        ...


class ConfigStore(Protocol):
    def get_config(self, key: str, group: str, timeout_ms: int) -> str | None: ...

    def add_listener(self, key: str, group: str, on_change: ConfigListener) -> None:
        """Register for config-change push. Must be idempotent."""
        ...


class VersionSource(Protocol):
    def fetch_version(self, server_addr: str) -> str | None: ...


class ToolSink(Protocol):
    """Registry that actually exposes tools.

    Both calls must tolerate redundancy: upserting a present tool is a
    refresh, removing an absent tool is a no-op.
    """

    def upsert(self, tool: ToolDefinition) -> None: ...

    def remove(self, tool_name: str) -> None: ...

