"""Thread-safe in-memory backends.

They implement the collaborator protocols for the demo process and tests.
Listeners are called synchronously on the mutating thread, after the
backend lock is released, so a listener may read the backend again.
"""
from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Callable, Iterable

from .errors import BackendUnavailable
from .models import Instance, ToolDefinition
from .settings import settings


def _notify(listeners: Iterable[Callable[[str], None]], arg: str) -> None:
    for cb in listeners:
        cb(arg)


class InMemoryDirectory:
    def __init__(self) -> None:
        self.lock = Lock()
        self.available = True
        self._instances: dict[tuple[str, str], list[Instance]] = {}  # (group, service) -> instances
        self._listeners: dict[tuple[str, str], list[Callable[[str], None]]] = defaultdict(list)

    def _check(self) -> None:
        if not self.available:
            raise BackendUnavailable("service directory unavailable")

    def list_services(self, group: str) -> list[str]:
        self._check()
        with self.lock:
            return sorted(svc for (g, svc) in self._instances if g == group)

    def list_instances(self, service: str, group: str) -> list[Instance]:
        self._check()
        with self.lock:
            return list(self._instances.get((group, service), []))

    def subscribe(self, service: str, group: str, on_event: Callable[[str], None]) -> None:
        self._check()
        with self.lock:
            listeners = self._listeners[(group, service)]
            if on_event not in listeners:
                listeners.append(on_event)

    def listener_count(self, service: str, group: str | None = None) -> int:
        group = settings.service_group if group is None else group
        with self.lock:
            return len(self._listeners.get((group, service), []))

    def set_instances(self, service: str, instances: list[Instance], group: str | None = None) -> None:
        group = settings.service_group if group is None else group
        with self.lock:
            self._instances[(group, service)] = list(instances)
            listeners = list(self._listeners.get((group, service), []))
        _notify(listeners, service)

    def register_instance(self, service: str, instance: Instance | None = None, group: str | None = None) -> None:
        group = settings.service_group if group is None else group
        with self.lock:
            self._instances.setdefault((group, service), []).append(instance or Instance())
            listeners = list(self._listeners.get((group, service), []))
        _notify(listeners, service)

    def deregister_service(self, service: str, group: str | None = None) -> bool:
        group = settings.service_group if group is None else group
        with self.lock:
            existed = self._instances.pop((group, service), None) is not None
            listeners = list(self._listeners.get((group, service), []))
        if existed:
            _notify(listeners, service)
        return existed


class InMemoryConfigStore:
    def __init__(self) -> None:
        self.lock = Lock()
        self.available = True
        self._configs: dict[tuple[str, str], str] = {}  # (group, key) -> content
        self._listeners: dict[tuple[str, str], list[Callable[[str], None]]] = defaultdict(list)

    def get_config(self, key: str, group: str, timeout_ms: int) -> str | None:
        if not self.available:
            raise BackendUnavailable("config store unavailable")
        with self.lock:
            return self._configs.get((group, key))

    def add_listener(self, key: str, group: str, on_change: Callable[[str], None]) -> None:
        if not self.available:
            raise BackendUnavailable("config store unavailable")
        with self.lock:
            listeners = self._listeners[(group, key)]
            if on_change not in listeners:
                listeners.append(on_change)

    def listener_count(self, key: str, group: str | None = None) -> int:
        group = settings.service_group if group is None else group
        with self.lock:
            return len(self._listeners.get((group, key), []))

    def publish_config(self, key: str, content: str, group: str | None = None) -> None:
        group = settings.service_group if group is None else group
        with self.lock:
            self._configs[(group, key)] = content
            listeners = list(self._listeners.get((group, key), []))
        _notify(listeners, key)

    def delete_config(self, key: str, group: str | None = None) -> bool:
        group = settings.service_group if group is None else group
        with self.lock:
            existed = self._configs.pop((group, key), None) is not None
            listeners = list(self._listeners.get((group, key), []))
        if existed:
            _notify(listeners, key)
        return existed


class InMemoryToolSink:
    """Tool registry keyed by tool name; upsert refreshes, remove ignores absent names."""

    def __init__(self) -> None:
        self.lock = Lock()
        self._tools: dict[str, ToolDefinition] = {}

    def upsert(self, tool: ToolDefinition) -> None:
        with self.lock:
            self._tools[tool.name] = tool

    def remove(self, tool_name: str) -> None:
        with self.lock:
            self._tools.pop(tool_name, None)

    def get(self, tool_name: str) -> ToolDefinition | None:
        with self.lock:
            return self._tools.get(tool_name)

    def list(self) -> list[ToolDefinition]:
        with self.lock:
            return [self._tools[k] for k in sorted(self._tools)]

    def names(self) -> set[str]:
        with self.lock:
            return set(self._tools)
