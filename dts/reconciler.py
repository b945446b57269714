from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Condition
from typing import Iterator

from . import db
from .backends import ConfigStore, MalformedConfig, ServiceDirectory, ToolSink
from .cache import ServiceToolCache
from .models import ToolDefinition, has_healthy_enabled_instance, parse_tools_document, tools_config_key
from .settings import settings


@dataclass
class ReconcileResult:
    service: str
    eligible: bool
    upserted: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


class Reconciler:
    """Applies one service's published tools to the sink.

    A service is eligible when it has at least one healthy and enabled
    instance and a tool document. Eligible services get every listed tool
    upserted and tools that disappeared from the document removed;
    ineligible services lose every tool we registered for them.
    """

    def __init__(
        self,
        directory: ServiceDirectory,
        config_store: ConfigStore,
        sink: ToolSink,
        cache: ServiceToolCache,
        group: str | None = None,
        tools_suffix: str | None = None,
        config_timeout_ms: int | None = None,
    ) -> None:
        self.directory = directory
        self.config_store = config_store
        self.sink = sink
        self.cache = cache
        self.group = settings.service_group if group is None else group
        self.tools_suffix = settings.tools_suffix if tools_suffix is None else tools_suffix
        self.config_timeout_ms = settings.config_timeout_ms if config_timeout_ms is None else int(config_timeout_ms)
        self._idle = Condition()
        self._active = 0

    @contextmanager
    def _tracked(self) -> Iterator[None]:
        with self._idle:
            self._active += 1
        try:
            yield
        finally:
            with self._idle:
                self._active -= 1
                self._idle.notify_all()

    @property
    def in_flight(self) -> int:
        with self._idle:
            return self._active

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no reconciliation is running. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout)

    def reconcile(self, service: str) -> ReconcileResult | None:
        """Run one apply-diff cycle. Returns None when the cycle was abandoned."""
        with self._tracked(), self.cache.hold(service):
            try:
                return self._reconcile(service)
            except Exception as e:
                # Retried naturally by the next sweep or push event.
                db.log_event("ERROR", f"Failed to update tools: {type(e).__name__}: {e}", service_name=service)
                return None

    def purge(self, service: str) -> list[str]:
        """Drop every tool registered for a service that no longer exists."""
        with self._tracked(), self.cache.hold(service):
            db.log_event("INFO", "Service no longer listed; removing its tools", service_name=service)
            return self._remove_all(service)

    def _reconcile(self, service: str) -> ReconcileResult | None:
        raw = self._fetch_config(service)
        instances = self.directory.list_instances(service, self.group)

        if not instances or not has_healthy_enabled_instance(instances) or raw is None:
            if service in self.cache:
                db.log_event(
                    "INFO",
                    "No healthy and enabled instance or no tool config; removing all tools",
                    service_name=service,
                )
            return ReconcileResult(service=service, eligible=False, removed=self._remove_all(service))

        try:
            tools = parse_tools_document(raw)
        except MalformedConfig as e:
            db.log_event("WARN", f"Ignoring malformed tool config, keeping current tools: {e}", service_name=service)
            return None

        if not tools:
            if service in self.cache:
                db.log_event("INFO", "Tool config lists no tools; removing all tools", service_name=service)
            return ReconcileResult(service=service, eligible=True, removed=self._remove_all(service))

        previous = self.cache.get(service)
        result = ReconcileResult(service=service, eligible=True)
        current: set[str] = set()
        for tool in tools:
            current.add(tool.name)
            if self._upsert(service, tool, is_new=tool.name not in previous):
                result.upserted.append(tool.name)

        pending: set[str] = set()
        for name in sorted(previous - current):
            if self._remove_tool(service, name, reason="obsolete"):
                result.removed.append(name)
            else:
                pending.add(name)

        # Failed removals stay cached so the next cycle retries them.
        self.cache.put(service, current | pending)
        return result

    def _fetch_config(self, service: str) -> str | None:
        key = tools_config_key(service, self.tools_suffix)
        try:
            return self.config_store.get_config(key, self.group, self.config_timeout_ms)
        except Exception as e:
            db.log_event(
                "WARN",
                f"Tool config fetch failed, treating as absent: {type(e).__name__}: {e}",
                service_name=service,
            )
            return None

    def _upsert(self, service: str, tool: ToolDefinition, is_new: bool) -> bool:
        stamped = tool.model_copy(update={"service_name": service})
        try:
            self.sink.upsert(stamped)
        except Exception as e:
            db.log_event("ERROR", f"Failed to add tool: {type(e).__name__}: {e}", service_name=service, tool_name=tool.name)
            return False
        if is_new:
            db.log_event("INFO", "Added tool", service_name=service, tool_name=tool.name)
        return True

    def _remove_all(self, service: str) -> list[str]:
        removed: list[str] = []
        pending: set[str] = set()
        for name in sorted(self.cache.remove(service)):
            if self._remove_tool(service, name):
                removed.append(name)
            else:
                pending.add(name)
        if pending:
            self.cache.put(service, pending)
        return removed

    def _remove_tool(self, service: str, name: str, reason: str = "") -> bool:
        try:
            self.sink.remove(name)
        except Exception as e:
            db.log_event("ERROR", f"Failed to remove tool: {type(e).__name__}: {e}", service_name=service, tool_name=name)
            return False
        message = f"Removed {reason} tool" if reason else "Removed tool"
        db.log_event("INFO", message, service_name=service, tool_name=name)
        return True
