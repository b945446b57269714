from __future__ import annotations

from threading import Lock

from . import db
from .backends import ConfigStore, ServiceDirectory
from .models import service_from_config_key, tools_config_key
from .reconciler import Reconciler
from .settings import settings
from .version import VersionGate


class EventBridge:
    """Turns backend push notifications into single-service reconciliations.

    Callbacks arrive on whatever thread the backend client uses and may
    overlap with the poller; the reconciler serializes per service.
    They only read the cached backend version; probing is left to the poller.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        gate: VersionGate,
        directory: ServiceDirectory,
        config_store: ConfigStore,
        group: str | None = None,
        tools_suffix: str | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.gate = gate
        self.directory = directory
        self.config_store = config_store
        self.group = settings.service_group if group is None else group
        self.tools_suffix = settings.tools_suffix if tools_suffix is None else tools_suffix
        self._lock = Lock()
        self._subscribed: set[str] = set()

    def ensure_subscribed(self, service: str) -> bool:
        """Register instance and tool-config listeners for a service once."""
        with self._lock:
            if service in self._subscribed:
                return True
        try:
            self.directory.subscribe(service, self.group, self.on_instance_change)
            self.config_store.add_listener(tools_config_key(service, self.tools_suffix), self.group, self.on_config_change)
        except Exception as e:
            db.log_event("ERROR", f"Failed to subscribe: {type(e).__name__}: {e}", service_name=service)
            return False
        with self._lock:
            self._subscribed.add(service)
        return True

    def subscribed(self) -> set[str]:
        with self._lock:
            return set(self._subscribed)

    def retain(self, services: set[str]) -> None:
        """Forget subscriptions of services that are no longer listed."""
        with self._lock:
            self._subscribed &= services

    def on_instance_change(self, service: str) -> None:
        if not service or self.gate.blocks(probe=False):
            return
        db.log_event("INFO", "Received service instance change event", service_name=service)
        self.reconciler.reconcile(service)

    def on_config_change(self, key: str) -> None:
        service = service_from_config_key(key, self.tools_suffix)
        if service is None or self.gate.blocks(probe=False):
            return
        db.log_event("INFO", f"Received config change event for {key}", service_name=service)
        self.reconciler.reconcile(service)
