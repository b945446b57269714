from __future__ import annotations

import time
from typing import Any

from . import db
from .backends import ConfigStore, ServiceDirectory, ToolSink, VersionSource
from .bridge import EventBridge
from .cache import ServiceToolCache
from .poller import Poller
from .reconciler import Reconciler
from .settings import settings
from .version import VersionGate


class ToolsWatcher:
    """Wires cache, gate, reconciler, poller and push bridge together.

    Construction probes the backend version and starts the periodic sweep
    (pass autostart=False to start later).
    """

    def __init__(
        self,
        directory: ServiceDirectory,
        config_store: ConfigStore,
        sink: ToolSink,
        version_source: VersionSource,
        group: str | None = None,
        server_addr: str | None = None,
        interval_s: float | None = None,
        config_timeout_ms: int | None = None,
        workers: int | None = None,
        stop_grace_s: float | None = None,
        autostart: bool = True,
    ) -> None:
        self.stop_grace_s = settings.stop_grace_s if stop_grace_s is None else float(stop_grace_s)
        self.cache = ServiceToolCache()
        self.gate = VersionGate(version_source, server_addr=server_addr)
        self.reconciler = Reconciler(
            directory,
            config_store,
            sink,
            self.cache,
            group=group,
            config_timeout_ms=config_timeout_ms,
        )
        self.bridge = EventBridge(self.reconciler, self.gate, directory, config_store, group=group)
        self.poller = Poller(
            self.reconciler,
            self.bridge,
            self.gate,
            directory,
            group=group,
            interval_s=interval_s,
            workers=workers,
        )
        if autostart:
            self.start()

    def start(self) -> None:
        if self.poller.running:
            return
        db.init_db()
        self.gate.current_version()
        self.poller.start()

    def stop(self, grace_s: float | None = None) -> bool:
        """Stop the timer, then wait up to the grace period for in-flight work.

        Returns True when everything finished inside the grace period.
        """
        grace = self.stop_grace_s if grace_s is None else max(0.0, float(grace_s))
        deadline = time.monotonic() + grace
        poller_done = self.poller.stop(timeout=grace)
        idle = self.reconciler.wait_idle(timeout=max(0.0, deadline - time.monotonic()))
        if not (poller_done and idle):
            db.log_event("WARN", f"Stopped with reconciliation still in flight after {grace}s")
        db.log_event("INFO", "Stopped scheduled service polling")
        return poller_done and idle

    def sweep(self):
        return self.poller.sweep()

    def status(self) -> dict[str, Any]:
        version = self.gate.current_version()
        return {
            "version": version,
            "gated": self.gate.is_gated(version),
            "running": self.poller.running,
            "in_flight": self.reconciler.in_flight,
            "subscribed": sorted(self.bridge.subscribed()),
            "services": self.cache.snapshot(),
        }
