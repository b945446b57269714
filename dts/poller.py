from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from threading import Event, Thread

from . import db
from .backends import ServiceDirectory
from .bridge import EventBridge
from .reconciler import Reconciler
from .settings import settings
from .version import VersionGate


@dataclass
class SweepResult:
    gated: bool = False
    failed: bool = False
    services: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)


class Poller:
    """Periodic full sweep over every service in the group.

    Each sweep reconciles all listed services (in parallel, bounded by
    `workers`), makes sure push listeners exist, then purges cached
    services that are no longer listed.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        bridge: EventBridge,
        gate: VersionGate,
        directory: ServiceDirectory,
        group: str | None = None,
        interval_s: float | None = None,
        workers: int | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.bridge = bridge
        self.gate = gate
        self.directory = directory
        self.group = settings.service_group if group is None else group
        self.interval_s = settings.poll_interval_s if interval_s is None else float(interval_s)
        self.workers = max(1, int(settings.sweep_workers if workers is None else workers))
        self._stop = Event()
        self._thr: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, name="dts-poller", daemon=True)
        self._thr.start()
        db.log_event("INFO", f"Started scheduled service polling with interval: {self.interval_s}s")

    def stop(self, timeout: float | None = None) -> bool:
        """Halt the timer. Returns False if a sweep is still running after `timeout`."""
        self._stop.set()
        thr = self._thr
        if thr is None:
            return True
        thr.join(timeout)
        return not thr.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep()
            except Exception as e:
                db.log_event("ERROR", f"Poller sweep failed: {type(e).__name__}: {e}")
            self._stop.wait(max(0.1, self.interval_s))

    def sweep(self) -> SweepResult:
        if self.gate.blocks():
            return SweepResult(gated=True)

        try:
            services = list(self.directory.list_services(self.group))
        except Exception as e:
            db.log_event("ERROR", f"Failed to poll services list: {type(e).__name__}: {e}")
            return SweepResult(failed=True)

        result = SweepResult(services=services)
        if services:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(services)), thread_name_prefix="dts-sweep") as pool:
                futures = {pool.submit(self._process, s): s for s in services}
                wait(futures)
            for fut, service in futures.items():
                exc = fut.exception()
                if exc is not None:
                    db.log_event("ERROR", f"Sweep step failed: {type(exc).__name__}: {exc}", service_name=service)

        listed = set(services)
        self.bridge.retain(listed)
        for stale in sorted(self.reconciler.cache.services() - listed):
            self.reconciler.purge(stale)
            result.pruned.append(stale)
        return result

    def _process(self, service: str) -> None:
        self.reconciler.reconcile(service)
        self.bridge.ensure_subscribed(service)
