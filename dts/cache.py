from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class _ServiceLock:
    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class ServiceToolCache:
    """What was last pushed to the sink, per service.

    This mirrors the sink, it is not authoritative over it. Entries exist
    for services whose last reconciliation was eligible with at least one
    tool, and for services with tool removals still pending a retry.

    `hold(service)` serializes poll and push reconciliations of the same
    service while leaving other services free. A service's lock lives
    only while someone holds or waits for it.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._tools: dict[str, frozenset[str]] = {}  # service -> applied tool names
        self._service_locks: dict[str, _ServiceLock] = {}

    def get(self, service: str) -> set[str]:
        with self.lock:
            return set(self._tools.get(service, ()))

    def put(self, service: str, tools: set[str] | frozenset[str]) -> None:
        with self.lock:
            self._tools[service] = frozenset(tools)

    def remove(self, service: str) -> set[str]:
        with self.lock:
            return set(self._tools.pop(service, ()))

    def services(self) -> set[str]:
        with self.lock:
            return set(self._tools)

    def snapshot(self) -> dict[str, list[str]]:
        with self.lock:
            return {svc: sorted(tools) for svc, tools in sorted(self._tools.items())}

    @contextmanager
    def hold(self, service: str) -> Iterator[None]:
        with self.lock:
            entry = self._service_locks.get(service)
            if entry is None:
                entry = self._service_locks[service] = _ServiceLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self.lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._service_locks[service]

    def held_services(self) -> set[str]:
        with self.lock:
            return set(self._service_locks)

    def __contains__(self, service: object) -> bool:
        with self.lock:
            return service in self._tools

    def __len__(self) -> int:
        with self.lock:
            return len(self._tools)
