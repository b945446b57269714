from __future__ import annotations

import re
from dataclasses import dataclass
from threading import Lock

import httpx

from . import db
from .backends import VersionSource
from .errors import VersionFetchFailure
from .settings import settings

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


class HttpVersionSource:
    """Ask the backend which protocol generation it speaks.

    Expected JSON: {"version": "2.5.1", ...}.
    Raises VersionFetchFailure with the reason; the gate treats that as
    "unknown" and probes again on its next check.
    """

    def __init__(
        self,
        timeout_s: float | None = None,
        path: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout_s = settings.version_timeout_s if timeout_s is None else timeout_s
        self.path = settings.version_path if path is None else path
        self.transport = transport

    def url_for(self, server_addr: str) -> str:
        base = server_addr.strip().rstrip("/")
        if "://" not in base:
            base = f"http://{base}"
        return f"{base}{self.path}"

    def fetch_version(self, server_addr: str) -> str:
        url = self.url_for(server_addr)
        try:
            with httpx.Client(timeout=self.timeout_s, follow_redirects=False, transport=self.transport) as client:
                resp = client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise VersionFetchFailure(f"{url}: {type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise VersionFetchFailure(f"{url}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise VersionFetchFailure(f"{url}: invalid JSON") from e
        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str) or not version.strip():
            raise VersionFetchFailure(f"{url}: no version in {data!r}")
        return version.strip()


def parse_version(version: str) -> tuple[int, int, int]:
    """'2.5.1-beta' -> (2, 5, 1). Missing or non-numeric parts count as 0."""
    parts: list[int] = []
    for raw in version.strip().lstrip("vV").split(".")[:3]:
        m = _LEADING_DIGITS.match(raw)
        parts.append(int(m.group(1)) if m else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def compare_versions(a: str, b: str) -> int:
    pa, pb = parse_version(a), parse_version(b)
    if pa < pb:
        return -1
    if pa > pb:
        return 1
    return 0


@dataclass(frozen=True)
class Unknown:
    pass


@dataclass(frozen=True)
class Known:
    version: str


VersionState = Unknown | Known


class VersionGate:
    """Lazily fetched backend version plus the >= threshold kill switch.

    A successful fetch is kept for the life of the process; a failed one
    leaves the state Unknown and the next call probes again.
    """

    def __init__(
        self,
        source: VersionSource,
        server_addr: str | None = None,
        threshold: str | None = None,
    ) -> None:
        self.source = source
        self.server_addr = settings.server_addr if server_addr is None else server_addr
        self.threshold = settings.gate_version if threshold is None else threshold
        self._lock = Lock()
        self._state: VersionState = Unknown()
        self._probing = False

    @property
    def state(self) -> VersionState:
        return self._state

    def current_version(self, probe: bool = True) -> str | None:
        """Cached version, probing once if still Unknown.

        Only one caller probes at a time; others see None (unknown)
        instead of queueing behind the network call.
        """
        with self._lock:
            if isinstance(self._state, Known):
                return self._state.version
            if not probe or self._probing:
                return None
            self._probing = True
        fetched = None
        try:
            fetched = self.source.fetch_version(self.server_addr)
        except Exception as e:
            db.log_event("WARN", f"Version probe failed: {type(e).__name__}: {e}")
        finally:
            with self._lock:
                self._probing = False
                if fetched:
                    self._state = Known(fetched)
        if not fetched:
            db.log_event("WARN", f"Backend version unknown ({self.server_addr}); will retry")
            return None
        db.log_event("INFO", f"Backend version: {fetched}")
        return fetched

    def is_gated(self, version: str | None) -> bool:
        return version is not None and compare_versions(version, self.threshold) >= 0

    def blocks(self, probe: bool = True) -> bool:
        """True when this cycle must be skipped.

        Backends at or above the threshold speak a newer protocol that is
        not implemented; the engine logs and does nothing for them.

        With probe=False only the cached version is consulted, so push
        callbacks never wait on the network.
        """
        version = self.current_version(probe=probe)
        if not self.is_gated(version):
            return False
        db.log_event("WARN", f"Backend version {version} >= {self.threshold}: new protocol not implemented, skipping")
        return True
