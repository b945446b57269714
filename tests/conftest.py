import os
import sys
from dataclasses import replace

import pytest

# Ensure project root is importable (so `import dts` / `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dts import db  # noqa: E402
from dts.cache import ServiceToolCache  # noqa: E402
from dts.errors import SinkError  # noqa: E402
from dts.memory import InMemoryConfigStore, InMemoryDirectory, InMemoryToolSink  # noqa: E402
from dts.reconciler import Reconciler  # noqa: E402
from dts.settings import settings  # noqa: E402
from dts.version import VersionGate  # noqa: E402

GROUP = settings.service_group


class RecordingSink(InMemoryToolSink):
    """Sink that remembers every call in order."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    def upsert(self, tool) -> None:
        self.calls.append(("upsert", tool.name))
        if tool.name in self.fail_on:
            raise SinkError(f"sink rejected {tool.name}")
        super().upsert(tool)

    def remove(self, tool_name: str) -> None:
        self.calls.append(("remove", tool_name))
        if tool_name in self.fail_on:
            raise SinkError(f"sink rejected {tool_name}")
        super().remove(tool_name)


class CountingDirectory(InMemoryDirectory):
    def __init__(self) -> None:
        super().__init__()
        self.list_services_calls = 0
        self.list_instances_calls = 0
        self.broken: set[str] = set()

    def list_services(self, group):
        self.list_services_calls += 1
        return super().list_services(group)

    def list_instances(self, service, group):
        self.list_instances_calls += 1
        if service in self.broken:
            raise ConnectionError(f"directory lost {service}")
        return super().list_instances(service, group)


class CountingConfigStore(InMemoryConfigStore):
    def __init__(self) -> None:
        super().__init__()
        self.get_calls = 0

    def get_config(self, key, group, timeout_ms):
        self.get_calls += 1
        return super().get_config(key, group, timeout_ms)


class StaticVersion:
    """Version source answering from a script; the last answer repeats."""

    def __init__(self, *answers) -> None:
        self.answers = list(answers) or [None]
        self.calls = 0

    def fetch_version(self, server_addr):
        self.calls += 1
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Point the event journal at a per-test sqlite file."""
    monkeypatch.setattr(db, "settings", replace(settings, db_path=str(tmp_path / "events.db")))
    db.init_db()
    return db


@pytest.fixture
def directory():
    return CountingDirectory()


@pytest.fixture
def config_store():
    return CountingConfigStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def cache():
    return ServiceToolCache()


@pytest.fixture
def reconciler(directory, config_store, sink, cache):
    return Reconciler(directory, config_store, sink, cache, group=GROUP)


@pytest.fixture
def make_gate():
    def _make(*answers):
        return VersionGate(StaticVersion(*answers), server_addr="backend:8848", threshold="3.0.0")

    return _make
