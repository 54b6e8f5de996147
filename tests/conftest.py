import os as _os
import sys

import pytest

# Ensure project root is importable (so `import vdr` works without installing the package)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from vdr.errors import ContainerNotFound, OracleUnavailable, RuntimeUnavailable  # noqa: E402
from vdr.events import EventLog  # noqa: E402
from vdr.models import ContainerDescriptor  # noqa: E402
from vdr.state_store import StateStore  # noqa: E402


class FakeOracle:
    """Answers from a dict of catalog_id -> version; `fail` makes every call raise."""

    def __init__(self, versions=None):
        self.versions = dict(versions or {})
        self.fail = False
        self.calls = []

    def fetch_version(self, catalog_id):
        self.calls.append(catalog_id)
        if self.fail:
            raise OracleUnavailable("connection refused")
        return self.versions[catalog_id]


class FakeRuntime:
    def __init__(self):
        self.running = {}
        self.unreachable = False
        self.fail_on = set()
        self.exit_status = 0
        self.calls = []

    def _maybe_fail(self, op):
        if self.unreachable:
            raise RuntimeUnavailable("daemon unreachable")
        if op in self.fail_on:
            raise RuntimeUnavailable(f"{op} failed")

    def is_running(self, name):
        self.calls.append(("is_running", name))
        self._maybe_fail("is_running")
        if name not in self.running:
            raise ContainerNotFound(f"No such container: {name}")
        return self.running[name]

    def restart(self, name):
        self.calls.append(("restart", name))
        self._maybe_fail("restart")

    def pull(self, image, tag):
        self.calls.append(("pull", image, tag))
        self._maybe_fail("pull")
        return f"{image}:{tag}"

    def build(self, context_path, tag):
        self.calls.append(("build", context_path, tag))
        self._maybe_fail("build")
        return tag

    def recreate(self, name, image_ref):
        self.calls.append(("recreate", name, image_ref))
        self._maybe_fail("recreate")

    def run_command(self, cwd, command, timeout_s=None):
        self.calls.append(("run_command", cwd, command, timeout_s))
        self._maybe_fail("run_command")
        return self.exit_status

    def ops(self):
        return [c[0] for c in self.calls]


class RecordingStore(StateStore):
    def __init__(self, directory):
        super().__init__(directory)
        self.saves = []

    def save(self, name, state, **fields):
        self.saves.append((name, state.current_version))
        return super().save(name, state, **fields)


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def store(tmp_path):
    return RecordingStore(tmp_path / "state")


@pytest.fixture
def events(tmp_path):
    return EventLog(str(tmp_path / "events.db"))


@pytest.fixture
def svc1():
    return ContainerDescriptor(name="svc1", catalog_id=10, action="restart")
