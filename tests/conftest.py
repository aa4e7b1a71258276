"""Shared fixtures: an in-memory host that is both HostChannel and Supervisor.

FakeHost records every side effect in `events`, in order, so tests can assert
on causal ordering (e.g. stop happens before the binary copy).
"""
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

from crawldeploy.deploy import (
    CommandResult,
    FileStat,
    ServiceRuntimeState,
    SupervisorCommandFailure,
)
from crawldeploy.utils.config import config_from_dict

UNIT_DIR = "/etc/systemd/system"
SERVICE = "minoru-fediverse-crawler"


@dataclass
class FakeFile:
    content: bytes
    owner: str
    group: str
    mode: int


class FakeHost:
    """In-memory host: files, symlinks and systemd units."""

    def __init__(self, unit_dir: str = UNIT_DIR):
        self.unit_dir = unit_dir
        self.files = {}
        self.links = {}
        self.running = set()
        self.enabled = set()
        self.loaded = set()
        self.events = []
        # operation key -> exception raised instead of performing it
        self.failures = {}

    def _maybe_fail(self, key):
        if key in self.failures:
            raise self.failures[key]

    # HostChannel

    def describe(self) -> str:
        return "fake-host"

    def check_connection(self) -> None:
        self._maybe_fail("connect")

    def execute(self, command: str) -> CommandResult:
        self.events.append(("execute", command))
        if command.startswith("test -L "):
            path = command[len("test -L "):].strip("'")
            return CommandResult(0 if path in self.links else 1)
        return CommandResult(0)

    def copy_file(self, source, destination, owner, group, mode) -> None:
        self._maybe_fail(("copy", destination))
        self.events.append(("copy", destination))
        self.links.pop(destination, None)
        self.files[destination] = FakeFile(
            Path(source).read_bytes(), owner or "root", group or "root", mode
        )

    def force_symlink(self, target: str, link: str) -> None:
        self._maybe_fail(("link", link))
        self.events.append(("link", link, target))
        self.files.pop(link, None)
        self.links[link] = target

    def path_exists(self, path: str) -> bool:
        self._maybe_fail(("exists", path))
        if path in self.files:
            return True
        # A symlink "exists" only if its target does
        return path in self.links and self.links[path] in self.files

    def stat(self, path: str) -> Optional[FileStat]:
        f = self.files.get(path)
        return FileStat(f.mode, f.owner, f.group) if f else None

    def file_digest(self, path: str) -> Optional[str]:
        f = self.files.get(path)
        return hashlib.sha256(f.content).hexdigest() if f else None

    # Supervisor

    def _unit_path(self, name: str) -> str:
        return f"{self.unit_dir}/{name}.service"

    def unit_exists(self, name: str) -> bool:
        self._maybe_fail("unit_exists")
        self.events.append(("unit_exists", name))
        return self._unit_path(name) in self.files

    def stop(self, name: str) -> None:
        self._maybe_fail("stop")
        self.events.append(("stop", name))
        self.running.discard(name)

    def reload_definitions(self) -> None:
        self._maybe_fail("reload")
        self.events.append(("reload",))
        self.loaded = {
            path.rsplit('/', 1)[-1][:-len(".service")]
            for path in self.files if path.startswith(self.unit_dir + "/")
        }

    def start(self, name: str) -> None:
        self._maybe_fail("start")
        if name not in self.loaded:
            raise SupervisorCommandFailure(f"Unit {name}.service not found.")
        self.events.append(("start", name))
        self.running.add(name)

    def enable_on_boot(self, name: str) -> None:
        self._maybe_fail("enable")
        self.events.append(("enable", name))
        self.enabled.add(name)

    def query_status(self, name: str) -> ServiceRuntimeState:
        if self._unit_path(name) not in self.files:
            return ServiceRuntimeState.NOT_INSTALLED
        return ServiceRuntimeState.RUNNING if name in self.running else ServiceRuntimeState.STOPPED

    def is_enabled(self, name: str) -> bool:
        return name in self.enabled

    # Helpers for tests

    def snapshot(self):
        """Comparable view of the whole host state."""
        files = {
            path: (f.content, f.owner, f.group, f.mode) for path, f in self.files.items()
        }
        return files, dict(self.links), set(self.running), set(self.enabled)

    def put_file(self, path, content=b"", owner="root", group="root", mode=0o644):
        self.files[path] = FakeFile(content, owner, group, mode)

    def event_names(self):
        return [e[0] for e in self.events]

    def install_previous_release(self, config):
        """Put the host in the "already deployed and running" state."""
        unit = config.unit_artifact()
        binary = config.binary_artifact()
        self.files[unit.destination] = FakeFile(b"[Unit]\nold\n", "root", "root", 0o644)
        self.files[binary.destination] = FakeFile(b"old-binary", "fedicrawler", "fedicrawler", 0o500)
        self.loaded.add(config.unit.name)
        self.running.add(config.unit.name)
        self.enabled.add(config.unit.name)


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def artifact_dir(tmp_path):
    """Directory holding freshly "built" artifacts."""
    d = tmp_path / "build"
    d.mkdir()
    (d / SERVICE).write_bytes(b"\x7fELF new crawler build")
    (d / "index.html").write_text("<html><body>Fediverse instances</body></html>\n")
    (d / f"{SERVICE}.service").write_text(
        "[Service]\nUser=fedicrawler\nExecStart=/home/fedicrawler/minoru-fediverse-crawler\n"
    )
    return d


@pytest.fixture
def config(artifact_dir):
    """Default production layout, artifacts taken from artifact_dir."""
    return config_from_dict(
        {
            'artifacts': {
                'binary': SERVICE,
                'asset': 'index.html',
                'unit': f"{SERVICE}.service",
            }
        },
        base_dir=artifact_dir,
    )
