"""
Deployment types and the two seams of the deployment core.

HostChannel is the synchronous command/file-transfer channel to exactly one
target host. Supervisor is the process-supervision capability set consumed
by the convergence steps. Both are Protocols so that tests can substitute an
in-memory host.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Protocol, runtime_checkable


@dataclass
class CommandResult:
    """Outcome of one command executed on the host."""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class FileStat:
    """
    Metadata of a host path.

    Attributes:
        mode: Permission bits only (e.g. 0o500), without file type bits
        owner: Owning user name
        group: Owning group name
    """
    mode: int
    owner: str
    group: str


@dataclass
class Artifact:
    """
    A file copied from the control machine to the host.

    Sync is a full overwrite: after success the destination content, owner,
    group and mode equal what is declared here. owner/group of None leave the
    ownership to whatever the deploying principal produces.
    """
    source: Path
    destination: str
    owner: Optional[str]
    group: Optional[str]
    mode: int


@dataclass
class ManagedLink:
    """Symbolic reference link_path -> target_path; the target may not exist."""
    link_path: str
    target_path: str


class UnitDefinitionState(Enum):
    ABSENT = "absent"
    STALE = "present-stale"
    CURRENT = "present-current"


class ServiceRuntimeState(Enum):
    NOT_INSTALLED = "not-installed"
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class ServiceUnit:
    """A supervisor-managed service definition."""
    name: str
    definition_path: str


@dataclass
class StepOutcome:
    """Record of one convergence step that completed."""
    name: str
    description: str
    duration_seconds: float


@dataclass
class DeploymentResult:
    """
    Result of a successful deployment run.

    Attributes:
        success: Always True; failures raise instead of returning
        host: Description of the target host
        steps: Completed steps, in execution order
        metadata: Unit name, binary path, stop-skipped flag, etc.
    """
    success: bool
    host: str
    steps: List[StepOutcome] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]


@runtime_checkable
class HostChannel(Protocol):
    """
    Reliable synchronous command/file-transfer channel to one host.

    Implementations:
        - SSHChannel: ssh + rsync to a remote Linux host
        - LocalChannel: the machine crawldeploy runs on

    Connectivity problems raise ChannelError. The typed deployment errors
    (TransferFailure, LinkFailure) are raised by the transfer operations
    themselves.
    """

    def describe(self) -> str:
        """Human readable target, e.g. "deploy@crawler.example:22"."""
        ...

    def check_connection(self) -> None:
        """Fail fast (ChannelError) when the host cannot be driven non-interactively."""
        ...

    def execute(self, command: str) -> CommandResult:
        """Run a shell command on the host, with privilege escalation if configured.

        Non-zero exit statuses are returned, not raised.
        """
        ...

    def copy_file(self, source: Path, destination: str, owner: Optional[str],
                  group: Optional[str], mode: int) -> None:
        """Overwrite destination with source and set its metadata (TransferFailure)."""
        ...

    def force_symlink(self, target: str, link: str) -> None:
        """Replace whatever is at link with a symlink to target (LinkFailure)."""
        ...

    def path_exists(self, path: str) -> bool:
        """True if path exists on the host (ChannelError if that can't be decided)."""
        ...

    def stat(self, path: str) -> Optional[FileStat]:
        """Metadata of path, or None if it does not exist."""
        ...

    def file_digest(self, path: str) -> Optional[str]:
        """SHA-256 hex digest of path, or None if it does not exist."""
        ...


@runtime_checkable
class Supervisor(Protocol):
    """
    Process-supervision capability set.

    Implementations:
        - SystemdSupervisor: systemctl through a HostChannel
    """

    def unit_exists(self, name: str) -> bool:
        """Whether the unit definition is installed (SupervisorQueryFailure if unknown)."""
        ...

    def stop(self, name: str) -> None:
        ...

    def reload_definitions(self) -> None:
        ...

    def start(self, name: str) -> None:
        ...

    def enable_on_boot(self, name: str) -> None:
        ...

    def query_status(self, name: str) -> ServiceRuntimeState:
        ...

    def is_enabled(self, name: str) -> bool:
        ...
