"""
Convergence steps.

Each step brings one piece of host state to its desired value regardless of
the starting state, so any of them can be re-run after a failed deployment:

    AssetSync        static asset in the web root
    DataLinkRepair   web root symlink to the live data file
    ServiceQuiescer  stop the unit if its definition is installed
    UnitInstaller    unit-definition file in the supervisor directory
    BinaryDeployer   executable, not writable by anyone
    ServiceActivator reload definitions, start, enable on boot
"""

from typing import Protocol

from .base import Artifact, HostChannel, ManagedLink, ServiceUnit, Supervisor
from .exceptions import ChannelError, ConfigurationError, TransferFailure
from .modes import format_mode, has_write_bits

# u=rx,go= : the service may run its executable but never rewrite it
BINARY_MODE = 0o500


class ConvergenceStep(Protocol):
    name: str

    def describe(self) -> str:
        ...

    def apply(self) -> None:
        """Converge this piece of host state. Raises a DeploymentError subclass."""
        ...


class AssetSync:
    """Copy the static asset into the web root with explicit ownership and mode."""

    name = "asset-sync"

    def __init__(self, channel: HostChannel, artifact: Artifact):
        self.channel = channel
        self.artifact = artifact

    def describe(self) -> str:
        return f"Deploy {self.artifact.source.name} to {self.artifact.destination}"

    def apply(self) -> None:
        a = self.artifact
        self.channel.copy_file(a.source, a.destination, a.owner, a.group, a.mode)


class DataLinkRepair:
    """Force the managed symlink into place, even when its target does not exist yet.

    The target file is written by the running crawler, so on a first install it
    is normal for the link to dangle.
    """

    name = "data-link-repair"

    def __init__(self, channel: HostChannel, link: ManagedLink):
        self.channel = channel
        self.link = link

    def describe(self) -> str:
        return f"Link {self.link.link_path} -> {self.link.target_path}"

    def apply(self) -> None:
        self.channel.force_symlink(self.link.target_path, self.link.link_path)


class ServiceQuiescer:
    """Stop the unit before its binary is replaced, if the unit is installed.

    Stops whenever the definition exists, running or not; a first deployment
    (no definition) skips the stop. A failed query propagates as
    SupervisorQueryFailure and is never read as "not installed".
    """

    name = "service-quiescer"

    def __init__(self, supervisor: Supervisor, unit: ServiceUnit):
        self.supervisor = supervisor
        self.unit = unit
        self.stopped = False

    def describe(self) -> str:
        return f"Stop {self.unit.name} if {self.unit.definition_path} exists"

    def apply(self) -> None:
        self.stopped = False
        if not self.supervisor.unit_exists(self.unit.name):
            return
        self.supervisor.stop(self.unit.name)
        self.stopped = True


class UnitInstaller:
    """Copy the unit-definition file into the supervisor's directory. Always overwrites."""

    name = "unit-installer"

    def __init__(self, channel: HostChannel, artifact: Artifact):
        self.channel = channel
        self.artifact = artifact

    def describe(self) -> str:
        return f"Install unit file {self.artifact.destination}"

    def apply(self) -> None:
        a = self.artifact
        self.channel.copy_file(a.source, a.destination, a.owner, a.group, a.mode)


class BinaryDeployer:
    """Install the executable so that nobody, its owner included, can write it."""

    name = "binary-deployer"

    def __init__(self, channel: HostChannel, artifact: Artifact):
        if artifact.mode != BINARY_MODE:
            raise ConfigurationError(
                f"Executable mode must be {format_mode(BINARY_MODE)} (u=rx,go=), "
                f"got {format_mode(artifact.mode)}"
            )
        self.channel = channel
        self.artifact = artifact

    def describe(self) -> str:
        return f"Deploy {self.artifact.source.name} to {self.artifact.destination} (u=rx,go=)"

    def apply(self) -> None:
        a = self.artifact
        self.channel.copy_file(a.source, a.destination, a.owner, a.group, a.mode)

        try:
            deployed = self.channel.stat(a.destination)
        except ChannelError as e:
            raise TransferFailure(f"Could not verify {a.destination}: {e}") from e
        if deployed is None:
            raise TransferFailure(f"{a.destination} missing after copy")
        if has_write_bits(deployed.mode) or deployed.mode != a.mode:
            raise TransferFailure(
                f"{a.destination} has mode {format_mode(deployed.mode)}, "
                f"expected {format_mode(a.mode)}"
            )
        if a.owner and deployed.owner != a.owner:
            raise TransferFailure(
                f"{a.destination} is owned by {deployed.owner}, expected {a.owner}"
            )


class ServiceActivator:
    """Reload definitions, start the unit and enable it on boot. Unconditional."""

    name = "service-activator"

    def __init__(self, supervisor: Supervisor, unit: ServiceUnit):
        self.supervisor = supervisor
        self.unit = unit

    def describe(self) -> str:
        return f"Reload unit definitions, start and enable {self.unit.name}"

    def apply(self) -> None:
        self.supervisor.reload_definitions()
        self.supervisor.start(self.unit.name)
        self.supervisor.enable_on_boot(self.unit.name)
