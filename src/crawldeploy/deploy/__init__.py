"""
Crawler deployment subsystem.

Converges one host to "crawler installed, enabled and running" through six
idempotent steps run in a fixed order.

Public API:
    - HostChannel, Supervisor: Protocol interfaces
    - SSHChannel, LocalChannel: Host channel implementations
    - SystemdSupervisor: systemctl-backed supervisor
    - ChannelFactory: Parse host strings
    - DeploymentPipeline: The ordered, fail-fast step runner
    - DeploymentError and its subclasses: Failure taxonomy
"""

from .base import (
    Artifact,
    CommandResult,
    DeploymentResult,
    FileStat,
    HostChannel,
    ManagedLink,
    ServiceRuntimeState,
    ServiceUnit,
    StepOutcome,
    Supervisor,
    UnitDefinitionState,
)
from .exceptions import (
    ChannelError,
    ConfigurationError,
    DeploymentError,
    LinkFailure,
    SupervisorCommandFailure,
    SupervisorQueryFailure,
    TransferFailure,
)
from .factory import ChannelFactory
from .local_channel import LocalChannel
from .host_report import HostReport, inspect_host
from .pipeline import DeploymentPipeline
from .ssh_channel import SSHChannel
from .steps import (
    BINARY_MODE,
    AssetSync,
    BinaryDeployer,
    DataLinkRepair,
    ServiceActivator,
    ServiceQuiescer,
    UnitInstaller,
)
from .systemd import SystemdSupervisor

__all__ = [
    # Protocols and types
    "HostChannel",
    "Supervisor",
    "Artifact",
    "CommandResult",
    "DeploymentResult",
    "FileStat",
    "ManagedLink",
    "ServiceRuntimeState",
    "ServiceUnit",
    "StepOutcome",
    "UnitDefinitionState",

    # Steps and pipeline
    "BINARY_MODE",
    "AssetSync",
    "DataLinkRepair",
    "ServiceQuiescer",
    "UnitInstaller",
    "BinaryDeployer",
    "ServiceActivator",
    "DeploymentPipeline",

    # Inspection
    "HostReport",
    "inspect_host",

    # Factory
    "ChannelFactory",

    # Exceptions
    "DeploymentError",
    "ChannelError",
    "TransferFailure",
    "LinkFailure",
    "SupervisorQueryFailure",
    "SupervisorCommandFailure",
    "ConfigurationError",

    # Implementations
    "SSHChannel",
    "LocalChannel",
    "SystemdSupervisor",
]
