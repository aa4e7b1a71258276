"""
Read-only inspection of a host's deployment state.

Used by the status command to report where a host stands relative to the
state a deployment converges to. Never modifies the host.
"""

import hashlib
import shlex
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .modes import format_mode, has_write_bits
from .base import (
    Artifact,
    FileStat,
    HostChannel,
    ServiceRuntimeState,
    Supervisor,
    UnitDefinitionState,
)

if TYPE_CHECKING:
    from crawldeploy.utils.config import DeployConfig


@dataclass
class HostReport:
    """Snapshot of one host."""
    host: str
    unit_definition: UnitDefinitionState
    runtime_state: ServiceRuntimeState
    enabled_on_boot: bool
    binary: Optional[FileStat]
    asset: Optional[FileStat]
    link_present: bool
    problems: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.problems


def local_digest(artifact: Artifact) -> Optional[str]:
    """SHA-256 of the local artifact, or None if it has not been built."""
    try:
        with open(artifact.source, 'rb') as f:
            return hashlib.sha256(f.read()).hexdigest()
    except FileNotFoundError:
        return None


def unit_definition_state(channel: HostChannel, artifact: Artifact) -> UnitDefinitionState:
    """Compare the installed unit file with the local one.

    A missing local unit file makes any installed file count as current,
    since there is nothing to compare against.
    """
    remote = channel.file_digest(artifact.destination)
    if remote is None:
        return UnitDefinitionState.ABSENT
    local = local_digest(artifact)
    if local is None or local == remote:
        return UnitDefinitionState.CURRENT
    return UnitDefinitionState.STALE


def inspect_host(config: 'DeployConfig', channel: HostChannel, supervisor: Supervisor) -> HostReport:
    """Collect a HostReport. Query failures propagate."""
    unit = config.unit
    binary_artifact = config.binary_artifact()
    asset_artifact = config.asset_artifact()

    definition = unit_definition_state(channel, config.unit_artifact())
    runtime = supervisor.query_status(unit.name)
    enabled = runtime != ServiceRuntimeState.NOT_INSTALLED and supervisor.is_enabled(unit.name)
    binary = channel.stat(binary_artifact.destination)
    asset = channel.stat(asset_artifact.destination)
    link = config.managed_link()
    link_present = channel.execute(f"test -L {shlex.quote(link.link_path)}").ok

    problems = []
    if definition != UnitDefinitionState.CURRENT:
        problems.append(f"unit definition is {definition.value}")
    if runtime != ServiceRuntimeState.RUNNING:
        problems.append(f"service is {runtime.value}")
    if not enabled:
        problems.append("service is not enabled on boot")
    if binary is None:
        problems.append(f"{binary_artifact.destination} missing")
    elif has_write_bits(binary.mode) or binary.mode != binary_artifact.mode:
        problems.append(
            f"{binary_artifact.destination} has mode {format_mode(binary.mode)}, "
            f"expected {format_mode(binary_artifact.mode)}"
        )
    if asset is None:
        problems.append(f"{asset_artifact.destination} missing")
    if not link_present:
        problems.append(f"{link.link_path} is not a symlink")

    return HostReport(
        host=channel.describe(),
        unit_definition=definition,
        runtime_state=runtime,
        enabled_on_boot=enabled,
        binary=binary,
        asset=asset,
        link_present=link_present,
        problems=problems,
    )
