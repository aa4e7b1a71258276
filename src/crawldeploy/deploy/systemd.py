"""
SystemdSupervisor - the supervisor capability set on top of systemctl.

Every call goes through the host channel, so the same class drives a remote
host (SSHChannel) or the local machine (LocalChannel).
"""

import shlex

from .base import HostChannel, ServiceRuntimeState
from .exceptions import ChannelError, SupervisorCommandFailure, SupervisorQueryFailure

DEFAULT_UNIT_DIR = "/etc/systemd/system"

# Output of "systemctl is-active" for units whose process is up
_RUNNING_STATES = {"active", "activating", "reloading", "deactivating"}
_ENABLED_STATES = {"enabled", "enabled-runtime"}


class SystemdSupervisor:
    """Supervisor implementation for systemd hosts."""

    def __init__(self, channel: HostChannel, unit_dir: str = DEFAULT_UNIT_DIR):
        self.channel = channel
        self.unit_dir = unit_dir.rstrip('/') or '/'

    def definition_path(self, name: str) -> str:
        """Path of the unit-definition file for a unit name."""
        file_name = name if name.endswith(".service") else f"{name}.service"
        return f"{self.unit_dir}/{file_name}"

    def _systemctl(self, *args: str) -> str:
        command = "systemctl " + " ".join(shlex.quote(a) for a in args)
        try:
            result = self.channel.execute(command)
        except ChannelError as e:
            raise SupervisorCommandFailure(f"'{command}' could not be issued: {e}") from e
        if not result.ok:
            raise SupervisorCommandFailure(
                f"'{command}' failed (exit {result.returncode}): "
                f"{result.stderr.strip() or result.stdout.strip()}"
            )
        return result.stdout

    def unit_exists(self, name: str) -> bool:
        """
        Whether the unit-definition file is installed.

        Raises:
            SupervisorQueryFailure: If the host could not answer
        """
        path = self.definition_path(name)
        try:
            return self.channel.path_exists(path)
        except ChannelError as e:
            raise SupervisorQueryFailure(f"Cannot determine whether {path} exists: {e}") from e

    def stop(self, name: str) -> None:
        self._systemctl("stop", name)

    def reload_definitions(self) -> None:
        self._systemctl("daemon-reload")

    def start(self, name: str) -> None:
        self._systemctl("start", name)

    def enable_on_boot(self, name: str) -> None:
        self._systemctl("enable", name)

    def _state_word(self, verb: str, name: str) -> str:
        # is-active/is-enabled exit non-zero for negative answers; only the
        # printed state word is meaningful
        command = f"systemctl {verb} {shlex.quote(name)}"
        try:
            result = self.channel.execute(command)
        except ChannelError as e:
            raise SupervisorQueryFailure(f"'{command}' could not be issued: {e}") from e
        lines = result.stdout.strip().splitlines()
        if not lines:
            raise SupervisorQueryFailure(
                f"'{command}' gave no answer (exit {result.returncode}): {result.stderr.strip()}"
            )
        return lines[0].strip()

    def query_status(self, name: str) -> ServiceRuntimeState:
        if not self.unit_exists(name):
            return ServiceRuntimeState.NOT_INSTALLED
        if self._state_word("is-active", name) in _RUNNING_STATES:
            return ServiceRuntimeState.RUNNING
        return ServiceRuntimeState.STOPPED

    def is_enabled(self, name: str) -> bool:
        return self._state_word("is-enabled", name) in _ENABLED_STATES
