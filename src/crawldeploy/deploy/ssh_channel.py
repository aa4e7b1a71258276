"""
SSHChannel - Drive a remote Linux host over SSH.

Targets: the crawler's production host (any systemd-based Linux)
Strategy: ssh for commands, rsync into a staging file + install(1) for files,
          sudo -n for privilege escalation
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Optional

from crawldeploy.core import ProcessExecutor, SubprocessExecutor
from .modes import format_mode
from .base import CommandResult, FileStat
from .exceptions import ChannelError, LinkFailure, TransferFailure

logger = logging.getLogger(__name__)

# ssh reserves this exit status for its own (connection/auth) errors
SSH_ERROR_STATUS = 255
ABSENT_MARKER = "__absent__"


class SSHChannel:
    """
    Synchronous command/file-transfer channel to one host over SSH.

    Requirements on the host: SSH server, sudo without password for the
    deploying user when become=True, coreutils (install, ln, stat, sha256sum).
    """

    def __init__(
        self,
        user: Optional[str],
        host: str,
        ssh_port: int = 22,
        become: bool = True,
        connect_timeout: int = 10,
        command_timeout: float = 300,
        executor: Optional[ProcessExecutor] = None
    ):
        """
        Initialize SSH channel.

        Args:
            user: SSH username, or None to use the ssh client default
            host: IP or hostname (IPv6 without brackets)
            ssh_port: SSH port (default: 22)
            become: Run host commands through "sudo -n" (deploying principal is root)
            connect_timeout: SSH ConnectTimeout in seconds
            command_timeout: Upper bound for any single command or transfer
            executor: Process executor (default: real subprocess)
        """
        self.user = user
        self.host = host
        self.ssh_port = ssh_port
        self.become = become
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.executor = executor or SubprocessExecutor()

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def describe(self) -> str:
        return f"{self.destination}:{self.ssh_port}"

    def _ssh_options(self) -> list[str]:
        return [
            "-p", str(self.ssh_port),
            "-o", "BatchMode=yes",  # Never prompt; fail instead
            "-o", f"ConnectTimeout={self.connect_timeout}",
        ]

    def _ssh_cmd(self, command: str) -> list[str]:
        """Build SSH command with port and non-interactive options."""
        return ["ssh", *self._ssh_options(), self.destination, command]

    def _privileged(self, command: str) -> str:
        if not self.become:
            return command
        return f"sudo -n sh -c {shlex.quote(command)}"

    def _run(self, cmd: list[str]) -> CommandResult:
        """Run a local ssh/rsync process, mapping transport problems to ChannelError."""
        logger.debug("running: %s", " ".join(cmd))
        try:
            result = self.executor.run(cmd, timeout=self.command_timeout)
        except subprocess.TimeoutExpired as e:
            raise ChannelError(
                f"Command timed out after {self.command_timeout}s on {self.describe()}: "
                f"{' '.join(cmd[-1:])}"
            ) from e
        except OSError as e:
            raise ChannelError(f"Failed to launch {cmd[0]}: {e}") from e
        return CommandResult(result.returncode, result.stdout or "", result.stderr or "")

    def _run_ssh(self, command: str) -> CommandResult:
        result = self._run(self._ssh_cmd(command))
        if result.returncode == SSH_ERROR_STATUS:
            raise ChannelError(
                f"SSH connection to {self.describe()} failed\n"
                f"Error: {result.stderr.strip()}\n\n"
                f"Troubleshooting:\n"
                f"  1. Verify SSH access: ssh -p {self.ssh_port} {self.destination}\n"
                f"  2. Check network: ping {self.host}"
            )
        return result

    def check_connection(self) -> None:
        """
        Verify passwordless SSH (and passwordless sudo when become=True).

        Raises:
            ChannelError: If the host cannot be driven non-interactively
        """
        try:
            result = self._run_ssh("sudo -n true" if self.become else "true")
        except ChannelError as e:
            raise ChannelError(
                f"Passwordless SSH not configured for {self.destination}\n\n"
                f"Deployment requires key-based SSH authentication.\n"
                f"  ssh-copy-id {'-p ' + str(self.ssh_port) + ' ' if self.ssh_port != 22 else ''}"
                f"{self.destination}\n\n"
                f"{e}"
            ) from e

        if not result.ok:
            raise ChannelError(
                f"Passwordless sudo not available for {self.destination}\n"
                f"Error: {result.stderr.strip()}\n\n"
                f"Add a sudoers rule for the deploying user, or disable "
                f"'transport.become' if it already is root."
            )

    def execute(self, command: str) -> CommandResult:
        return self._run_ssh(self._privileged(command))

    def _query(self, path: str, check: str) -> Optional[str]:
        """Run check (a command mentioning {path}) if path exists; None if absent.

        "[ -e ]" is also false for unsearchable directories and symlink loops,
        so absence is only reported when stat itself says the path is missing.
        """
        quoted = shlex.quote(path)
        command = (
            f"if [ -e {quoted} ]; then {check.format(path=quoted)}; "
            f"else err=$(LC_ALL=C stat -L {quoted} 2>&1); case \"$err\" in "
            f"*'No such file or directory'*) echo {ABSENT_MARKER} ;; "
            f"*) echo \"$err\" >&2; exit 1 ;; esac; fi"
        )
        result = self.execute(command)
        output = result.stdout.strip()
        if not result.ok or not output:
            raise ChannelError(
                f"Could not inspect {path} on {self.describe()} "
                f"(exit {result.returncode}): {result.stderr.strip()}"
            )
        if output == ABSENT_MARKER:
            return None
        return output

    def path_exists(self, path: str) -> bool:
        return self._query(path, "echo present") is not None

    def stat(self, path: str) -> Optional[FileStat]:
        output = self._query(path, "stat -L -c '%a %U %G' {path}")
        if output is None:
            return None
        try:
            mode, owner, group = output.split()
            return FileStat(int(mode, 8), owner, group)
        except ValueError as e:
            raise ChannelError(f"Unexpected stat output for {path}: {output!r}") from e

    def file_digest(self, path: str) -> Optional[str]:
        output = self._query(path, "sha256sum {path}")
        return output.split()[0] if output else None

    def _rsync_target(self, remote_path: str) -> str:
        host = f"[{self.host}]" if ':' in self.host else self.host
        user = f"{self.user}@" if self.user else ""
        return f"{user}{host}:{remote_path}"

    def _remove_staging(self, staging: str) -> None:
        # Best effort: a leftover staging file does not fail the transfer
        try:
            result = self._run_ssh(f"rm -f {shlex.quote(staging)}")
        except ChannelError as e:
            logger.warning("could not remove staging file %s on %s: %s", staging, self.describe(), e)
            return
        if not result.ok:
            logger.warning(
                "could not remove staging file %s on %s: %s",
                staging, self.describe(), result.stderr.strip()
            )

    def copy_file(self, source: Path, destination: str, owner: Optional[str],
                  group: Optional[str], mode: int) -> None:
        """
        Copy source to destination on the host with explicit metadata.

        Steps:
            1. mktemp a staging file as the SSH user
            2. rsync the artifact into the staging file
            3. install(1) it over destination as the deploying principal
            4. remove the staging file

        Raises:
            TransferFailure: If any step fails (connectivity included)
        """
        source = Path(source)
        if not source.is_file():
            raise TransferFailure(f"Artifact not found: {source}")

        try:
            staged = self._run_ssh("mktemp /tmp/crawldeploy.XXXXXX")
            if not staged.ok or not staged.stdout.strip():
                raise TransferFailure(
                    f"Could not create staging file on {self.describe()}: "
                    f"{staged.stderr.strip()}"
                )
            staging = staged.stdout.strip()

            try:
                rsync_cmd = [
                    "rsync",
                    "--checksum",
                    "-e", "ssh " + " ".join(self._ssh_options()),
                    str(source),
                    self._rsync_target(staging),
                ]
                copied = self._run(rsync_cmd)
                if not copied.ok:
                    raise TransferFailure(
                        f"rsync of {source} to {self.describe()} failed "
                        f"(exit {copied.returncode})\n"
                        f"Error: {copied.stderr.strip()}\n\n"
                        f"Troubleshooting:\n"
                        f"  1. Check disk space on host: ssh {self.destination} df -h /tmp"
                    )

                install = ["install", "-D", "-m", format_mode(mode)]
                if owner:
                    install += ["-o", owner]
                if group:
                    install += ["-g", group]
                install += [staging, destination]
                installed = self.execute(shlex.join(install))
                if not installed.ok:
                    raise TransferFailure(
                        f"Failed to install {destination} on {self.describe()} "
                        f"(exit {installed.returncode}): {installed.stderr.strip()}"
                    )
            finally:
                self._remove_staging(staging)
        except ChannelError as e:
            raise TransferFailure(f"Transfer of {source} to {destination} aborted: {e}") from e

        logger.debug("installed %s -> %s (%s)", source, destination, format_mode(mode))

    def force_symlink(self, target: str, link: str) -> None:
        """
        ln -sfnT: replace any link or file at link; the target may be dangling.

        Raises:
            LinkFailure: If the link cannot be created (e.g. a directory is in the way)
        """
        command = f"ln -sfnT {shlex.quote(target)} {shlex.quote(link)}"
        try:
            result = self.execute(command)
        except ChannelError as e:
            raise LinkFailure(f"Could not link {link} -> {target}: {e}") from e
        if not result.ok:
            raise LinkFailure(
                f"Could not link {link} -> {target} on {self.describe()} "
                f"(exit {result.returncode}): {result.stderr.strip()}"
            )
