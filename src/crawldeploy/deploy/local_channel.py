"""
LocalChannel - Deploy onto the machine crawldeploy itself runs on.

Same contract as SSHChannel, implemented with os/shutil. Files and links are
written next to their destination first and then renamed over it, so the
destination is always either the old or the new version.
"""

import grp
import hashlib
import os
import pwd
import shutil
import stat as stat_module
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from crawldeploy.core import ProcessExecutor, SubprocessExecutor
from .base import CommandResult, FileStat
from .exceptions import ChannelError, LinkFailure, TransferFailure


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


class LocalChannel:
    """Host channel for local:// targets. Must run as the deploying principal."""

    def __init__(self, command_timeout: float = 300, executor: Optional[ProcessExecutor] = None):
        self.command_timeout = command_timeout
        self.executor = executor or SubprocessExecutor()

    def describe(self) -> str:
        return "local://"

    def check_connection(self) -> None:
        pass

    def execute(self, command: str) -> CommandResult:
        try:
            result = self.executor.run(["sh", "-c", command], timeout=self.command_timeout)
        except subprocess.TimeoutExpired as e:
            raise ChannelError(f"Command timed out after {self.command_timeout}s: {command}") from e
        except OSError as e:
            raise ChannelError(f"Failed to run {command!r}: {e}") from e
        return CommandResult(result.returncode, result.stdout or "", result.stderr or "")

    def copy_file(self, source: Path, destination: str, owner: Optional[str],
                  group: Optional[str], mode: int) -> None:
        source = Path(source)
        if not source.is_file():
            raise TransferFailure(f"Artifact not found: {source}")

        dest = Path(destination)
        tmp_path = None
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{dest.name}.", dir=dest.parent)
            os.close(fd)
            shutil.copyfile(source, tmp_path)
            if owner or group:
                shutil.chown(tmp_path, user=owner, group=group)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, dest)
            tmp_path = None
        except (OSError, LookupError) as e:
            raise TransferFailure(f"Failed to install {source} as {destination}: {e}") from e
        finally:
            if tmp_path is not None and os.path.lexists(tmp_path):
                os.unlink(tmp_path)

    def force_symlink(self, target: str, link: str) -> None:
        link_path = Path(link)
        tmp_link = link_path.with_name(f".{link_path.name}.crawldeploy-tmp")
        try:
            if os.path.lexists(tmp_link):
                os.unlink(tmp_link)
            os.symlink(target, tmp_link)
            os.replace(tmp_link, link_path)
        except OSError as e:
            if os.path.lexists(tmp_link):
                os.unlink(tmp_link)
            raise LinkFailure(f"Could not link {link} -> {target}: {e}") from e

    def path_exists(self, path: str) -> bool:
        """False only when the path is missing; any other lookup error raises ChannelError."""
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ChannelError(f"Could not check {path}: {e}") from e
        return True

    def stat(self, path: str) -> Optional[FileStat]:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ChannelError(f"Could not stat {path}: {e}") from e
        return FileStat(stat_module.S_IMODE(st.st_mode), _user_name(st.st_uid), _group_name(st.st_gid))

    def file_digest(self, path: str) -> Optional[str]:
        try:
            with open(path, 'rb') as f:
                return hashlib.sha256(f.read()).hexdigest()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ChannelError(f"Could not read {path}: {e}") from e
