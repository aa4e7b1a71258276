"""
Deployment exceptions.

Every failure is fatal for the run: it aborts the remaining steps and is never
retried here. Re-running the whole deployment is the recovery path.
"""

from typing import List, Optional


class DeploymentError(Exception):
    """
    Raised when deployment fails at any step.

    Attributes:
        step: Name of the convergence step that failed (set by the pipeline)
        completed_steps: Steps that finished before the failure (set by the pipeline)
    """

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step
        self.completed_steps: List[str] = []


class ChannelError(DeploymentError):
    """
    Raised when the host cannot be reached or a remote command cannot complete.

    Examples:
        - SSH connection refused / host key rejected (ssh exit status 255)
        - Command exceeded the configured timeout
        - ssh or rsync executable missing on the control machine
    """
    pass


class TransferFailure(DeploymentError):
    """
    Raised when copying the asset, unit file or binary fails.

    Examples:
        - Permission denied / disk full on the host
        - Connectivity lost mid-transfer
        - Deployed binary does not carry the expected protective mode
    """
    pass


class LinkFailure(DeploymentError):
    """Raised when the managed symlink cannot be created or replaced."""
    pass


class SupervisorQueryFailure(DeploymentError):
    """
    Raised when the supervisor state cannot be determined.

    Distinct from a unit that is genuinely absent: treating "cannot tell" as
    "not installed" would skip the stop and overwrite a running executable.
    """
    pass


class SupervisorCommandFailure(DeploymentError):
    """Raised when stop/start/enable/reload is rejected by the supervisor."""
    pass


class ConfigurationError(DeploymentError, ValueError):
    """Raised for an invalid configuration file, mode string or host string."""
    pass
