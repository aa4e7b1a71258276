"""Protocol definitions for dependency injection.

This module defines Protocol-based abstractions for the external dependencies
of the deployment core (console output, local subprocesses, clock, local files,
configuration parsing). Protocols use structural typing, so any class that
implements these methods satisfies the Protocol without explicit inheritance.

Benefits:
- Easy to mock in tests (just implement the methods)
- No inheritance required
- Clear interface contracts
"""

from typing import Protocol, Dict, Any, Optional, List, Union
from pathlib import Path


class Logger(Protocol):
    """Abstraction for logging operations.

    Replaces direct print() statements throughout the codebase.
    """

    def info(self, message: str) -> None:
        """Log informational message."""
        ...

    def warning(self, message: str) -> None:
        """Log warning message."""
        ...

    def error(self, message: str) -> None:
        """Log error message."""
        ...

    def debug(self, message: str) -> None:
        """Log debug message."""
        ...


class FileSystemService(Protocol):
    """Abstraction for local filesystem reads."""

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if path exists."""
        ...

    def read_file(self, path: Union[str, Path]) -> str:
        """Read entire file as string."""
        ...


class ProcessResult(Protocol):
    """Shape of a finished subprocess (subprocess.CompletedProcess)."""

    returncode: int
    stdout: str
    stderr: str


class ProcessExecutor(Protocol):
    """Abstraction for process execution.

    Wraps subprocess.run so that ssh/rsync invocations can be tested
    without spawning real processes.
    """

    def run(
        self,
        cmd: List[str],
        timeout: Optional[float] = None
    ) -> ProcessResult:
        """Run command to completion and capture its output as text.

        Raises:
            subprocess.TimeoutExpired: If the command exceeds timeout
            OSError: If the executable cannot be started
        """
        ...


class TimeProvider(Protocol):
    """Abstraction for time operations."""

    def current_time(self) -> float:
        """Get current time in seconds since epoch."""
        ...


class ConfigLoader(Protocol):
    """Abstraction for configuration file loading.

    Wraps YAML loading to enable testing with mock configurations
    without requiring actual config files.
    """

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file and return parsed dictionary."""
        ...
