"""Production implementations of dependency injection protocols.

This module provides real implementations that wrap actual external dependencies
(console, filesystem, subprocess, time). These are used in production code.

For testing, use mocks or test doubles instead of these implementations.
"""

import subprocess
import sys
import time
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from crawldeploy.core.protocols import FileSystemService


class ConsoleLogger:
    """Production logger that prints to console (stdout/stderr).

    Debug messages are only shown when verbose is enabled.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def info(self, message: str) -> None:
        """Print info message to stdout."""
        print(message)

    def warning(self, message: str) -> None:
        """Print warning message to stdout."""
        print(f"Warning: {message}")

    def error(self, message: str) -> None:
        """Print error message to stderr."""
        print(f"Error: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        """Print debug message to stdout when verbose."""
        if self.verbose:
            print(f"Debug: {message}")


class RealFileSystemService:
    """Production filesystem service using pathlib."""

    def exists(self, path: Union[str, Path]) -> bool:
        return Path(path).exists()

    def read_file(self, path: Union[str, Path]) -> str:
        with open(path, 'r') as f:
            return f.read()


class SubprocessExecutor:
    """Production process executor using real subprocess.run."""

    def run(
        self,
        cmd: List[str],
        timeout: Optional[float] = None
    ) -> subprocess.CompletedProcess:
        """Run command, capturing text output. Never raises on non-zero exit."""
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False
        )


class SystemTimeProvider:
    """Production time provider using real time module."""

    def current_time(self) -> float:
        return time.time()


class YamlConfigLoader:
    """Production config loader using real YAML parser."""

    def __init__(self, filesystem: FileSystemService):
        """Initialize with filesystem service for reading files."""
        self.fs = filesystem

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file and return parsed dictionary (empty file -> {})."""
        content = self.fs.read_file(path)
        return yaml.safe_load(content) or {}
