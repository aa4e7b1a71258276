"""Core dependency injection infrastructure for crawldeploy.

This module provides Protocol-based abstractions for every local side effect
(console output, subprocesses, clock, config files) together with their
production implementations. Remote side effects go through the host channel
in crawldeploy.deploy.

Design:
- Protocol-based abstractions (typing.Protocol) for structural typing
- Production implementations for real-world use
- Easy mocking for unit tests
"""

from crawldeploy.core.protocols import (
    Logger,
    FileSystemService,
    ProcessExecutor,
    ProcessResult,
    TimeProvider,
    ConfigLoader,
)

from crawldeploy.core.implementations import (
    ConsoleLogger,
    RealFileSystemService,
    SubprocessExecutor,
    SystemTimeProvider,
    YamlConfigLoader,
)

__all__ = [
    # Protocols
    "Logger",
    "FileSystemService",
    "ProcessExecutor",
    "ProcessResult",
    "TimeProvider",
    "ConfigLoader",
    # Implementations
    "ConsoleLogger",
    "RealFileSystemService",
    "SubprocessExecutor",
    "SystemTimeProvider",
    "YamlConfigLoader",
]
