"""Deployment configuration loaded from YAML.

Every key has a default that reproduces the crawler's production layout, so an
empty (or missing) config file describes a valid deployment. Artifact paths
are resolved relative to the directory of the config file.
"""
import os
import yaml
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from crawldeploy.core import ConfigLoader, RealFileSystemService, YamlConfigLoader
from crawldeploy.deploy.base import Artifact, ManagedLink, ServiceUnit
from crawldeploy.deploy.exceptions import ConfigurationError
from crawldeploy.deploy.steps import BINARY_MODE
from crawldeploy.deploy.modes import parse_mode

DEFAULT_CONFIG_PATH = "configs/crawldeploy.yaml"


@dataclass
class ServiceSettings:
    name: str = "minoru-fediverse-crawler"
    user: str = "fedicrawler"
    group: str = "fedicrawler"


@dataclass
class PathSettings:
    home: str = "/home/fedicrawler"
    web_root: str = "/home/fedicrawler/www"
    unit_dir: str = "/etc/systemd/system"


@dataclass
class ArtifactSettings:
    binary: str = "target/release/minoru-fediverse-crawler"
    asset: str = "index.html"
    unit: str = "ansible/minoru-fediverse-crawler.service"
    asset_mode: str = "u=rw,go=r"
    unit_mode: str = "u=rw,go=r"


@dataclass
class LinkSettings:
    name: str = "instances.json"
    # Defaults to <home>/<name>
    target: Optional[str] = None


@dataclass
class TransportSettings:
    become: bool = True
    connect_timeout: int = 10
    command_timeout: float = 300


_SECTIONS = {
    'service': ServiceSettings,
    'paths': PathSettings,
    'artifacts': ArtifactSettings,
    'data_link': LinkSettings,
    'transport': TransportSettings,
}


@dataclass
class DeployConfig:
    """Everything one deployment run needs besides the target host."""
    service: ServiceSettings = field(default_factory=ServiceSettings)
    paths: PathSettings = field(default_factory=PathSettings)
    artifacts: ArtifactSettings = field(default_factory=ArtifactSettings)
    data_link: LinkSettings = field(default_factory=LinkSettings)
    transport: TransportSettings = field(default_factory=TransportSettings)
    base_dir: Path = field(default_factory=Path.cwd)

    def _local(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.base_dir / p

    @property
    def unit(self) -> ServiceUnit:
        return ServiceUnit(
            name=self.service.name,
            definition_path=f"{self.paths.unit_dir.rstrip('/')}/{self.service.name}.service",
        )

    def asset_artifact(self) -> Artifact:
        source = self._local(self.artifacts.asset)
        return Artifact(
            source=source,
            destination=f"{self.paths.web_root.rstrip('/')}/{source.name}",
            owner=self.service.user,
            group=self.service.group,
            mode=parse_mode(self.artifacts.asset_mode),
        )

    def managed_link(self) -> ManagedLink:
        target = self.data_link.target or f"{self.paths.home.rstrip('/')}/{self.data_link.name}"
        return ManagedLink(
            link_path=f"{self.paths.web_root.rstrip('/')}/{self.data_link.name}",
            target_path=target,
        )

    def unit_artifact(self) -> Artifact:
        # Owned by the deploying principal (root)
        return Artifact(
            source=self._local(self.artifacts.unit),
            destination=self.unit.definition_path,
            owner=None,
            group=None,
            mode=parse_mode(self.artifacts.unit_mode),
        )

    def binary_artifact(self) -> Artifact:
        source = self._local(self.artifacts.binary)
        return Artifact(
            source=source,
            destination=f"{self.paths.home.rstrip('/')}/{source.name}",
            owner=self.service.user,
            group=self.service.group,
            mode=BINARY_MODE,
        )

    def with_artifacts(self, binary: Optional[str] = None, asset: Optional[str] = None,
                       unit: Optional[str] = None) -> 'DeployConfig':
        """Copy with artifact paths overridden (CLI paths are relative to cwd)."""
        artifacts = replace(self.artifacts)
        if binary:
            artifacts.binary = str(Path(binary).resolve())
        if asset:
            artifacts.asset = str(Path(asset).resolve())
        if unit:
            artifacts.unit = str(Path(unit).resolve())
        config = replace(self, artifacts=artifacts)
        validate_config(config)
        return config


def _build_section(name: str, values: Any):
    cls = _SECTIONS[name]
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known, key=str)
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in section '{name}': {', '.join(map(str, unknown))}\n"
            f"Expected: {', '.join(sorted(known))}"
        )
    return cls(**values)


def config_from_dict(data: Optional[Dict[str, Any]], base_dir: Optional[Path] = None) -> DeployConfig:
    """Build and validate a DeployConfig from parsed YAML."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    unknown = sorted(set(data) - set(_SECTIONS), key=str)
    if unknown:
        raise ConfigurationError(
            f"Unknown section(s): {', '.join(map(str, unknown))}\n"
            f"Expected: {', '.join(_SECTIONS)}"
        )

    sections = {name: _build_section(name, data.get(name)) for name in _SECTIONS}
    config = DeployConfig(base_dir=base_dir or Path.cwd(), **sections)
    validate_config(config)
    return config


def validate_config(config: DeployConfig) -> None:
    """Check invariants that YAML typing alone cannot express.

    Raises:
        ConfigurationError: On the first violated rule
    """
    for key in ('name', 'user', 'group'):
        value = getattr(config.service, key)
        if not isinstance(value, str) or not value or '/' in value:
            raise ConfigurationError(f"service.{key} must be a non-empty name, got {value!r}")

    for key in ('home', 'web_root', 'unit_dir'):
        value = getattr(config.paths, key)
        if not isinstance(value, str) or not value.startswith('/'):
            raise ConfigurationError(f"paths.{key} must be an absolute host path, got {value!r}")

    link = config.data_link
    if not isinstance(link.name, str) or not link.name or '/' in link.name:
        raise ConfigurationError(f"data_link.name must be a file name, got {link.name!r}")
    if link.target is not None and not str(link.target).startswith('/'):
        raise ConfigurationError(f"data_link.target must be an absolute host path, got {link.target!r}")

    for key in ('binary', 'asset', 'unit'):
        value = getattr(config.artifacts, key)
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"artifacts.{key} must be a path, got {value!r}")

    unit_file = os.path.basename(config.artifacts.unit)
    if unit_file != f"{config.service.name}.service":
        raise ConfigurationError(
            f"Unit file {unit_file!r} does not match service name "
            f"(expected {config.service.name}.service)"
        )

    for key in ('asset_mode', 'unit_mode'):
        value = getattr(config.artifacts, key)
        # YAML reads 644 as decimal and an unquoted 0644 as 420
        if not isinstance(value, str):
            raise ConfigurationError(
                f"artifacts.{key} must be a quoted string such as '0644' or 'u=rw,go=r', "
                f"got {value!r}"
            )
        # Raises ConfigurationError for malformed modes
        parse_mode(value)

    transport = config.transport
    if not isinstance(transport.become, bool):
        raise ConfigurationError(f"transport.become must be true/false, got {transport.become!r}")
    # ssh only accepts whole seconds for ConnectTimeout
    timeout = transport.connect_timeout
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise ConfigurationError(
            f"transport.connect_timeout must be a positive whole number of seconds, got {timeout!r}"
        )
    timeout = transport.command_timeout
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError(f"transport.command_timeout must be a positive number, got {timeout!r}")


def load_config(
    config_path: Optional[str] = None,
    loader: Optional[ConfigLoader] = None
) -> DeployConfig:
    """Load deployment configuration.

    Args:
        config_path: YAML file to read. None means DEFAULT_CONFIG_PATH when it
            exists, built-in defaults otherwise
        loader: Config loader (default: YAML from the real filesystem)

    Returns:
        Validated DeployConfig

    Raises:
        ConfigurationError: If the file is missing (explicit path), unparsable or invalid
    """
    fs = RealFileSystemService()
    loader = loader or YamlConfigLoader(fs)

    if config_path is None:
        if not fs.exists(DEFAULT_CONFIG_PATH):
            return config_from_dict({})
        config_path = DEFAULT_CONFIG_PATH

    try:
        data = loader.load_yaml(config_path)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_path}") from e
    except (yaml.YAMLError, OSError) as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}") from e

    base_dir = Path(config_path).resolve().parent
    return config_from_dict(data, base_dir=base_dir)
