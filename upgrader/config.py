"""
Configuration management for upgrader.

Loads config.yaml from the upgrader home directory
($UPGRADER_HOME, default ~/.config/upgrader).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from upgrader.errors import ConfigError
from upgrader.registry import DEFAULT_ENTRY_POINT_GROUP

LOG_FORMATS = ("structured", "pretty")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Environment variables that override config.yaml values
ENV_OVERRIDES = {
    "UPGRADER_DATA_DIR": "data_dir",
    "UPGRADER_LOG_LEVEL": "log_level",
    "UPGRADER_CLUSTERED": "clustered",
}


def get_upgrader_home() -> Path:
    """Directory holding config.yaml and .env."""
    return Path(os.environ.get("UPGRADER_HOME", "~/.config/upgrader")).expanduser()


@dataclass
class UpgraderConfig:
    """
    Upgrader configuration.

    Attributes:
        data_dir: Directory holding node state
        version_file: Model version file (cluster-shared when
            local_version_file is set)
        local_version_file: Optional node-local model version file
        clustered: Whether this node is part of a cluster
        fresh_cluster: Override for cluster freshness detection
        entry_point_group: Entry point group scanned for upgrade plugins
        step_modules: Importable modules exposing register(registry)
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: "structured" (JSON) or "pretty" (rich console)
        log_file: Optional log file path
        env_file: Optional dotenv file loaded before overrides apply
    """
    data_dir: str
    version_file: Optional[str] = None
    local_version_file: Optional[str] = None
    clustered: bool = False
    fresh_cluster: Optional[bool] = None
    entry_point_group: str = DEFAULT_ENTRY_POINT_GROUP
    step_modules: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[str] = None
    env_file: Optional[str] = None

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level '{self.log_level}', expected one of {LOG_LEVELS}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Invalid log_format '{self.log_format}', expected one of {LOG_FORMATS}")
        if not isinstance(self.step_modules, list):
            raise ConfigError("step_modules must be a list of module names")

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def version_path(self) -> Path:
        if self.version_file:
            return Path(self.version_file).expanduser()
        return self.data_path / "model-versions.json"

    @property
    def local_version_path(self) -> Optional[Path]:
        if self.local_version_file:
            return Path(self.local_version_file).expanduser()
        return None

    @property
    def log_path(self) -> Optional[Path]:
        if self.log_file:
            return Path(self.log_file).expanduser()
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UpgraderConfig":
        """Build a config from a parsed config.yaml mapping."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        if "data_dir" not in data:
            raise ConfigError("Missing required config key: data_dir")
        return cls(**data)


def default_config_dict(home: Path) -> dict[str, Any]:
    """Contents written by `upgrader init`."""
    return {
        "data_dir": "~/.local/share/upgrader",
        "local_version_file": None,
        "clustered": False,
        "entry_point_group": DEFAULT_ENTRY_POINT_GROUP,
        "step_modules": [],
        "log_level": "INFO",
        "log_format": "pretty",
        "log_file": None,
        "env_file": str(home / ".env"),
    }


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r}")


def load_config(config_path: Optional[Path] = None) -> UpgraderConfig:
    """
    Load upgrader configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to $UPGRADER_HOME/config.yaml

    Returns:
        UpgraderConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the config is invalid
    """
    if config_path is None:
        config_path = get_upgrader_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"upgrader config.yaml not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if not data:
        raise ConfigError(f"Configuration file is empty: {config_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {config_path}")

    env_file = data.get("env_file")
    if env_file:
        env_path = Path(env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path, override=False)

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        data[key] = _parse_bool(env_name, value) if key == "clustered" else value

    return UpgraderConfig.from_dict(data)
