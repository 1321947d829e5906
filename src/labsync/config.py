"""Configuration management for labsync."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.labsync"


@dataclass
class SyncSettings:
    """Settings consumed by the sync orchestrator."""

    # None means remote calls never time out
    remote_timeout_seconds: Optional[float] = None
    # False awaits each remote mirror before the write returns
    mirror_in_background: bool = True
    sync_on_startup: bool = True
    max_history_entries: int = 100


@dataclass
class ConfigModel:
    """Global configuration model for labsync."""

    # File paths
    data_dir: str = DEFAULT_DATA_DIR

    # Remote store
    remote_url: Optional[str] = None
    api_key: Optional[str] = None
    remote_timeout_seconds: Optional[float] = None

    # Sync behavior
    mirror_in_background: bool = True
    sync_on_startup: bool = True

    # Accounts that always authenticate against the local store
    local_auth_emails: List[str] = field(default_factory=lambda: ["admin@issacasimov.in"])

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)
        if self.log_file:
            self.log_file = os.path.expanduser(self.log_file)

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def sync_settings(self) -> SyncSettings:
        """Settings for the sync orchestrator."""
        return SyncSettings(
            remote_timeout_seconds=self.remote_timeout_seconds,
            mirror_in_background=self.mirror_in_background,
            sync_on_startup=self.sync_on_startup,
        )

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"

    def get_data_path(self) -> Path:
        """Get the local store document path."""
        return Path(self.data_dir) / "data.json"

    def get_current_user_path(self) -> Path:
        """Get the path of the persisted signed-in user."""
        return Path(self.data_dir) / "current_user.json"

    def to_dict(self) -> Dict[str, Any]:
        return yaml.safe_load(self.to_yaml())


class Config:
    """Configuration manager for labsync."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or create default."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    config = ConfigModel.from_yaml(f.read())
                logger.debug(f"Loaded configuration from {config_path}")
            except (OSError, yaml.YAMLError, TypeError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
        else:
            cls.save(config, config_path)
            logger.info(f"Created default configuration at {config_path}")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(config.to_yaml())
            logger.debug(f"Configuration saved to {config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {e}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reload(cls) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load()


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
