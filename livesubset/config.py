"""
Configuration management for livesubset.

Provides a hierarchical configuration system with sensible defaults.
Supports both user (~/.config/livesubset/config.toml) and local
(livesubset.toml) configuration files.
"""
import logging
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from livesubset.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LIVESUBSET_"


@dataclass
class SubsetConfig:
    """
    livesubset configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (LIVESUBSET_*)
    3. Explicit config file
    4. Local config file (./livesubset.toml or ./.livesubsetrc)
    5. User config file (~/.config/livesubset/config.toml)
    6. Defaults
    """

    # Subset definitions (YAML file or directory of YAML files)
    definitions_file: Optional[str] = field(default=None)

    # Live-update setting for definitions that don't declare one
    default_live_update: str = field(default="none")

    # Attribute holding a record's durable id
    id_attribute: str = field(default="id")

    # Display settings
    output_format: str = field(default="table")  # table, json, plain
    color_output: bool = field(default=True)

    # Logging
    log_level: str = field(default="WARNING")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "SubsetConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (overrides search)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config_path = Path.home() / ".config" / "livesubset" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        local_paths = [
            Path.cwd() / "livesubset.toml",
            Path.cwd() / ".livesubsetrc",
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file is not None:
            config_file = Path(config_file)
            if not config_file.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        try:
            with open(path, "rb") as f:
                return tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

    def _apply_env_vars(self):
        """Apply environment variables with LIVESUBSET_ prefix."""
        for key, value in os.environ.items():
            if key.startswith(ENV_PREFIX):
                config_key = key[len(ENV_PREFIX):].lower()
                if hasattr(self, config_key):
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        if isinstance(self.definitions_file, str):
            self.definitions_file = os.path.expanduser(os.path.expandvars(self.definitions_file))

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = Path.home() / ".config" / "livesubset" / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null; unset options are simply omitted
        data = {key: value for key, value in asdict(self).items() if value is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def get_log_level(self) -> int:
        """Resolve log_level to a logging module constant."""
        level = logging.getLevelName(str(self.log_level).upper())
        return level if isinstance(level, int) else logging.WARNING


_config: Optional[SubsetConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> SubsetConfig:
    """
    Get the shared configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Configuration instance
    """
    global _config
    if _config is None or reload:
        _config = SubsetConfig.load(config_file)
    return _config


def init_config(definitions_file: Optional[str] = None, **kwargs) -> SubsetConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        definitions_file: Definitions path override
        **kwargs: Other configuration overrides

    Returns:
        Configured instance
    """
    config = get_config()

    if definitions_file:
        config.definitions_file = definitions_file

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
