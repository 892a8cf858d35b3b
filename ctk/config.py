"""
Configuration management for CTK.

Provides a clean, hierarchical configuration system with sensible defaults.
Supports both global (~/.config/ctk/config.toml) and local (ctk.toml) configurations.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from ctk.constants import (
    DEFAULT_CATALOG_URL,
    DEFAULT_PREVIEW_ROWS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RULE_MAX_STEPS,
    DEFAULT_RULE_TIMEOUT,
)
from ctk.errors import ValidationError


@dataclass
class CtkConfig:
    """
    CTK configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (CTK_*)
    3. Local config file (./ctk.toml or ./.ctkrc)
    4. User config file (~/.config/ctk/config.toml)
    5. System defaults
    """

    # Catalog source
    catalog_url: str = field(default=DEFAULT_CATALOG_URL)
    include_categories: bool = field(default=True)
    proxy_url: Optional[str] = field(default=None)  # Template with {url}, e.g. https://proxy/raw?url={url}

    # Network settings
    timeout: int = field(default=DEFAULT_REQUEST_TIMEOUT)  # Request timeout in seconds
    user_agent: str = field(default="CTK/0.1")
    verify_ssl: bool = field(default=True)

    # Display and export
    output_format: str = field(default="table")  # table, json, csv
    export_pretty: bool = field(default=True)
    preview_rows: int = field(default=DEFAULT_PREVIEW_ROWS)

    # Schema evaluation limits
    rule_timeout: float = field(default=DEFAULT_RULE_TIMEOUT)
    rule_max_steps: int = field(default=DEFAULT_RULE_MAX_STEPS)

    # Advanced
    log_level: str = field(default="WARNING")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "CtkConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (overrides search)

        Returns:
            Merged configuration object
        """
        config = cls()

        # Load user config if exists
        user_config_path = Path.home() / ".config" / "ctk" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        # Load local config if exists (check multiple locations)
        local_paths = [
            Path.cwd() / "ctk.toml",
            Path.cwd() / ".ctkrc",
            Path.cwd() / ".ctk" / "config.toml"
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        # Load specific config file if provided
        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        # Apply environment variables (CTK_* prefix)
        config._apply_env_vars()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            try:
                return tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ValidationError(f"Invalid config file {path}: {e}") from e

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with CTK_ prefix."""
        prefix = "CTK_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    # Convert string values to appropriate types
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, (int, float)):
                        try:
                            setattr(self, config_key, type(current_value)(value))
                        except ValueError:
                            raise ValidationError(
                                f"Invalid value for {key}: {value!r} (expected {type(current_value).__name__})"
                            ) from None
                    else:
                        setattr(self, config_key, value)

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = Path.home() / ".config" / "ctk" / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null
        data = {k: v for k, v in asdict(self).items() if v is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_config: Optional[CtkConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> CtkConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = CtkConfig.load(config_file)
    return _config


def init_config(config_file: Optional[Path] = None, **kwargs) -> CtkConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        config_file: Specific config file to load
        **kwargs: Other configuration overrides

    Returns:
        Configured instance
    """
    config = get_config(reload=config_file is not None, config_file=config_file)

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
