"""
Config system - Layered dispatcher configuration with validation.

Sources are merged with precedence (later overrides earlier):
defaults < YAML file < .env file < environment variables < overrides
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin, get_type_hints

from .core import parse_severity


logger = logging.getLogger("faultline.config")


class ConfigError(ValueError):
    """Raised when configuration validation fails."""
    pass


@dataclass
class FaultlineConfig:
    """
    Dispatcher configuration.

    Attributes:
        display_errors: Host displays faults natively
        silence: Force silencing on/off (None: derive from display_errors)
        throw_faults: Raise recoverable faults as exceptions
        reporting: Reporting mask expression ("ALL", "ERROR|WARNING", ...)
        error_page: Renderer for silenced faults ("html", "json", "text")
        debug: Include exception details in fault pages
        reentrancy_guard: Skip the handler chain for nested faults
    """
    display_errors: bool = True
    silence: Optional[bool] = None
    throw_faults: bool = False
    reporting: str = "ALL"
    error_page: Optional[str] = None
    debug: bool = False
    reentrancy_guard: bool = True


_CONFIG_FIELDS = frozenset(f.name for f in fields(FaultlineConfig))

# Fields whose env values also accept "1"/"0"
_FLAG_FIELDS = frozenset(
    name for name, hint in get_type_hints(FaultlineConfig).items()
    if hint is bool or bool in get_args(hint)
)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Usage:
        ```python
        config = ConfigLoader.load("faultline.yaml", env_file=".env").build()
        dispatcher = Dispatcher.from_config(config)
        ```
    """

    def __init__(self, env_prefix: str = "FAULTLINE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        env_prefix: str = "FAULTLINE_",
        env_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> ConfigLoader:
        """
        Load configuration from every source.

        Args:
            path: YAML or JSON config file (top-level ``faultline:`` key or flat)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            ConfigLoader holding the merged data
        """
        loader = cls(env_prefix=env_prefix)

        if path:
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(Path(env_file))

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _load_file(self, path: Path):
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            import yaml
            with open(path) as f:
                data = yaml.safe_load(f)
        else:
            raise ConfigError(f"Unsupported config file type: {path.suffix}")

        if not data:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        section = data.get("faultline", data)
        if not isinstance(section, dict):
            raise ConfigError(f"'faultline' section in {path} must be a mapping")
        self._merge_dict(self.config_data, section)

    def _load_env_file(self, path: Path):
        """Load prefixed keys from a .env file."""
        from dotenv import dotenv_values

        if not path.exists():
            logger.debug(f"No .env file at {path}")
            return

        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_key(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_key(key, value)

    def _set_key(self, key: str, value: str):
        """Convert FAULTLINE_THROW_FAULTS to throw_faults.

        Prefixed variables that name no config field are skipped; the
        prefix is shared with unrelated application settings.
        """
        name = key[len(self.env_prefix):].lower()
        if name not in _CONFIG_FIELDS:
            logger.debug(f"Ignoring {key}: not a faultline setting")
            return

        if name in _FLAG_FIELDS and value.strip() in ("1", "0"):
            self.config_data[name] = value.strip() == "1"
        else:
            self.config_data[name] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False
        if lowered in ("none", "null", ""):
            return None
        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.config_data.get(key, default)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def build(self) -> FaultlineConfig:
        """
        Instantiate and validate the configuration.

        Raises:
            ConfigError: on unknown keys, wrong types or bad values
        """
        hints = get_type_hints(FaultlineConfig)
        known = {f.name for f in fields(FaultlineConfig)}

        unknown = sorted(set(self.config_data) - known)
        if unknown:
            raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

        kwargs = {}
        for field_info in fields(FaultlineConfig):
            name = field_info.name
            if name not in self.config_data:
                continue
            value = self._coerce(name, self.config_data[name])
            if not self._check_type(value, hints[name]):
                raise ConfigError(
                    f"Config field '{name}' expected {hints[name]}, "
                    f"got {type(value).__name__}"
                )
            kwargs[name] = value

        config = FaultlineConfig(**kwargs)
        self._validate(config)
        return config

    def _coerce(self, name: str, value: Any) -> Any:
        # Masks may be given as ints or lists in YAML
        if name == "reporting" and not isinstance(value, str) and value is not None:
            try:
                return str(int(parse_severity(value)))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid reporting mask {value!r}: {e}") from e
        return value

    def _validate(self, config: FaultlineConfig):
        try:
            parse_severity(config.reporting)
        except ValueError as e:
            raise ConfigError(f"Invalid reporting mask {config.reporting!r}: {e}") from e

        if config.error_page is not None:
            from .debug.pages import get_renderer
            try:
                get_renderer(config.error_page)
            except ValueError as e:
                raise ConfigError(str(e)) from e

    def _check_type(self, value: Any, expected_type: Any) -> bool:
        """Basic type checking."""
        origin = get_origin(expected_type)
        if origin is Union:
            if value is None:
                return True
            return any(
                self._check_type(value, arg)
                for arg in get_args(expected_type)
                if arg is not type(None)
            )

        if expected_type is bool:
            return isinstance(value, bool)

        return isinstance(value, expected_type)


def load_config(
    path: Optional[Union[str, Path]] = None,
    *,
    env_file: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> FaultlineConfig:
    """Load and validate configuration in one call."""
    return ConfigLoader.load(path, env_file=env_file, overrides=overrides).build()

