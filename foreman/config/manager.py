"""
Configuration Manager - Reading and writing configuration files

TOML is the native format (read with tomllib, written with tomli-w); JSON
files are accepted for reading. ${VAR} references are resolved and the
result is validated against CoreConfig. A file that cannot be used falls
back to defaults plus FOREMAN_ environment overrides.

Requires: pydantic>=2.0.0, tomli-w>=1.0.0
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Any

import tomllib

import tomli_w  # type: ignore
from pydantic import ValidationError  # type: ignore

from .models import CoreConfig, EnvironmentVariableResolver, create_config_from_profile

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("./foreman.toml")

SEARCH_PATHS = (
    DEFAULT_CONFIG_PATH,
    Path("./foreman.json"),
    Path.home() / ".config" / "foreman" / "config.toml",
    Path("/etc/foreman/config.toml"),
)

_PARSERS = {
    ".toml": tomllib.loads,
    ".json": json.loads,
}


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigManager:
    """
    Loads, validates and writes Foreman configuration.

    File I/O and parsing run in a worker thread.
    """

    async def load_config(self, config_path: Optional[Path] = None, create_default: bool = True) -> CoreConfig:
        """
        Load configuration from a file.

        Args:
            config_path: File to read; the first existing SEARCH_PATHS entry if None
            create_default: Write a default TOML file when the file is missing

        Returns:
            Validated CoreConfig; defaults with environment overrides on failure
        """
        if config_path is None:
            config_path = self._find_config_file()

        if not config_path.exists():
            if create_default:
                logger.info(f"No configuration at {config_path}, writing defaults")
                config = CoreConfig()
                await self.save_config(config, config_path)
                return config
            logger.warning(f"No configuration at {config_path}, using defaults")
            return CoreConfig()

        try:
            parse = _PARSERS.get(config_path.suffix.lower())
            if parse is None:
                raise ValueError(f"Unsupported config format: {config_path.suffix}")
            content = await asyncio.to_thread(config_path.read_text, encoding='utf-8')
            data = await asyncio.to_thread(parse, content)
            config = self.validate_config(data)
        except (OSError, ValueError, ConfigValidationError) as e:
            # tomllib and json decode errors are ValueErrors
            logger.error(f"Failed to load config from {config_path}: {e}")
            logger.info("Using default configuration with environment overrides")
            return CoreConfig()

        logger.info(f"Loaded configuration from: {config_path}")
        return config

    async def save_config(self, config: CoreConfig, config_path: Path = DEFAULT_CONFIG_PATH) -> bool:
        """Write configuration as TOML; returns False if it could not be written"""
        if config_path.suffix.lower() != ".toml":
            logger.error(f"Configuration is saved as TOML only, not to {config_path}")
            return False
        # TOML has no null, unset optionals are left out
        data = config.model_dump(mode="json", exclude_none=True)
        try:
            content = await asyncio.to_thread(tomli_w.dumps, data)
            config_path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(config_path.write_text, content, encoding='utf-8')
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save config to {config_path}: {e}")
            return False

        logger.info(f"Saved configuration to: {config_path}")
        return True

    async def generate_default_config_file(self, config_path: Optional[Path] = None, profile: str = "voice") -> Path:
        """Write the named profile to config_path (default ./foreman.toml)"""
        config_path = config_path or DEFAULT_CONFIG_PATH
        await self.save_config(create_config_from_profile(profile), config_path)
        return config_path

    def validate_config(self, data: dict[str, Any]) -> CoreConfig:
        """
        Resolve ${VAR} references and validate a raw configuration mapping.

        Raises:
            ConfigValidationError: if a variable is unset or a value is invalid
        """
        try:
            resolved = EnvironmentVariableResolver.substitute_env_vars(data)
            return CoreConfig.model_validate(resolved)
        except ValidationError as e:
            raise ConfigValidationError(f"Configuration validation failed: {e}")
        except ValueError as e:
            raise ConfigValidationError(f"Configuration processing failed: {e}")

    def _find_config_file(self) -> Path:
        return next((path for path in SEARCH_PATHS if path.exists()), DEFAULT_CONFIG_PATH)
