"""Configuration models and loading."""

from .models import (
    CoreConfig, LogLevel, BackendConfig, WakeWordConfig, RecognitionConfig,
    DeduplicationConfig, ActivityConfig, TTSConfig,
    create_config_from_profile
)
from .manager import ConfigManager, ConfigValidationError

__all__ = [
    "CoreConfig",
    "LogLevel",
    "BackendConfig",
    "WakeWordConfig",
    "RecognitionConfig",
    "DeduplicationConfig",
    "ActivityConfig",
    "TTSConfig",
    "ConfigManager",
    "ConfigValidationError",
    "create_config_from_profile",
]
