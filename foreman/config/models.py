"""
Configuration Models - Pydantic models for type-safe configuration

Sections:
- Backend (work order service endpoints and credentials)
- Wake word listener
- Continuous speech recognition
- Duplicate suppression window
- Conversation surface activity timer
- Speech output

Requires: pydantic>=2.0.0, pydantic-settings>=2.0.0
"""

import os
from typing import Optional, Any, Dict, List
from pathlib import Path
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ============================================================
# BACKEND CONFIGURATION
# ============================================================

class BackendConfig(BaseModel):
    """Work order backend configuration"""
    base_url: str = Field(default="http://localhost:8000/api", description="Base URL of the work order API")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    user_id: int = Field(default=1, ge=0, description="User id sent with chat and feedback requests")
    auth_token: Optional[str] = Field(default=None, description="Bearer token, supports ${VAR} substitution")
    resumed_time_spent_hours: float = Field(default=0.5, ge=0, description="time_spent reported for resumed step feedback")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


# ============================================================
# VOICE CONFIGURATION
# ============================================================

class WakeWordConfig(BaseModel):
    """Wake word listener configuration"""
    enabled: bool = Field(default=True, description="Enable passive wake word listening")
    phrase: str = Field(default="hey buddy", description="Trigger phrase")
    fuzzy_threshold: int = Field(default=100, description="rapidfuzz partial ratio needed for a match (100 = exact substring)")
    language: str = Field(default="en-US", description="Recognition language for the wake listener")
    restart_delay_seconds: float = Field(default=0.5, ge=0, description="Delay before auto-restarting after the recognizer ends")

    @field_validator('phrase')
    @classmethod
    def validate_phrase(cls, v):
        if not v.strip():
            raise ValueError("Wake phrase must not be empty")
        return v.strip().lower()

    @field_validator('fuzzy_threshold')
    @classmethod
    def validate_fuzzy_threshold(cls, v):
        if v < 50 or v > 100:
            raise ValueError("fuzzy_threshold must be between 50 and 100")
        return v


class RecognitionConfig(BaseModel):
    """Continuous speech recognition configuration"""
    language: str = Field(default="en-US", description="Recognition language")
    interim_results: bool = Field(default=True, description="Emit interim results for display")
    auto_restart: bool = Field(default=False, description="Restart recognition when the recognizer ends on its own")
    restart_delay_seconds: float = Field(default=0.5, ge=0, description="Auto-restart delay")
    handover_delay_seconds: float = Field(default=0.3, ge=0, le=5.0, description="Grace delay between stopping one recognizer and starting the other")
    resume_delay_seconds: float = Field(default=0.7, ge=0, le=5.0, description="Delay before passive listening resumes after a surface closes")


class DeduplicationConfig(BaseModel):
    """Duplicate transcript suppression configuration"""
    window_seconds: float = Field(default=2.0, gt=0, le=60.0, description="Identical transcripts inside this window are dropped")


class ActivityConfig(BaseModel):
    """Conversation surface inactivity configuration"""
    auto_close_enabled: bool = Field(default=True, description="Close an idle chat surface automatically")
    auto_close_delay_seconds: float = Field(default=30.0, gt=0, description="Inactivity before the surface closes")


class TTSConfig(BaseModel):
    """Speech output configuration"""
    enabled: bool = Field(default=True, description="Enable spoken responses")
    provider: str = Field(default="console", description="TTS provider name")
    prefix: str = Field(default="TTS: ", description="Console provider prefix")
    color_output: bool = Field(default=True, description="Colored console output")
    word_delay_seconds: float = Field(default=0.05, ge=0, description="Simulated playback time per word")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v):
        if v not in ['console']:
            raise ValueError("TTS provider must be one of: console")
        return v


# ============================================================
# ENVIRONMENT VARIABLE SUBSTITUTION
# ============================================================

class EnvironmentVariableResolver:
    """Utility class for resolving ${VAR} patterns in configuration"""

    @staticmethod
    def substitute_env_vars(config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Replace ${VAR} patterns with environment variable values"""
        return EnvironmentVariableResolver._substitute_recursive(config_dict, [])

    @staticmethod
    def _substitute_recursive(value: Any, path: List[str]) -> Any:
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            var_name = value[2:-1]
            env_value = os.getenv(var_name)
            if env_value is None:
                config_path = ".".join(path) if path else "root"
                raise ValueError(f"Required environment variable {var_name} is not set (used in: {config_path})")
            return env_value

        elif isinstance(value, dict):
            return {
                k: EnvironmentVariableResolver._substitute_recursive(v, path + [k])
                for k, v in value.items()
            }

        elif isinstance(value, list):
            return [EnvironmentVariableResolver._substitute_recursive(item, path) for item in value]

        return value


# ============================================================
# ROOT CONFIGURATION
# ============================================================

class CoreConfig(BaseSettings):
    """Main configuration for Foreman"""

    name: str = Field(default="Foreman", description="Assistant name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    backend: BackendConfig = Field(default_factory=BackendConfig, description="Backend configuration")
    wake_word: WakeWordConfig = Field(default_factory=WakeWordConfig, description="Wake word configuration")
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig, description="Speech recognition configuration")
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig, description="Duplicate suppression configuration")
    activity: ActivityConfig = Field(default_factory=ActivityConfig, description="Activity timer configuration")
    tts: TTSConfig = Field(default_factory=TTSConfig, description="Speech output configuration")

    greeting: str = Field(default="Hello! How can I help you today?", description="Chat widget greeting message")

    model_config = {
        "env_prefix": "FOREMAN_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# ============================================================
# PROFILE PRESETS
# ============================================================

def create_voice_profile() -> CoreConfig:
    """Wake word, recognition and spoken responses"""
    config = CoreConfig()
    config.wake_word.enabled = True
    config.tts.enabled = True
    return config


def create_text_profile() -> CoreConfig:
    """Typed interaction only"""
    config = CoreConfig()
    config.wake_word.enabled = False
    config.tts.enabled = False
    config.activity.auto_close_enabled = False
    return config


def create_config_from_profile(profile_name: str) -> CoreConfig:
    """Create configuration from a named profile"""
    profiles = {
        "voice": create_voice_profile,
        "text": create_text_profile,
    }

    if profile_name not in profiles:
        raise ValueError(f"Unknown profile: {profile_name}. Available: {list(profiles.keys())}")

    return profiles[profile_name]()
