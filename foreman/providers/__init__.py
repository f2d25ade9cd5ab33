"""Capability providers for speech recognition and text-to-speech."""

from .base import ProviderBase, ProviderStatus, ComponentNotAvailable

__all__ = ["ProviderBase", "ProviderStatus", "ComponentNotAvailable"]
