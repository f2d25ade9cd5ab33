"""Text-to-speech providers."""

from typing import Any, Dict, Type

from .base import TTSProvider
from .console import ConsoleTTSProvider

TTS_PROVIDERS: Dict[str, Type[TTSProvider]] = {
    "console": ConsoleTTSProvider,
}


def create_tts_provider(name: str, config: Dict[str, Any]) -> TTSProvider:
    """Build the TTS provider registered under name"""
    try:
        provider_class = TTS_PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown TTS provider: {name}. Available: {list(TTS_PROVIDERS)}") from None
    return provider_class(config)


__all__ = ["TTSProvider", "ConsoleTTSProvider", "TTS_PROVIDERS", "create_tts_provider"]
