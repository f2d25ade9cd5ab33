"""
Console TTS Provider - Text output in place of speech

Prints what would be spoken, optionally colored, and simulates playback
time so the surfaces see a realistic "voice playing" window.
"""

import asyncio
import logging
from typing import Dict, Any

import termcolor  # type: ignore

from .base import TTSProvider

logger = logging.getLogger(__name__)


class ConsoleTTSProvider(TTSProvider):
    """
    Console TTS provider.

    Features:
    - Prints text to the console instead of synthesizing speech
    - Colored output via termcolor
    - Per-word timing simulation, interruptible by cancellation
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: color_output, prefix, word_delay_seconds
        """
        super().__init__(config)
        self.color_output = config.get("color_output", True)
        self.prefix = config.get("prefix", "TTS: ")
        self.word_delay = config.get("word_delay_seconds", 0.05)

    def is_available(self) -> bool:
        """Console TTS is always available"""
        return True

    def get_provider_name(self) -> str:
        return "console"

    async def speak(self, text: str) -> None:
        line = f"{self.prefix}{text}"
        if self.color_output:
            termcolor.cprint(line, "cyan")
        else:
            print(line)

        if self.word_delay > 0:
            await asyncio.sleep(self.word_delay * len(text.split()))
        logger.debug(f"Console TTS finished {len(text)} characters")
