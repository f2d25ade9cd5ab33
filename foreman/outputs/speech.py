"""
Speech Output - Exclusive text-to-speech playback

At most one utterance plays at a time; a new one cancels whatever is still
playing.
"""

import asyncio
import logging
from typing import Optional

from ..providers.tts.base import TTSProvider

logger = logging.getLogger(__name__)


class SpeechOutput:
    """Wraps a TTS provider with single-utterance semantics"""

    def __init__(self, provider: Optional[TTSProvider], enabled: bool = True):
        self.provider = provider
        self.enabled = enabled and provider is not None
        self._current: Optional[asyncio.Task] = None

    @property
    def is_speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    async def speak(self, text: str) -> bool:
        """
        Speak text, interrupting any utterance in flight.

        Returns:
            True if playback ran to completion
        """
        if not self.enabled or not text.strip():
            return False

        await self.cancel()
        task = asyncio.create_task(self.provider.speak(text))
        self._current = task
        try:
            await task
            return True
        except asyncio.CancelledError:
            if task.cancelled() and asyncio.current_task().cancelling() == 0:
                logger.debug("Utterance interrupted")
                return False
            raise
        except Exception as e:
            logger.error(f"Speech output failed: {e}")
            return False
        finally:
            if self._current is task:
                self._current = None

    async def cancel(self) -> None:
        task = self._current
        self._current = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
