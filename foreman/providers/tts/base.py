"""
TTS Provider Interface - Abstract base class for TTS implementations
"""

from abc import abstractmethod

from ..base import ProviderBase


class TTSProvider(ProviderBase):
    """Speaks text aloud; playback completes when ``speak`` returns"""

    @abstractmethod
    async def speak(self, text: str) -> None:
        """
        Speak text.

        Cancelling the awaiting task must stop playback.
        """
        pass
