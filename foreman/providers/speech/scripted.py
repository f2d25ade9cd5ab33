"""
Scripted Speech Provider - Recognizer driven by supplied transcripts

Stands in for a microphone-backed recognizer in the console runner and in
tests: text handed to ``feed`` is reported as if it had been spoken, but
only while recognition is running.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .base import (
    SpeechRecognitionProvider, RecognitionResult, RecognitionError,
    RecognitionEnded, RecognitionErrorKind
)

logger = logging.getLogger(__name__)


class ScriptedSpeechProvider(SpeechRecognitionProvider):
    """
    Continuous recognizer fed by the caller.

    Features:
    - Availability can be switched off to exercise capability errors
    - Errors always end the run, like browser recognizers do
    - Counts start/stop calls for inspection
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self._name = config.get("name", "scripted")
        super().__init__(config)
        self.available = config.get("available", True)
        self._active = False
        self.start_calls = 0
        self.stop_calls = 0

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self.available

    def is_active(self) -> bool:
        return self._active

    def start_continuous(self) -> bool:
        if not self.available or self._active:
            return False
        self._active = True
        self.start_calls += 1
        self.logger.debug(f"{self._name}: recognition started")
        return True

    async def stop_continuous(self) -> None:
        self.stop_calls += 1
        if not self._active:
            return
        self._active = False
        await asyncio.sleep(0)
        self.logger.debug(f"{self._name}: recognition stopped")
        self._emit(RecognitionEnded())

    def feed(self, transcript: str, is_final: bool = True) -> bool:
        """Report transcript as recognized speech; ignored while not listening"""
        if not self._active:
            return False
        self._emit(RecognitionResult(transcript=transcript, is_final=is_final))
        return True

    def fail(self, kind: RecognitionErrorKind, message: str = "") -> bool:
        """Report a recognizer error, which also ends the run"""
        if not self._active:
            return False
        self._emit(RecognitionError(kind=kind, message=message or kind.value))
        if self._active:
            self._active = False
            self._emit(RecognitionEnded())
        return True

    def end(self) -> bool:
        """The recognizer stops on its own (silence timeout, service limit)"""
        if not self._active:
            return False
        self._active = False
        self._emit(RecognitionEnded())
        return True
