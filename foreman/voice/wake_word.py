"""
Wake Word Listener - Passive listening for the trigger phrase

Runs a continuous recognition session with auto-restart. Every final
transcript is checked for:

1. the trigger phrase: the listener stops itself and reports the wake
2. a work order command spoken without the trigger: reported with the
   raw transcript so the caller can act on it directly

Requires: rapidfuzz (only used when a fuzzy threshold below 100 is set)
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from rapidfuzz import fuzz

from ..core.events import SubscriptionGroup
from ..core.tasks import BackgroundTasks
from ..intents.classifier import TranscriptClassifier
from ..providers.speech.base import SpeechRecognitionProvider, RecognitionResult
from ..utils.text import normalize_transcript, strip_punctuation
from .recognition import SpeechRecognitionSession, ListeningStopped

logger = logging.getLogger(__name__)

WakeCallback = Callable[[], Union[None, Awaitable[Any]]]
CommandCallback = Callable[[str], Union[None, Awaitable[Any]]]


class WakeWordListener:
    """
    Stopped <-> Listening.

    Never classifies a transcript that contains the trigger phrase; the
    wake callback takes over from there.
    """

    def __init__(
        self,
        provider: SpeechRecognitionProvider,
        classifier: Optional[TranscriptClassifier] = None,
        phrase: str = "hey buddy",
        fuzzy_threshold: int = 100,
        restart_delay: float = 0.5
    ):
        self.phrase = normalize_transcript(strip_punctuation(phrase))
        self.fuzzy_threshold = fuzzy_threshold
        self.classifier = classifier or TranscriptClassifier()
        self.session = SpeechRecognitionSession(
            provider, auto_restart=True, restart_delay=restart_delay, name="wake_word"
        )

        self._on_wake: Optional[WakeCallback] = None
        self._on_command: Optional[CommandCallback] = None
        self._triggered = False
        self._tasks = BackgroundTasks("wake_word")
        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(self.session.events.subscribe(self._on_result, RecognitionResult))
        self._subscriptions.add(self.session.events.subscribe(self._on_stopped, ListeningStopped))

    @property
    def is_listening(self) -> bool:
        return self.session.is_listening

    def start(self, on_wake: WakeCallback, on_command: Optional[CommandCallback] = None) -> bool:
        """
        Begin passive listening.

        Args:
            on_wake: Called after the listener stopped on the trigger phrase
            on_command: Called with the raw transcript of a work order command
        """
        if self.session.is_listening:
            return False

        self._on_wake = on_wake
        self._on_command = on_command
        self._triggered = False

        started = self.session.start()
        if started:
            logger.info(f"Wake word listener active, waiting for '{self.phrase}'")
        return started

    async def stop(self) -> None:
        await self.session.stop()

    async def close(self) -> None:
        self._subscriptions.close()
        await self.session.close()
        await self._tasks.cancel_all()

    async def drain(self) -> None:
        await self.session.drain()
        await self._tasks.drain()

    def detect_wake_phrase(self, transcript: str) -> bool:
        """True if the transcript contains the trigger phrase"""
        cleaned = normalize_transcript(strip_punctuation(transcript))
        if self.phrase in cleaned:
            return True
        if self.fuzzy_threshold < 100:
            return fuzz.partial_ratio(self.phrase, cleaned) >= self.fuzzy_threshold
        return False

    def _on_result(self, event: RecognitionResult) -> None:
        if not event.is_final or self._triggered:
            return

        transcript = event.transcript
        if self.detect_wake_phrase(transcript):
            logger.info(f"Wake phrase detected in '{transcript}'")
            self._triggered = True
            self._tasks.spawn(self._handle_wake())
            return

        if self.classifier.is_work_order_command(transcript):
            logger.info(f"Work order command heard without wake phrase: '{transcript}'")
            self._tasks.call(self._on_command, transcript)

    async def _handle_wake(self) -> None:
        await self.session.stop()
        self._tasks.call(self._on_wake)

    def _on_stopped(self, event: ListeningStopped) -> None:
        logger.debug(f"Wake word listener stopped ({event.reason})")
