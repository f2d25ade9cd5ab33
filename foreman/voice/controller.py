"""
Voice Input Controller - Microphone ownership between listeners

The wake word listener and the active recognition session never run at
the same time. Every transition goes through one asyncio.Lock, and
handing the microphone from the listener to the recognizer waits a short
grace delay so the first recognizer has released it.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ..core.events import SubscriptionGroup
from ..core.tasks import BackgroundTasks
from ..providers.speech.base import RecognitionResult
from .recognition import SpeechRecognitionSession, RecognitionFailure, ListeningStopped
from .wake_word import WakeWordListener, WakeCallback, CommandCallback

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str], Union[None, Awaitable[Any]]]
FailureCallback = Callable[[RecognitionFailure], Union[None, Awaitable[Any]]]
StoppedCallback = Callable[[str], Union[None, Awaitable[Any]]]


class RecognitionState(Enum):
    IDLE = "idle"
    WAKE_LISTENING = "wake_listening"
    ACTIVE_RECOGNITION = "active_recognition"
    STOPPING = "stopping"


class VoiceInputController:
    """
    Serializes wake listening and active recognition.

    Shared by every surface of the application: there is one microphone.
    """

    def __init__(
        self,
        recognition: SpeechRecognitionSession,
        wake_listener: Optional[WakeWordListener] = None,
        handover_delay: float = 0.3
    ):
        self.recognition = recognition
        self.wake_listener = wake_listener
        self.handover_delay = handover_delay
        self.state = RecognitionState.IDLE

        self._lock = asyncio.Lock()
        self._tasks = BackgroundTasks("voice_input")
        self._on_transcript: Optional[TranscriptCallback] = None
        self._on_interim: Optional[TranscriptCallback] = None
        self._on_failure: Optional[FailureCallback] = None
        self._on_stopped: Optional[StoppedCallback] = None

        self._subscriptions = SubscriptionGroup()
        events = recognition.events
        self._subscriptions.add(events.subscribe(self._handle_result, RecognitionResult))
        self._subscriptions.add(events.subscribe(self._handle_failure, RecognitionFailure))
        self._subscriptions.add(events.subscribe(self._handle_recognition_stopped, ListeningStopped))
        if wake_listener is not None:
            self._subscriptions.add(
                wake_listener.session.events.subscribe(self._handle_wake_stopped, ListeningStopped)
            )

    @property
    def is_recognizing(self) -> bool:
        return self.recognition.is_listening

    @property
    def is_wake_listening(self) -> bool:
        return self.wake_listener is not None and self.wake_listener.is_listening

    async def start_wake_listening(self, on_wake: WakeCallback,
                                   on_command: Optional[CommandCallback] = None) -> bool:
        """
        Start passive listening.

        No-op while active recognition runs; the caller resumes passive
        listening once recognition has stopped.
        """
        if self.wake_listener is None:
            return False
        if self.is_recognizing or self.state in (RecognitionState.ACTIVE_RECOGNITION, RecognitionState.STOPPING):
            logger.debug("Wake listening not started, recognition is active")
            return False

        async with self._lock:
            if self.is_recognizing:
                return False
            if self.wake_listener.is_listening:
                return True
            started = self.wake_listener.start(on_wake, on_command)
            if started:
                self.state = RecognitionState.WAKE_LISTENING
            return started

    async def stop_wake_listening(self) -> None:
        if self.wake_listener is None:
            return
        async with self._lock:
            await self.wake_listener.stop()
            if self.state is RecognitionState.WAKE_LISTENING:
                self.state = RecognitionState.IDLE

    async def start_recognition(
        self,
        on_transcript: TranscriptCallback,
        on_failure: Optional[FailureCallback] = None,
        on_stopped: Optional[StoppedCallback] = None,
        on_interim: Optional[TranscriptCallback] = None
    ) -> bool:
        """
        Take the microphone for active recognition.

        Stops the wake listener first and waits the hand-over grace delay.

        Returns:
            True if recognition is now running
        """
        async with self._lock:
            if self.recognition.is_listening:
                logger.debug("Recognition already active")
                return False

            if self.is_wake_listening:
                self.state = RecognitionState.STOPPING
                await self.wake_listener.stop()
                await asyncio.sleep(self.handover_delay)

            self._on_transcript = on_transcript
            self._on_failure = on_failure
            self._on_stopped = on_stopped
            self._on_interim = on_interim

            started = self.recognition.start()
            self.state = RecognitionState.ACTIVE_RECOGNITION if started else RecognitionState.IDLE
            if not started:
                logger.warning("Could not start speech recognition")
            return started

    async def stop_recognition(self) -> None:
        """Stop active recognition; resolves even before any result arrived"""
        async with self._lock:
            if self.recognition.is_listening:
                self.state = RecognitionState.STOPPING
            await self.recognition.stop()
            if self.state in (RecognitionState.STOPPING, RecognitionState.ACTIVE_RECOGNITION):
                self.state = RecognitionState.IDLE

    async def stop_all(self) -> None:
        async with self._lock:
            self.state = RecognitionState.STOPPING
            if self.wake_listener is not None:
                await self.wake_listener.stop()
            await self.recognition.stop()
            self.state = RecognitionState.IDLE

    async def drain(self) -> None:
        """Wait for queued callbacks (used by tests and shutdown)"""
        for _ in range(3):
            if self.wake_listener is not None:
                await self.wake_listener.drain()
            await self.recognition.drain()
            await self._tasks.drain()

    async def close(self) -> None:
        await self.stop_all()
        self._subscriptions.close()
        await self._tasks.cancel_all()
        if self.wake_listener is not None:
            await self.wake_listener.close()
        await self.recognition.close()

    # ------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------

    def _handle_result(self, event: RecognitionResult) -> None:
        if event.is_final:
            transcript = event.transcript.strip()
            if transcript:
                self._tasks.call(self._on_transcript, transcript)
        else:
            self._tasks.call(self._on_interim, event.transcript)

    def _handle_failure(self, event: RecognitionFailure) -> None:
        self._tasks.call(self._on_failure, event)

    def _handle_recognition_stopped(self, event: ListeningStopped) -> None:
        if self.state in (RecognitionState.ACTIVE_RECOGNITION, RecognitionState.STOPPING):
            self.state = RecognitionState.IDLE
        callback = self._on_stopped
        self._on_transcript = self._on_failure = self._on_stopped = self._on_interim = None
        self._tasks.call(callback, event.reason)

    def _handle_wake_stopped(self, event: ListeningStopped) -> None:
        if self.state is RecognitionState.WAKE_LISTENING:
            self.state = RecognitionState.IDLE
