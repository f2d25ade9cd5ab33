"""
Speech Recognition Session - Lifecycle of one continuous recognizer

Wraps a SpeechRecognitionProvider with:
- a wants-to-listen flag that stop() clears and restarts re-check
- an error policy deciding which errors are ignored, fatal or reported
- optional auto-restart when the recognizer ends on its own

Consumers subscribe to ``session.events`` for RecognitionResult (interim
and final), RecognitionFailure and ListeningStopped.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.events import Event, EventBus, SubscriptionGroup
from ..core.tasks import BackgroundTasks
from ..providers.speech.base import (
    SpeechRecognitionProvider, RecognitionResult, RecognitionError,
    RecognitionEnded, RecognitionErrorKind
)

logger = logging.getLogger(__name__)


class ErrorAction(Enum):
    """What a recognition error does to the session"""
    IGNORE = "ignore"      # keep listening
    FATAL = "fatal"        # stop, tell the user, no auto-restart
    NETWORK = "network"    # log, the caller decides
    ABORTED = "aborted"    # stop quietly, no auto-restart
    LOG = "log"


ERROR_POLICY = {
    RecognitionErrorKind.NO_SPEECH: ErrorAction.IGNORE,
    RecognitionErrorKind.AUDIO_CAPTURE: ErrorAction.FATAL,
    RecognitionErrorKind.NOT_ALLOWED: ErrorAction.FATAL,
    RecognitionErrorKind.SERVICE_NOT_ALLOWED: ErrorAction.FATAL,
    RecognitionErrorKind.LANGUAGE_NOT_SUPPORTED: ErrorAction.FATAL,
    RecognitionErrorKind.NETWORK: ErrorAction.NETWORK,
    RecognitionErrorKind.ABORTED: ErrorAction.ABORTED,
}

USER_MESSAGES = {
    RecognitionErrorKind.NOT_ALLOWED: "Microphone access was denied. Please allow microphone access and try again.",
    RecognitionErrorKind.SERVICE_NOT_ALLOWED: "Speech service authentication failed. Please check your settings.",
    RecognitionErrorKind.AUDIO_CAPTURE: "No microphone was found. Please check your audio input device.",
    RecognitionErrorKind.LANGUAGE_NOT_SUPPORTED: "Speech recognition is not available for the configured language.",
    RecognitionErrorKind.NETWORK: "Network error. Please check your connection and try again.",
}

DEFAULT_USER_MESSAGE = "Voice recognition failed. Please try again."


def action_for(kind: RecognitionErrorKind) -> ErrorAction:
    return ERROR_POLICY.get(kind, ErrorAction.LOG)


def user_message_for(kind: RecognitionErrorKind) -> str:
    return USER_MESSAGES.get(kind, DEFAULT_USER_MESSAGE)


@dataclass(frozen=True)
class RecognitionFailure(Event):
    """A recognition error the session did not ignore"""
    kind: RecognitionErrorKind
    action: ErrorAction
    user_message: str


@dataclass(frozen=True)
class ListeningStopped(Event):
    """The session is no longer listening and will not restart by itself"""
    reason: str


class SpeechRecognitionSession:
    """
    Continuous recognition with a stop-safe lifecycle.

    ``stop()`` always resolves, also before any result arrived, and cancels
    a pending auto-restart.
    """

    def __init__(
        self,
        provider: SpeechRecognitionProvider,
        auto_restart: bool = False,
        restart_delay: float = 0.5,
        name: str = "recognition"
    ):
        self.provider = provider
        self.auto_restart = auto_restart
        self.restart_delay = restart_delay
        self.name = name
        self.events = EventBus(name)

        self._wants_listening = False
        self._stop_reason = "stopped"
        self._restart_task: Optional[asyncio.Task] = None
        self._tasks = BackgroundTasks(name)
        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(provider.subscribe(self._on_result, RecognitionResult))
        self._subscriptions.add(provider.subscribe(self._on_error, RecognitionError))
        self._subscriptions.add(provider.subscribe(self._on_ended, RecognitionEnded))

    @property
    def wants_listening(self) -> bool:
        return self._wants_listening

    @property
    def is_listening(self) -> bool:
        """Listening now, or about to restart"""
        return self._wants_listening and (self.provider.is_active() or self._restart_pending)

    @property
    def _restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    def start(self) -> bool:
        """
        Start listening.

        Returns:
            False if already listening or the recognizer is unavailable
        """
        if self._wants_listening or self.provider.is_active():
            logger.debug(f"[{self.name}] start ignored, already listening")
            return False
        if not self.provider.is_available():
            logger.warning(f"[{self.name}] speech recognition is not available")
            return False

        if not self.provider.start_continuous():
            logger.warning(f"[{self.name}] recognizer refused to start")
            return False

        self._wants_listening = True
        self._stop_reason = "stopped"
        logger.info(f"[{self.name}] listening")
        return True

    async def stop(self) -> None:
        """Stop listening; safe to call at any time"""
        was_listening = self._wants_listening
        self._wants_listening = False
        self._cancel_restart()

        if self.provider.is_active():
            try:
                await self.provider.stop_continuous()
            except Exception as e:
                logger.error(f"[{self.name}] error while stopping recognizer: {e}")
        elif was_listening:
            # Nothing left to end the run, report it here
            self.events.publish(ListeningStopped(reason="stopped"))

        if was_listening:
            logger.info(f"[{self.name}] stopped")

    async def close(self) -> None:
        await self.stop()
        self._subscriptions.close()
        await self._tasks.cancel_all()
        await self.events.close()

    async def drain(self) -> None:
        await self._tasks.drain()
        await self.events.drain()

    # ------------------------------------------------------------
    # Provider events
    # ------------------------------------------------------------

    def _on_result(self, event: RecognitionResult) -> None:
        if not self._wants_listening:
            return
        if not event.is_final:
            logger.debug(f"[{self.name}] interim: {event.transcript}")
        self.events.publish(event)

    def _on_error(self, event: RecognitionError) -> None:
        action = action_for(event.kind)

        if action is ErrorAction.IGNORE:
            logger.debug(f"[{self.name}] {event.kind.value}, still listening")
            return

        if action is ErrorAction.LOG:
            logger.warning(f"[{self.name}] recognition error: {event.kind.value} {event.message}")
            return

        if action is ErrorAction.NETWORK:
            logger.warning(f"[{self.name}] network error during recognition: {event.message}")
        elif action is ErrorAction.ABORTED:
            logger.info(f"[{self.name}] recognition aborted")
            self._give_up("aborted")
            return
        else:
            logger.error(f"[{self.name}] recognition error {event.kind.value}, not restarting")
            self._give_up("error")

        self.events.publish(RecognitionFailure(
            kind=event.kind,
            action=action,
            user_message=user_message_for(event.kind),
        ))

    def _give_up(self, reason: str) -> None:
        self._wants_listening = False
        self._stop_reason = reason
        self._cancel_restart()
        if self.provider.is_active():
            self._tasks.spawn(self.provider.stop_continuous())

    def _on_ended(self, event: RecognitionEnded) -> None:
        if self._wants_listening and self.auto_restart:
            logger.debug(f"[{self.name}] recognizer ended, restarting in {self.restart_delay}s")
            self._cancel_restart()
            self._restart_task = asyncio.ensure_future(self._restart_after_delay())
            return

        if self._wants_listening:
            self._wants_listening = False
            self._stop_reason = "ended"

        self.events.publish(ListeningStopped(reason=self._stop_reason))

    async def _restart_after_delay(self) -> None:
        try:
            await asyncio.sleep(self.restart_delay)
        except asyncio.CancelledError:
            return

        # stop() may have run while we slept
        if not self._wants_listening or self.provider.is_active():
            return

        if self.provider.start_continuous():
            logger.debug(f"[{self.name}] restarted")
        else:
            logger.warning(f"[{self.name}] auto-restart failed")
            self._wants_listening = False
            self.events.publish(ListeningStopped(reason="restart_failed"))

    def _cancel_restart(self) -> None:
        if self._restart_pending:
            self._restart_task.cancel()
        self._restart_task = None
