"""
Speech Recognition Provider Interface

A continuous recognizer that reports results, errors and the end of a
recognition run as events. Both the wake word listener and the active
recognition session are built on this interface.
"""

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type

from ...core.events import Event, EventBus, Handler, Subscription
from ..base import ProviderBase


class RecognitionErrorKind(Enum):
    """Error codes reported by continuous recognizers"""
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    LANGUAGE_NOT_SUPPORTED = "language-not-supported"
    NETWORK = "network"
    ABORTED = "aborted"
    BAD_GRAMMAR = "bad-grammar"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: str) -> "RecognitionErrorKind":
        for kind in cls:
            if kind.value == code:
                return kind
        return cls.UNKNOWN


@dataclass(frozen=True)
class RecognitionResult(Event):
    transcript: str
    is_final: bool = True


@dataclass(frozen=True)
class RecognitionError(Event):
    kind: RecognitionErrorKind
    message: str = ""


@dataclass(frozen=True)
class RecognitionEnded(Event):
    """The recognizer stopped, on request or on its own"""
    pass


class SpeechRecognitionProvider(ProviderBase):
    """
    Abstract continuous speech recognizer.

    Implementations publish RecognitionResult, RecognitionError and
    RecognitionEnded on ``self.events``.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.language = config.get("language", "en-US")
        self.interim_results = config.get("interim_results", True)
        self.events = EventBus(name=self.get_provider_name())

    @abstractmethod
    def start_continuous(self) -> bool:
        """Begin recognizing; False if already running or unavailable"""
        pass

    @abstractmethod
    async def stop_continuous(self) -> None:
        """Stop recognizing; returns once the recognizer has released the microphone"""
        pass

    @abstractmethod
    def is_active(self) -> bool:
        pass

    async def cleanup(self) -> None:
        if self.is_active():
            await self.stop_continuous()
        await super().cleanup()

    def subscribe(self, handler: Handler, event_type: Optional[Type[Event]] = None) -> Subscription:
        return self.events.subscribe(handler, event_type)

    def _emit(self, event: Event) -> None:
        self.events.publish(event)
