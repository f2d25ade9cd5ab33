"""Speech recognition providers."""

from .base import (
    SpeechRecognitionProvider, RecognitionResult, RecognitionError,
    RecognitionEnded, RecognitionErrorKind
)
from .scripted import ScriptedSpeechProvider

__all__ = [
    "SpeechRecognitionProvider",
    "RecognitionResult",
    "RecognitionError",
    "RecognitionEnded",
    "RecognitionErrorKind",
    "ScriptedSpeechProvider",
]
