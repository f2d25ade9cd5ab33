"""Voice input: recognition session, wake word listener and microphone controller."""

from .recognition import SpeechRecognitionSession, RecognitionFailure, ListeningStopped, ErrorAction
from .wake_word import WakeWordListener
from .controller import VoiceInputController, RecognitionState

__all__ = [
    "SpeechRecognitionSession",
    "RecognitionFailure",
    "ListeningStopped",
    "ErrorAction",
    "WakeWordListener",
    "VoiceInputController",
    "RecognitionState",
]
