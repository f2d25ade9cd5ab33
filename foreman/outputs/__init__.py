"""Conversation outputs: timeline and speech."""

from .timeline import Timeline, Message, Sender, FeedbackPolarity
from .speech import SpeechOutput

__all__ = ["Timeline", "Message", "Sender", "FeedbackPolarity", "SpeechOutput"]
