"""Transcript classification."""

from .models import IntentKind, ClassifiedTranscript
from .classifier import TranscriptClassifier, canonical_work_order_id

__all__ = [
    "IntentKind",
    "ClassifiedTranscript",
    "TranscriptClassifier",
    "canonical_work_order_id",
]
