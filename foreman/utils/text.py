"""
Text Processing Utilities - Transcript normalization helpers

Shared by the duplicate suppressor, the single-flight query keys and the
wake word listener so that the same utterance always normalizes the same way.
"""

import re

_WHITESPACE = re.compile(r"\s+")
_WAKE_PUNCTUATION = re.compile(r"[,.!?]")


def normalize_transcript(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace"""
    return _WHITESPACE.sub(" ", text.strip().lower())


def strip_punctuation(text: str) -> str:
    """
    Remove the punctuation recognizers insert around a spoken phrase.

    Only ``, . ! ?`` are removed; hyphens survive so "WO-12" stays intact.
    """
    return _WAKE_PUNCTUATION.sub("", text)
