"""
Foreman Utilities

- Logging configuration
- Transcript text normalization
"""

from .logging import setup_logging
from .text import normalize_transcript, strip_punctuation

__all__ = [
    'setup_logging',
    'normalize_transcript',
    'strip_punctuation',
]
