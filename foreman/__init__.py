"""
Foreman - Voice-driven work order assistant

An async front end that listens for a wake phrase, transcribes speech,
classifies it as a work order command or a general question and drives
the step-by-step work order workflow against the backend service.
"""

from .__version__ import __version__, __version_info__, VERSION

__author__ = "Foreman Project"

from .config.models import CoreConfig
from .core.app import ForemanApp

__all__ = [
    "ForemanApp",
    "CoreConfig",
    "__version__",
    "VERSION",
]
