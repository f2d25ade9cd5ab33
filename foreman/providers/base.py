"""
Provider Base Classes

Speech recognizers and TTS engines share a small lifecycle: the
application initializes every provider at start-up, reports the ones that
turn out unusable, and releases them on shutdown.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


class ComponentNotAvailable(Exception):
    """Raised when a provider cannot be used on this system"""
    pass


class ProviderStatus(Enum):
    UNKNOWN = "unknown"
    INITIALIZING = "initializing"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ERROR = "error"


class ProviderBase(ABC):
    """Configuration, per-provider logger and availability status"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._status = ProviderStatus.UNKNOWN
        self._last_error: Optional[str] = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def status(self) -> ProviderStatus:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def _set_status(self, status: ProviderStatus, error: Optional[str] = None) -> None:
        self._status = status
        self._last_error = error
        if error:
            self.logger.warning(f"{self.get_provider_name()} is {status.value}: {error}")
        else:
            self.logger.debug(f"{self.get_provider_name()} is {status.value}")

    @abstractmethod
    def is_available(self) -> bool:
        """True if the provider can be used right now"""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    async def initialize(self) -> None:
        """
        Prepare the provider for use.

        Raises:
            ComponentNotAvailable: if the provider is unusable afterwards
        """
        self._set_status(ProviderStatus.INITIALIZING)
        try:
            await self._do_initialize()
        except Exception as e:
            self._set_status(ProviderStatus.ERROR, str(e))
            raise ComponentNotAvailable(f"{self.get_provider_name()} failed to initialize: {e}") from e

        if not self.is_available():
            self._set_status(ProviderStatus.UNAVAILABLE, "not available on this system")
            raise ComponentNotAvailable(f"{self.get_provider_name()} is not available")
        self._set_status(ProviderStatus.AVAILABLE)

    async def _do_initialize(self) -> None:
        """Provider-specific set-up, e.g. opening a device"""
        pass

    async def cleanup(self) -> None:
        """Release provider resources"""
        self._set_status(ProviderStatus.UNKNOWN)
