"""Base classes and registry for generative service adapters.

The orchestrator talks to two opaque services: a *list service* that returns
structured entity drafts and an *image service* that turns a background
bitmap plus a prompt into a synthesized image. Each backend (currently
Gemini) provides an adapter implementing both interfaces.

Usage Example
-------------
    >>> from archivist.core.model_adapters import adapter_registry
    >>> from archivist.core.config import config
    >>>
    >>> print(adapter_registry.list_available())
    ['Gemini']
    >>> adapter = adapter_registry.instantiate("Gemini", config)
    >>> drafts = await adapter.fetch_drafts(6)
    >>> image = await adapter.synthesize(background_png, prompt, aspect_ratio="1:1")

See Also
--------
- GenerationOrchestrator: consumer of these interfaces
- ArchivistConfig: service configuration options
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .config import ArchivistConfig

logger = logging.getLogger(__name__)


class ListServiceBase(ABC):
    """Source of raw entity drafts."""

    @abstractmethod
    async def fetch_drafts(self, count: int) -> list[dict[str, Any]]:
        """Request ``count`` entity drafts.

        The returned list is trusted as-is for length and order; each item is
        validated by the caller.

        Raises
        ------
        Exception
            On transport or parse failures
        """
        pass

    async def aclose(self) -> None:
        """Release any client held by the service. Safe to call twice."""


class ImageServiceBase(ABC):
    """Image synthesis backend."""

    @abstractmethod
    async def synthesize(
        self, background: bytes, prompt: str, aspect_ratio: str = "1:1"
    ) -> bytes | None:
        """Synthesize one image on top of ``background``.

        Returns
        -------
        bytes | None
            The first inline image payload of the response, or None if the
            response carried no image

        Raises
        ------
        Exception
            On transport failures
        """
        pass

    async def aclose(self) -> None:
        """Release any client held by the service. Safe to call twice."""


class ServiceAdapterBase(ListServiceBase, ImageServiceBase):
    """Abstract base class for backends that serve both lists and images.

    Attributes
    ----------
    name : str
        Registry name of the adapter (e.g., "Gemini")
    description : str
        Brief description of the backend
    config : ArchivistConfig
        Configuration object containing service settings
    """

    name: str = "Base Service Adapter"
    description: str = "Base class for service adapters"
    version: str = "0.1.0"

    def __init__(self, config: ArchivistConfig) -> None:
        self.config = config
        logger.info(f"Initialized {self.name} adapter")

    def get_adapter_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
        }


class AdapterRegistry:
    """Registry for managing available service adapters.

    Usage
    -----
        >>> adapter_registry.register(MyBackendAdapter)
        >>> adapter = adapter_registry.instantiate("My Backend", config)

    Notes
    -----
    - Adapters must be registered before they can be instantiated
    - Registry is global and shared across the application
    """

    def __init__(self) -> None:
        self._adapters: dict[str, type[ServiceAdapterBase]] = {}

    def register(self, adapter_class: type[ServiceAdapterBase]) -> None:
        """Register a service adapter class.

        Args:
            adapter_class: Adapter class to register
        """
        adapter_name = adapter_class.name

        if adapter_name in self._adapters:
            logger.warning(f"Service adapter '{adapter_name}' is already registered, overwriting")

        self._adapters[adapter_name] = adapter_class
        logger.info(f"Registered service adapter: {adapter_name}")

    def instantiate(self, adapter_name: str, config: ArchivistConfig) -> ServiceAdapterBase:
        """Create an instance of a registered service adapter.

        Raises
        ------
        KeyError
            If adapter_name is not registered
        """
        if adapter_name not in self._adapters:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"Service adapter '{adapter_name}' not found. Available adapters: {available}"
            )

        instance = self._adapters[adapter_name](config=config)
        logger.info(f"Instantiated service adapter: {adapter_name}")
        return instance

    def get_adapter_class(self, adapter_name: str) -> type[ServiceAdapterBase] | None:
        return self._adapters.get(adapter_name)

    def list_available(self) -> list[str]:
        return list(self._adapters.keys())

    def get_adapter_info(self, adapter_name: str) -> dict[str, Any] | None:
        """Get information about a registered adapter, or None if unknown."""
        adapter_class = self._adapters.get(adapter_name)
        if adapter_class is None:
            return None
        return {
            "name": adapter_class.name,
            "description": adapter_class.description,
            "version": adapter_class.version,
        }


# Global adapter registry instance
adapter_registry = AdapterRegistry()
