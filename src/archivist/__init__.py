"""Archivist - Generated vintage camera archive with grid and PDF export."""

__version__ = "0.1.0"

from archivist.core.config import ArchivistConfig, config
from archivist.core.model_adapters import ServiceAdapterBase, adapter_registry

# Import adapters to ensure they're registered
from archivist.core.adapters import GeminiAdapter  # noqa: F401

__all__ = [
    "ArchivistConfig",
    "GeminiAdapter",
    "ServiceAdapterBase",
    "adapter_registry",
    "config",
]
