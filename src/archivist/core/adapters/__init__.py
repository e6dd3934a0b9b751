"""Service adapter implementations.

Importing this package registers every bundled adapter with
:data:`archivist.core.model_adapters.adapter_registry`.
"""

from .gemini import GeminiAdapter

__all__ = ["GeminiAdapter"]
