"""Core functionality for archive generation and export.

This module provides the core components of Archivist:

- **GenerationOrchestrator**: Two-phase run (entity list, then one image per entity)
- **Service adapters**: Pluggable list/image backends, with a registry
- **BackgroundTextureGenerator**: Shared shelf background for image synthesis
- **CompositeRenderer**: Raster grid export
- **DocumentExporter**: Paginated PDF export
- **ArchivistConfig**: Configuration management using Pydantic Settings
- **config**: Global configuration instance (loads from environment variables)

Architecture Overview
---------------------
1. **Configuration Layer** (config.py, materials.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with ARCHIVIST_ in .env files
   - One material table shared by every material-dependent code path

2. **Service Adapter Layer** (model_adapters.py, adapters/):
   - Abstract list and image service interfaces
   - Gemini implementation
   - Registry pattern for backend discovery

3. **Run Layer** (orchestrator.py, texture.py, prompt_builder.py):
   - Sequential image synthesis over one shared background
   - Immutable snapshots published after every state change

4. **Export Layer** (composite.py, document.py):
   - Pull-based; renders whatever snapshot it is handed

Usage Example
-------------
    from archivist.core import build_orchestrator, config
    from archivist.core.models import GenerationConfig

    orchestrator = build_orchestrator(config)
    snapshot = await orchestrator.run(GenerationConfig(count=8, material="marble"))

    png = CompositeRenderer().render_png(snapshot.entities, snapshot.config)
    pdf = DocumentExporter().render(snapshot.entities)
"""

# Import adapters to ensure they're registered
from archivist.core.adapters import GeminiAdapter  # noqa: F401
from archivist.core.composite import CompositeRenderer
from archivist.core.config import ArchivistConfig, config
from archivist.core.document import DocumentExporter
from archivist.core.model_adapters import ServiceAdapterBase, adapter_registry
from archivist.core.orchestrator import GenerationOrchestrator, build_orchestrator
from archivist.core.texture import BackgroundTextureGenerator

__all__ = [
    "ArchivistConfig",
    "BackgroundTextureGenerator",
    "CompositeRenderer",
    "DocumentExporter",
    "GenerationOrchestrator",
    "ServiceAdapterBase",
    "adapter_registry",
    "build_orchestrator",
    "config",
]
