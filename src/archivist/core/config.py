"""Configuration management for Archivist.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the ARCHIVIST_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (ARCHIVIST_* prefix)
2. .env file in the project root
3. Default values defined in ArchivistConfig

The Gemini API key is the one exception to the prefix rule: it is also read
from the plain ``GEMINI_API_KEY`` variable, which is what the Google tooling
exports by default.

Example .env file:
    ARCHIVIST_GEMINI_API_KEY=...
    ARCHIVIST_LIST_MODEL=gemini-3.1-pro-preview
    ARCHIVIST_IMAGE_MODEL=gemini-2.5-flash-image
    ARCHIVIST_OUTPUTS_DIR=outputs

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from archivist.core.config import config

    print(config.image_model)
    print(config.outputs_dir)

Directory Management
--------------------
The configuration creates ``outputs_dir`` on initialization; exported grid
images, PDF documents and the export manifest live there.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .materials import AspectRatio, Material, Resolution


class ArchivistConfig(BaseSettings):
    """Main configuration for Archivist.

    Attributes
    ----------
    Service Settings:
        default_adapter : str
            Name of the registered service adapter used for runs
        gemini_api_key : str | None
            API key for the Gemini adapter
        list_model : str
            Model used to produce the entity list
        image_model : str
            Model used to synthesize entity images

    Texture Settings:
        texture_size : int
            Edge length in pixels of the square background texture
        texture_fetch_timeout : float
            Timeout in seconds for fetching tileable pattern images

    Run Defaults:
        default_count, default_material, default_resolution, default_aspect_ratio

    Paths:
        outputs_dir : Path
            Directory for exported artifacts

    Server Settings:
        server_host : str
        server_port : int

    Examples
    --------
        >>> custom_config = ArchivistConfig(
        ...     image_model="gemini-2.5-flash-image",
        ...     outputs_dir="/tmp/archive-out",
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARCHIVIST_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Service adapter settings
    default_adapter: str = Field(
        default="Gemini",
        description="Registered service adapter used for list and image requests",
    )
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "gemini_api_key", "ARCHIVIST_GEMINI_API_KEY", "GEMINI_API_KEY"
        ),
        description="API key for the Gemini service adapter",
    )
    list_model: str = Field(
        default="gemini-3.1-pro-preview",
        description="Model that returns the structured entity list",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Model that synthesizes one image per entity",
    )

    # Background texture settings
    texture_size: int = Field(default=1024, ge=64, le=4096)
    texture_fetch_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for a tileable pattern before falling back",
        gt=0,
    )

    # Run defaults (mirrors the initial UI state)
    default_count: int = Field(default=6, ge=2, le=12)
    default_material: Material = Field(default=Material.WOOD)
    default_resolution: Resolution = Field(default=Resolution.HD_1080P)
    default_aspect_ratio: AspectRatio = Field(default=AspectRatio.WIDE)

    # Paths
    outputs_dir: Path = Field(
        default=Path("outputs"),
        description="Directory for exported grid images and documents",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    def __init__(self, **kwargs):
        """Initialize configuration and create the outputs directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.outputs_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (ARCHIVIST_* prefix) and .env file.
config = ArchivistConfig()
