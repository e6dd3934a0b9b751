"""Pydantic request and response models for the Archivist API.

These models define the JSON schema for every API endpoint. FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
RunRequest
    Payload for ``POST /api/runs`` — the run configuration.
ExportRequest
    Payload for ``POST /api/export/grid`` and ``POST /api/export/document`` —
    optional overrides for the exported resolution and material.
EntityResponse / SnapshotResponse
    Serialised view of the current archive snapshot.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from archivist.core.materials import AspectRatio, Material, Resolution
from archivist.core.models import (
    MAX_COUNT,
    MIN_COUNT,
    ArchiveSnapshot,
    Entity,
    GenerationConfig,
)


class RunRequest(BaseModel):
    """Request body for the ``POST /api/runs`` endpoint.

    Attributes:
        count: Number of cameras to generate (2–12 inclusive).
        material: Shelf material used for the shared background and grid fill.
        resolution: Grid export resolution.
        aspect_ratio: Archive aspect ratio (informational).
    """

    count: int = Field(
        default=6,
        ge=MIN_COUNT,
        le=MAX_COUNT,
        description="Number of cameras to generate (2–12).",
    )
    material: Material = Field(
        default=Material.WOOD,
        description="Shelf material id (wood, marble, glass, brushed-metal, stone).",
    )
    resolution: Resolution = Field(
        default=Resolution.HD_1080P,
        description="Grid export resolution (1080p, 2K, 4K).",
    )
    aspect_ratio: AspectRatio = Field(
        default=AspectRatio.WIDE,
        description="Archive aspect ratio (16:9, 4:3, 1:1).",
    )

    def to_config(self) -> GenerationConfig:
        return GenerationConfig(
            count=self.count,
            material=self.material,
            resolution=self.resolution,
            aspect_ratio=self.aspect_ratio,
        )


class ExportRequest(BaseModel):
    """Request body for the export endpoints.

    Both fields default to the values of the run that produced the current
    snapshot.
    """

    resolution: Resolution | None = Field(
        default=None,
        description="Override the grid resolution (also used in the file name).",
    )
    material: Material | None = Field(
        default=None,
        description="Override the grid base colour.",
    )


class EntityResponse(BaseModel):
    """One entity of the snapshot, without image bytes."""

    id: str
    name: str
    year: str
    description: str
    width_mm: float
    height_mm: float
    depth_mm: float
    status: str
    error: str | None = None
    image_url: str | None = None

    @classmethod
    def from_entity(cls, entity: Entity) -> EntityResponse:
        return cls(
            id=entity.id,
            name=entity.name,
            year=entity.year,
            description=entity.description,
            width_mm=entity.width_mm,
            height_mm=entity.height_mm,
            depth_mm=entity.depth_mm,
            status=entity.status.value,
            error=entity.error,
            image_url=f"/api/archive/{entity.id}/image" if entity.has_image else None,
        )


class SnapshotResponse(BaseModel):
    """Serialised :class:`ArchiveSnapshot`."""

    run_id: str | None
    version: int
    phase: str
    error: str | None
    count: int | None
    material: str | None
    resolution: str | None
    aspect_ratio: str | None
    progress: float
    completed_count: int
    current_id: str | None
    entities: list[EntityResponse]

    @classmethod
    def from_snapshot(cls, snapshot: ArchiveSnapshot) -> SnapshotResponse:
        cfg = snapshot.config
        current = snapshot.current
        return cls(
            run_id=snapshot.run_id,
            version=snapshot.version,
            phase=snapshot.phase.value,
            error=snapshot.error,
            count=cfg.count if cfg else None,
            material=cfg.material.value if cfg else None,
            resolution=cfg.resolution.value if cfg else None,
            aspect_ratio=cfg.aspect_ratio.value if cfg else None,
            progress=snapshot.progress,
            completed_count=snapshot.completed_count,
            current_id=current.id if current else None,
            entities=[EntityResponse.from_entity(e) for e in snapshot.entities],
        )
