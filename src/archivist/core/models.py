"""Data models for archive entities, run configuration and snapshots.

Entities and snapshots are frozen: the orchestrator never edits a published
value in place, it publishes a replacement. Readers (exporters, the HTTP API)
can therefore hold on to any snapshot without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .materials import AspectRatio, Material, Resolution

logger = logging.getLogger(__name__)

MIN_COUNT = 2
MAX_COUNT = 12


class EntityStatus(str, Enum):
    """Lifecycle of a single entity within one run."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_settled(self) -> bool:
        """True once the entity has reached a terminal status."""
        return self in (EntityStatus.COMPLETED, EntityStatus.ERROR)


class RunPhase(str, Enum):
    """Phase of the generation orchestrator."""

    IDLE = "idle"
    LISTING = "listing"
    IMAGING = "imaging"


class EntityDraft(BaseModel):
    """One item as returned by the list service, before it gets an id.

    All six fields are required and the dimensions must be finite positive
    numbers (JSON integers or floats; booleans and numeric strings are
    rejected). Any violation surfaces as a pydantic ``ValidationError``,
    which the orchestrator turns into ``MalformedListResponse``.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    year: str = Field(..., min_length=1)
    description: str
    width_mm: float = Field(..., gt=0, allow_inf_nan=False)
    height_mm: float = Field(..., gt=0, allow_inf_nan=False)
    depth_mm: float = Field(..., gt=0, allow_inf_nan=False)

    @field_validator("width_mm", "height_mm", "depth_mm", mode="before")
    @classmethod
    def _dimension_is_number(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Dimension must be a number, got {type(value).__name__}")
        return value

    @field_validator("year", mode="before")
    @classmethod
    def _year_as_text(cls, value):
        # Models occasionally answer with a bare integer year
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


@dataclass(frozen=True)
class Entity:
    """A single archived item.

    ``status == COMPLETED`` holds exactly when ``image`` is non-empty. The
    transition helpers enforce ``pending -> generating -> completed|error``
    and raise ``ValueError`` on any other move.
    """

    id: str
    name: str
    year: str
    description: str
    width_mm: float
    height_mm: float
    depth_mm: float
    image: bytes | None = field(default=None, repr=False)
    status: EntityStatus = EntityStatus.PENDING
    error: str | None = None

    @classmethod
    def from_draft(cls, entity_id: str, draft: EntityDraft) -> Entity:
        return cls(
            id=entity_id,
            name=draft.name,
            year=draft.year,
            description=draft.description,
            width_mm=draft.width_mm,
            height_mm=draft.height_mm,
            depth_mm=draft.depth_mm,
        )

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    @property
    def dimensions_label(self) -> str:
        """Human-readable dimensions, e.g. ``135mm W x 80mm H x 60mm D``."""
        return (
            f"{_format_mm(self.width_mm)}mm W x "
            f"{_format_mm(self.height_mm)}mm H x "
            f"{_format_mm(self.depth_mm)}mm D"
        )

    def start(self) -> Entity:
        if self.status is not EntityStatus.PENDING:
            raise ValueError(f"Entity {self.id} cannot start from status {self.status.value}")
        return replace(self, status=EntityStatus.GENERATING)

    def complete(self, image: bytes) -> Entity:
        if self.status is not EntityStatus.GENERATING:
            raise ValueError(f"Entity {self.id} cannot complete from status {self.status.value}")
        if not image:
            raise ValueError(f"Entity {self.id} cannot complete without image data")
        return replace(self, image=image, status=EntityStatus.COMPLETED, error=None)

    def fail(self, message: str) -> Entity:
        if self.status is not EntityStatus.GENERATING:
            raise ValueError(f"Entity {self.id} cannot fail from status {self.status.value}")
        return replace(self, status=EntityStatus.ERROR, error=message)


def _format_mm(value: float) -> str:
    # 135.0 -> "135", 92.5 -> "92.5"
    return f"{value:g}"


@dataclass(frozen=True)
class GenerationConfig:
    """Parameters for one generation run.

    This dataclass encapsulates the user-facing run settings, with built-in
    validation logic. It is frozen so a run can never observe a change made
    after it started.
    """

    count: int = 6
    material: Material = Material.WOOD
    resolution: Resolution = Resolution.HD_1080P
    aspect_ratio: AspectRatio = AspectRatio.WIDE

    def __post_init__(self) -> None:
        # Accept plain strings for the enum fields
        object.__setattr__(self, "material", Material(self.material))
        object.__setattr__(self, "resolution", Resolution(self.resolution))
        object.__setattr__(self, "aspect_ratio", AspectRatio(self.aspect_ratio))

    def validate(self) -> None:
        """Validate run parameters.

        Raises:
            ValueError: If any parameter is invalid, with descriptive message
        """
        if isinstance(self.count, bool) or not isinstance(self.count, int):
            raise ValueError(f"Count must be an integer, got {self.count!r}")
        if self.count < MIN_COUNT or self.count > MAX_COUNT:
            raise ValueError(f"Count must be {MIN_COUNT}-{MAX_COUNT}, got {self.count}")


@dataclass(frozen=True)
class ArchiveSnapshot:
    """Immutable view of the orchestrator state at one publish.

    Attributes
    ----------
    run_id : str | None
        Token of the run that produced this snapshot (None before any run)
    version : int
        Publish counter, strictly increasing per orchestrator
    phase : RunPhase
        Orchestrator phase at publish time
    config : GenerationConfig | None
        Configuration of the run, if any
    entities : tuple[Entity, ...]
        Entity collection in list order
    error : str | None
        User-visible run-level failure message
    """

    run_id: str | None = None
    version: int = 0
    phase: RunPhase = RunPhase.IDLE
    config: GenerationConfig | None = None
    entities: tuple[Entity, ...] = ()
    error: str | None = None

    @property
    def is_running(self) -> bool:
        return self.phase is not RunPhase.IDLE

    @property
    def completed_count(self) -> int:
        return sum(1 for e in self.entities if e.status is EntityStatus.COMPLETED)

    @property
    def settled_count(self) -> int:
        return sum(1 for e in self.entities if e.status.is_settled)

    @property
    def progress(self) -> float:
        """Fraction of entities that reached ``completed`` or ``error``."""
        if not self.entities:
            return 0.0
        return self.settled_count / len(self.entities)

    @property
    def completed_ratio(self) -> float:
        """Completed entities over the requested count."""
        if self.config is None or not self.config.count:
            return 0.0
        return self.completed_count / self.config.count

    @property
    def current(self) -> Entity | None:
        """The entity currently being synthesized, if any."""
        return next((e for e in self.entities if e.status is EntityStatus.GENERATING), None)

    def get(self, entity_id: str) -> Entity | None:
        return next((e for e in self.entities if e.id == entity_id), None)
