"""Generation orchestrator: list fetch followed by sequential image synthesis.

A run has two phases:

1. **Listing** — one request to the list service. Every returned draft is
   validated; a single malformed draft fails the whole run and nothing is
   published.
2. **Imaging** — one background bitmap is generated for the run's material,
   then each entity is synthesized in list order, strictly one request at a
   time. A failed entity is marked ``error`` and the run moves on.

State is published as immutable :class:`ArchiveSnapshot` values. The
orchestrator is the only writer; readers take :attr:`snapshot` (or subscribe)
and never see a half-applied update.

Run Tokens
----------
Each run gets a fresh ``run_id``. :meth:`GenerationOrchestrator.cancel`
abandons the active run; any response that arrives for an abandoned run is
dropped instead of being written into the current collection.

Usage
-----
::

    orchestrator = build_orchestrator(config)
    orchestrator.subscribe(lambda snap: print(f"{snap.progress:.0%}"))
    snapshot = await orchestrator.run(GenerationConfig(count=6))
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import replace

from pydantic import ValidationError

from .config import ArchivistConfig
from .errors import AlreadyRunning, ListGenerationFailed, MalformedListResponse, SynthesisFailed
from .model_adapters import ImageServiceBase, ListServiceBase, adapter_registry
from .models import (
    ArchiveSnapshot,
    Entity,
    EntityDraft,
    EntityStatus,
    GenerationConfig,
    RunPhase,
)
from .prompt_builder import build_image_prompt
from .texture import BackgroundTextureGenerator

logger = logging.getLogger(__name__)

LIST_FAILURE_MESSAGE = "Failed to generate camera list. Please try again."
CANCELLED_MESSAGE = "Run cancelled"

# Synthesized cells are always square, whatever the archive aspect ratio
SYNTHESIS_ASPECT_RATIO = "1:1"

Subscriber = Callable[[ArchiveSnapshot], None]


class GenerationOrchestrator:
    """Drives one generation run at a time and publishes its progress.

    Args:
        list_service: Source of entity drafts
        image_service: Image synthesis backend
        texture_generator: Builds the shared background bitmap
    """

    def __init__(
        self,
        list_service: ListServiceBase,
        image_service: ImageServiceBase,
        texture_generator: BackgroundTextureGenerator | None = None,
    ) -> None:
        self._list_service = list_service
        self._image_service = image_service
        self._texture = texture_generator or BackgroundTextureGenerator()

        self._snapshot = ArchiveSnapshot()
        self._version = 0
        self._active_run: str | None = None
        self._task: asyncio.Task | None = None
        self._subscribers: list[Subscriber] = []

    # -- Read side ----------------------------------------------------------

    @property
    def snapshot(self) -> ArchiveSnapshot:
        """Latest published snapshot."""
        return self._snapshot

    @property
    def phase(self) -> RunPhase:
        return self._snapshot.phase

    @property
    def is_running(self) -> bool:
        return self._active_run is not None

    def subscribe(self, callback: Subscriber) -> None:
        """Call ``callback`` with every snapshot published from now on."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # -- Run control --------------------------------------------------------

    async def run(self, config: GenerationConfig) -> ArchiveSnapshot:
        """Execute a full run and return the final snapshot.

        Raises:
            ValueError: If ``config`` is invalid
            AlreadyRunning: If a run is already active
            ListGenerationFailed: If the list phase fails
        """
        run_id = self._begin(config)
        return await self._execute(run_id, config)

    def start_run(self, config: GenerationConfig) -> asyncio.Task:
        """Start a run in the background on the running event loop.

        The busy check happens before this returns, so a second call made
        while the first run is active raises immediately.

        Raises:
            ValueError: If ``config`` is invalid
            AlreadyRunning: If a run is already active
        """
        run_id = self._begin(config)
        task = asyncio.get_running_loop().create_task(self._execute(run_id, config))
        task.add_done_callback(self._on_task_done)
        self._task = task
        return task

    def cancel(self) -> bool:
        """Abandon the active run.

        The entity being synthesized (if any) is marked ``error``, the phase
        returns to idle, and late responses from the abandoned run are
        discarded.

        Returns:
            True if a run was active
        """
        if self._active_run is None:
            return False

        logger.info(f"Cancelling run {self._active_run}")
        task, self._task = self._task, None
        self._abandon()

        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        return True

    async def aclose(self) -> None:
        """Cancel any active run and release the service clients."""
        self.cancel()
        await self._list_service.aclose()
        if self._image_service is not self._list_service:
            await self._image_service.aclose()

    # -- Internals ----------------------------------------------------------

    def _begin(self, config: GenerationConfig) -> str:
        config.validate()
        if self._active_run is not None:
            raise AlreadyRunning(f"Run {self._active_run} is still in progress")

        run_id = uuid.uuid4().hex
        self._active_run = run_id
        logger.info(
            f"Starting run {run_id}: count={config.count}, material={config.material.value}, "
            f"resolution={config.resolution.value}"
        )
        self._publish(
            run_id=run_id,
            phase=RunPhase.LISTING,
            config=config,
            entities=(),
            error=None,
        )
        return run_id

    def _abandon(self) -> None:
        self._active_run = None
        entities = tuple(
            e.fail(CANCELLED_MESSAGE) if e.status is EntityStatus.GENERATING else e
            for e in self._snapshot.entities
        )
        self._publish(phase=RunPhase.IDLE, entities=entities, error=CANCELLED_MESSAGE)

    async def _execute(self, run_id: str, config: GenerationConfig) -> ArchiveSnapshot:
        try:
            return await self._run_phases(run_id, config)
        except asyncio.CancelledError:
            # Task cancelled or timed out by the caller rather than through cancel()
            if self._is_current(run_id):
                logger.info(f"Run {run_id} was cancelled by its caller")
                self._abandon()
            raise

    async def _run_phases(self, run_id: str, config: GenerationConfig) -> ArchiveSnapshot:
        try:
            entities = await self._fetch_entities(run_id, config)
        except ListGenerationFailed as e:
            logger.error(f"List generation failed for run {run_id}: {e}", exc_info=True)
            if self._is_current(run_id):
                self._active_run = None
                self._publish(phase=RunPhase.IDLE, entities=(), error=LIST_FAILURE_MESSAGE)
            raise

        if not self._is_current(run_id):
            logger.info(f"Discarding list response for abandoned run {run_id}")
            return self._snapshot

        self._publish(phase=RunPhase.IMAGING, entities=entities)

        background = await self._build_background(config)

        for entity in entities:
            if not self._is_current(run_id):
                logger.info(f"Run {run_id} abandoned, stopping image synthesis")
                return self._snapshot
            await self._synthesize_entity(run_id, entity, background)

        if self._is_current(run_id):
            self._active_run = None
            self._publish(phase=RunPhase.IDLE)
            snap = self._snapshot
            logger.info(
                f"Run {run_id} finished: {snap.completed_count}/{len(snap.entities)} completed"
            )
        return self._snapshot

    async def _fetch_entities(self, run_id: str, config: GenerationConfig) -> tuple[Entity, ...]:
        try:
            raw = await self._list_service.fetch_drafts(config.count)
        except ListGenerationFailed:
            raise
        except Exception as e:
            raise ListGenerationFailed(f"List request failed: {e}") from e

        if not isinstance(raw, list):
            raise MalformedListResponse(f"Expected a list of drafts, got {type(raw).__name__}")

        entities = []
        for index, item in enumerate(raw):
            try:
                draft = EntityDraft.model_validate(item)
            except ValidationError as e:
                raise MalformedListResponse(f"Draft {index} is malformed: {e}") from e
            entities.append(Entity.from_draft(f"cam-{index}-{run_id[:8]}", draft))

        if len(entities) != config.count:
            logger.warning(f"Requested {config.count} entities, list service returned {len(entities)}")
        return tuple(entities)

    async def _build_background(self, config: GenerationConfig) -> bytes | None:
        try:
            return await self._texture.generate(config.material)
        except Exception as e:
            logger.error(f"Background generation failed: {e}", exc_info=True)
            return None

    async def _synthesize_entity(self, run_id: str, entity: Entity, background: bytes | None) -> None:
        self._transition(run_id, entity.id, Entity.start)

        try:
            if background is None:
                raise SynthesisFailed("Background texture unavailable")
            image = await self._image_service.synthesize(
                background, build_image_prompt(entity), aspect_ratio=SYNTHESIS_ASPECT_RATIO
            )
            if not image:
                raise SynthesisFailed("No image data received")
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Error generating image for {entity.name}: {message}")
            self._transition(run_id, entity.id, lambda current: current.fail(message))
            return

        self._transition(run_id, entity.id, lambda current: current.complete(image))

    def _transition(
        self, run_id: str, entity_id: str, change: Callable[[Entity], Entity]
    ) -> None:
        if not self._is_current(run_id):
            logger.debug(f"Dropping update for {entity_id} from abandoned run {run_id}")
            return
        entities = tuple(
            change(e) if e.id == entity_id else e for e in self._snapshot.entities
        )
        self._publish(entities=entities)

    def _is_current(self, run_id: str) -> bool:
        return self._active_run == run_id

    def _publish(self, **changes) -> None:
        self._version += 1
        self._snapshot = replace(self._snapshot, version=self._version, **changes)
        for callback in list(self._subscribers):
            try:
                callback(self._snapshot)
            except Exception as e:
                logger.error(f"Snapshot subscriber failed: {e}", exc_info=True)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Background run ended with {type(exc).__name__}: {exc}")


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def build_orchestrator(config: ArchivistConfig) -> GenerationOrchestrator:
    """Create an orchestrator wired to the configured service adapter."""
    adapter = adapter_registry.instantiate(config.default_adapter, config)
    texture = BackgroundTextureGenerator(
        size=config.texture_size, timeout=config.texture_fetch_timeout
    )
    return GenerationOrchestrator(adapter, adapter, texture)
