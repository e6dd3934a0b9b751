"""Shared pytest fixtures for Archivist tests."""

import asyncio
import io
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, Generator

import pytest
from PIL import Image

from archivist.core.config import ArchivistConfig
from archivist.core.model_adapters import ImageServiceBase, ListServiceBase
from archivist.core.models import Entity, EntityStatus
from archivist.core.orchestrator import GenerationOrchestrator
from archivist.core.texture import BackgroundTextureGenerator


def make_png(width: int = 64, height: int = 64, color=(200, 40, 40, 255)) -> bytes:
    """Encode a solid-colour RGBA PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_draft(index: int) -> dict:
    """A well-formed list item as a list service would return it."""
    return {
        "name": f"Test Camera {index:02d}",
        "year": str(1900 + index),
        "description": f"Folding camera number {index} with a leather bellows.",
        "width_mm": 135.0 + index,
        "height_mm": 80.0,
        "depth_mm": 60.5,
    }


async def _wait_for(gate: threading.Event | None) -> None:
    # Polls so the gate can be released from a thread other than the loop's
    while gate is not None and not gate.is_set():
        await asyncio.sleep(0.005)


class FakeListService(ListServiceBase):
    """In-memory list service.

    Attributes
    ----------
    drafts : list | None
        Response to return verbatim; None returns ``count`` well-formed drafts
    error : Exception | None
        Raised instead of returning a response
    gate : threading.Event | None
        Response is held back until the event is set
    """

    def __init__(self) -> None:
        self.calls: list[int] = []
        self.drafts = None
        self.error: Exception | None = None
        self.gate: threading.Event | None = None
        self.closed = 0

    async def fetch_drafts(self, count: int):
        self.calls.append(count)
        await _wait_for(self.gate)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.drafts is not None:
            return self.drafts
        return [make_draft(i) for i in range(count)]

    async def aclose(self) -> None:
        self.closed += 1


class FakeImageService(ImageServiceBase):
    """In-memory image service that records every request.

    Prompts containing a name from ``fail_names`` raise, and prompts
    containing a name from ``empty_names`` return no image. ``on_request`` is
    awaited with the prompt before the response is produced.
    """

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.aspect_ratios: list[str] = []
        self.backgrounds: list[bytes] = []
        self.fail_names: set[str] = set()
        self.empty_names: set[str] = set()
        self.on_request = None
        self.gate: threading.Event | None = None
        self.closed = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def synthesize(self, background: bytes, prompt: str, aspect_ratio: str = "1:1"):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.prompts.append(prompt)
            self.aspect_ratios.append(aspect_ratio)
            self.backgrounds.append(background)
            await _wait_for(self.gate)
            await asyncio.sleep(0)
            if self.on_request is not None:
                await self.on_request(prompt)
            if any(name in prompt for name in self.fail_names):
                raise RuntimeError("quota exceeded")
            if any(name in prompt for name in self.empty_names):
                return None
            return make_png(color=(20 * len(self.prompts) % 255, 90, 160, 255))
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed += 1


async def _unreachable_pattern(url: str) -> bytes:
    raise ConnectionError(f"offline: {url}")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ArchivistConfig:
    """Create a test configuration writing into a temporary directory.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        ArchivistConfig instance for testing
    """
    return ArchivistConfig(
        _env_file=None,
        gemini_api_key=None,
        outputs_dir=temp_dir / "outputs",
        texture_size=64,
        texture_fetch_timeout=1.0,
    )


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    """Return a helper that encodes solid-colour PNG bytes."""
    return make_png


@pytest.fixture
def list_service() -> FakeListService:
    return FakeListService()


@pytest.fixture
def image_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def texture_generator() -> BackgroundTextureGenerator:
    """Small background generator that never touches the network."""
    return BackgroundTextureGenerator(size=64, fetch_pattern=_unreachable_pattern)


@pytest.fixture
def orchestrator(list_service, image_service, texture_generator) -> GenerationOrchestrator:
    return GenerationOrchestrator(list_service, image_service, texture_generator)


@pytest.fixture
def completed_entities() -> list[Entity]:
    """Six entities that all finished with a 64x48 image."""
    image = make_png(64, 48, (30, 160, 90, 255))
    return [
        Entity(
            id=f"cam-{i}-test",
            name=f"Test Camera {i:02d}",
            year=str(1900 + i),
            description="A compact rangefinder with a collapsible lens.",
            width_mm=120.0,
            height_mm=75.0,
            depth_mm=40.0,
            image=image,
            status=EntityStatus.COMPLETED,
        )
        for i in range(6)
    ]
