"""Procedural background textures for image synthesis.

Every image request in a run is given the same square background bitmap so
that all synthesized cameras share one shelf surface. The bitmap is built in
three layers:

1. Solid fill with the material's base colour (:data:`MATERIALS`).
2. For materials with a ``pattern_url``, the pattern image tiled across the
   canvas. Fetching is the only I/O in this module and it is allowed to fail:
   the generator logs a warning and keeps the solid fill.
3. A uniform ``rgba(0, 0, 0, 0.1)`` overlay that gives the recessed shelf look.

Usage
-----
::

    generator = BackgroundTextureGenerator(size=1024)
    png_bytes = await generator.generate(Material.WOOD)
"""

from __future__ import annotations

import io
import logging
from collections.abc import Awaitable, Callable

import httpx
from PIL import Image, UnidentifiedImageError

from .errors import TextureFetchFailed
from .materials import Material, get_material

logger = logging.getLogger(__name__)

# rgba(0, 0, 0, 0.1), shared with the grid cell background
RECESS_OVERLAY = (0, 0, 0, 26)

PatternFetcher = Callable[[str], Awaitable[bytes]]


class BackgroundTextureGenerator:
    """Build the shared background bitmap for one run.

    Args:
        size: Edge length of the square output in pixels
        fetch_pattern: Coroutine function returning the raw bytes of a pattern
            image for a URL. Defaults to an httpx GET.
        timeout: Timeout in seconds for the default fetcher
    """

    def __init__(
        self,
        size: int = 1024,
        fetch_pattern: PatternFetcher | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.size = size
        self.timeout = timeout
        self._fetch_pattern = fetch_pattern or self._http_fetch

    async def generate(self, material: Material | str) -> bytes:
        """Render the background for ``material`` and return PNG bytes."""
        spec = get_material(material)
        canvas = Image.new("RGBA", (self.size, self.size), spec.base_rgb + (255,))

        if spec.pattern_url:
            try:
                pattern = await self._load_pattern(spec.pattern_url)
                canvas = tile_pattern(canvas, pattern)
            except TextureFetchFailed as e:
                logger.warning(f"Could not load {spec.id.value} pattern, using solid fill: {e}")

        overlay = Image.new("RGBA", canvas.size, RECESS_OVERLAY)
        canvas = Image.alpha_composite(canvas, overlay)

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        logger.info(f"Generated {self.size}x{self.size} background for {spec.id.value}")
        return buffer.getvalue()

    async def _load_pattern(self, url: str) -> Image.Image:
        try:
            data = await self._fetch_pattern(url)
        except Exception as e:
            raise TextureFetchFailed(f"Failed to fetch {url}: {e}") from e

        try:
            pattern = Image.open(io.BytesIO(data))
            pattern.load()
        except (UnidentifiedImageError, OSError) as e:
            raise TextureFetchFailed(f"Pattern at {url} is not a readable image") from e

        if pattern.width == 0 or pattern.height == 0:
            raise TextureFetchFailed(f"Pattern at {url} is empty")
        return pattern.convert("RGBA")

    async def _http_fetch(self, url: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content


def tile_pattern(canvas: Image.Image, pattern: Image.Image) -> Image.Image:
    """Repeat ``pattern`` over ``canvas`` from the top-left corner.

    The pattern's own alpha is respected, so translucent patterns (most
    tileable textures) tint the base fill instead of replacing it.
    """
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    for top in range(0, canvas.height, pattern.height):
        for left in range(0, canvas.width, pattern.width):
            layer.paste(pattern, (left, top))
    return Image.alpha_composite(canvas, layer)
