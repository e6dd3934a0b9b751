"""Raster grid export of the archive.

Lays the entities of a snapshot out on a fixed grid at one of the named
resolutions and draws each synthesized image into its cell with
object-cover (aspect-fill) placement.

Grid Geometry
-------------
- ``columns = 4`` when the run asked for more than 6 entities, else 3.
- ``rows = ceil(count / columns)``.
- Gap and outer padding are 16px and 24px at 1920px wide and scale linearly
  with the canvas width.

Cell Drawing
------------
Every entity cell gets a translucent dark background and a 2px translucent
border. Cells for entities without an image stop there. Images are scaled so
that they cover the whole cell while keeping their aspect ratio, centred on
the overflowing axis and cropped to the cell's pixel rectangle.

The renderer only reads the entities it is given; rendering the same input
twice produces identical bytes.
"""

from __future__ import annotations

import io
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image, ImageDraw, UnidentifiedImageError

from .errors import ExportFailed
from .materials import get_material, resolution_size
from .models import Entity, GenerationConfig

logger = logging.getLogger(__name__)

REFERENCE_WIDTH = 1920
BASE_GAP = 16
BASE_PADDING = 24
BORDER_WIDTH = 2

CELL_FILL = (0, 0, 0, 26)  # rgba(0, 0, 0, 0.1)
CELL_BORDER = (0, 0, 0, 51)  # rgba(0, 0, 0, 0.2)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in canvas coordinates (floats)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height

    def pixel_box(self) -> tuple[int, int, int, int]:
        """Integer ``(left, top, right, bottom)`` covering this rectangle."""
        return (round(self.x), round(self.y), round(self.right), round(self.bottom))


@dataclass(frozen=True)
class GridLayout:
    """Cell geometry for one canvas size and entity count."""

    columns: int
    rows: int
    cell_width: float
    cell_height: float
    gap: float
    padding: float

    @property
    def capacity(self) -> int:
        return self.columns * self.rows

    def cell(self, index: int) -> Rect:
        col = index % self.columns
        row = index // self.columns
        return Rect(
            x=self.padding + col * (self.cell_width + self.gap),
            y=self.padding + row * (self.cell_height + self.gap),
            width=self.cell_width,
            height=self.cell_height,
        )


def grid_shape(count: int) -> tuple[int, int]:
    """Return ``(columns, rows)`` for a requested entity count."""
    columns = 4 if count > 6 else 3
    return columns, math.ceil(count / columns)


def compute_grid(count: int, width: int, height: int) -> GridLayout:
    """Compute the grid layout for ``count`` entities on a ``width x height`` canvas."""
    columns, rows = grid_shape(count)
    scale = width / REFERENCE_WIDTH
    gap = BASE_GAP * scale
    padding = BASE_PADDING * scale

    available_w = width - padding * 2 - gap * (columns - 1)
    available_h = height - padding * 2 - gap * (rows - 1)

    return GridLayout(
        columns=columns,
        rows=rows,
        cell_width=available_w / columns,
        cell_height=available_h / rows,
        gap=gap,
        padding=padding,
    )


def aspect_fill_rect(image_width: int, image_height: int, cell: Rect) -> Rect:
    """Rectangle an image must be drawn at to cover ``cell`` (object-cover).

    If the image is proportionally wider than the cell it is scaled to the
    cell height and centred horizontally; otherwise it is scaled to the cell
    width and centred vertically. The result always contains ``cell``.
    """
    image_aspect = image_width / image_height
    if image_aspect > cell.aspect:
        draw_h = cell.height
        draw_w = cell.height * image_aspect
        return Rect(cell.x + (cell.width - draw_w) / 2, cell.y, draw_w, draw_h)

    draw_w = cell.width
    draw_h = cell.width / image_aspect
    return Rect(cell.x, cell.y + (cell.height - draw_h) / 2, draw_w, draw_h)


class CompositeRenderer:
    """Render an archive grid image."""

    def render(self, entities: Sequence[Entity], config: GenerationConfig) -> Image.Image:
        """Render the grid for ``entities`` at ``config.resolution``.

        Returns:
            RGBA image of exactly the configured resolution

        Raises:
            ExportFailed: If an image artifact cannot be decoded
        """
        width, height = resolution_size(config.resolution)
        material = get_material(config.material)
        layout = compute_grid(config.count, width, height)

        canvas = Image.new("RGBA", (width, height), material.base_rgb + (255,))

        visible = list(entities[: layout.capacity])
        if len(entities) > layout.capacity:
            logger.warning(
                f"Grid holds {layout.capacity} cells, skipping "
                f"{len(entities) - layout.capacity} extra entities"
            )

        fills = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        borders = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        fill_draw = ImageDraw.Draw(fills)
        border_draw = ImageDraw.Draw(borders)

        for index in range(len(visible)):
            left, top, right, bottom = layout.cell(index).pixel_box()
            fill_draw.rectangle((left, top, right - 1, bottom - 1), fill=CELL_FILL)
            # Stroke straddles the cell edge: one pixel outside, one inside
            border_draw.rectangle(
                (left - 1, top - 1, right, bottom), outline=CELL_BORDER, width=BORDER_WIDTH
            )

        canvas = Image.alpha_composite(canvas, fills)
        canvas = Image.alpha_composite(canvas, borders)

        for index, entity in enumerate(visible):
            if not entity.has_image:
                continue
            image = decode_artifact(entity)
            self._draw_cover(canvas, image, layout.cell(index))

        logger.info(
            f"Rendered {width}x{height} grid ({layout.columns}x{layout.rows}) "
            f"for {len(visible)} entities"
        )
        return canvas

    def render_png(self, entities: Sequence[Entity], config: GenerationConfig) -> bytes:
        """Render the grid and encode it as PNG.

        Raises:
            ExportFailed: If rendering or encoding fails
        """
        canvas = self.render(entities, config)
        buffer = io.BytesIO()
        try:
            canvas.save(buffer, format="PNG")
        except (OSError, ValueError) as e:
            raise ExportFailed(f"Failed to encode grid image: {e}") from e
        return buffer.getvalue()

    @staticmethod
    def filename(config: GenerationConfig) -> str:
        return f"vintage-camera-grid-{config.resolution.value}.png"

    @staticmethod
    def _draw_cover(canvas: Image.Image, image: Image.Image, cell: Rect) -> None:
        left, top, right, bottom = cell.pixel_box()
        target = (right - left, bottom - top)
        if target[0] <= 0 or target[1] <= 0:
            return

        drawn = aspect_fill_rect(image.width, image.height, cell)
        scale = drawn.width / image.width

        # Part of the source image that lands inside the cell
        source = (
            max(0.0, (left - drawn.x) / scale),
            max(0.0, (top - drawn.y) / scale),
            min(float(image.width), (right - drawn.x) / scale),
            min(float(image.height), (bottom - drawn.y) / scale),
        )
        tile = image.resize(target, Image.Resampling.LANCZOS, box=source)
        canvas.alpha_composite(tile, dest=(left, top))


def decode_artifact(entity: Entity) -> Image.Image:
    """Decode an entity image artifact to RGBA.

    Raises:
        ExportFailed: If the bytes are not a readable image
    """
    try:
        image = Image.open(io.BytesIO(entity.image))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ExportFailed(f"Image for {entity.name} could not be decoded") from e
    return image.convert("RGBA")
