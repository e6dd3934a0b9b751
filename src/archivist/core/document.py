"""Paginated PDF export of the archive.

The document is an A4 portrait catalogue measured in millimetres. Page
breaks are computed up front by :func:`layout_document` so the pagination
rules can be checked without parsing a PDF; :class:`DocumentExporter` then
draws that layout with reportlab.

Layout Rules
------------
- Page 1 opens with the title at the top margin; the cursor then moves down
  by ``TITLE_ADVANCE``.
- Each entity with an image takes one row. Before placing a row, if the
  cursor is already below ``PAGE_HEIGHT - PAGE_BREAK_RESERVE`` a new page
  starts and the cursor returns to the top margin.
- A row is a 40x40 image at the left margin with name/year, dimensions and
  the wrapped description to its right. The cursor always advances by
  ``ROW_ADVANCE``; long descriptions can run into the next row.
- Entities without an image are left out.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas as rl_canvas

from .composite import decode_artifact
from .errors import ExportFailed
from .models import Entity, GenerationConfig

logger = logging.getLogger(__name__)

PAGE_WIDTH = A4[0] / mm
PAGE_HEIGHT = A4[1] / mm
MARGIN = 20.0
TITLE = "ARCHIVE.01 - Historical Database"
TITLE_ADVANCE = 15.0
ROW_ADVANCE = 50.0
PAGE_BREAK_RESERVE = 60.0
IMAGE_SIZE = 40.0
TEXT_OFFSET = 45.0
LINE_STEP = 6.0

TITLE_FONT = ("Helvetica-Bold", 22)
NAME_FONT = ("Helvetica-Bold", 14)
BODY_FONT = ("Helvetica", 10)
LINE_HEIGHT_FACTOR = 1.15
DIMENSIONS_GREY = (100 / 255, 100 / 255, 100 / 255)


@dataclass(frozen=True)
class PlacedEntry:
    """One entity row: page index (0-based) and top of the row in mm."""

    entity: Entity
    page: int
    y: float

    @property
    def text_x(self) -> float:
        return MARGIN + TEXT_OFFSET


@dataclass(frozen=True)
class DocumentLayout:
    page_count: int
    entries: tuple[PlacedEntry, ...]

    def entries_on(self, page: int) -> list[PlacedEntry]:
        return [entry for entry in self.entries if entry.page == page]


def layout_document(entities: Sequence[Entity]) -> DocumentLayout:
    """Assign every entity with an image to a page and vertical position."""
    page = 0
    cursor = MARGIN + TITLE_ADVANCE
    entries: list[PlacedEntry] = []

    for entity in entities:
        if not entity.has_image:
            continue
        if cursor > PAGE_HEIGHT - PAGE_BREAK_RESERVE:
            page += 1
            cursor = MARGIN
        entries.append(PlacedEntry(entity=entity, page=page, y=cursor))
        cursor += ROW_ADVANCE

    return DocumentLayout(page_count=page + 1, entries=tuple(entries))


def description_width() -> float:
    """Width in mm available to the wrapped description."""
    return PAGE_WIDTH - MARGIN - (MARGIN + TEXT_OFFSET)


class DocumentExporter:
    """Render the archive as a multi-page PDF."""

    @staticmethod
    def layout(entities: Sequence[Entity]) -> DocumentLayout:
        return layout_document(entities)

    def render(self, entities: Sequence[Entity]) -> bytes:
        """Render ``entities`` and return the PDF bytes.

        Raises:
            ExportFailed: If an image cannot be decoded or the PDF cannot be written
        """
        layout = self.layout(entities)
        buffer = io.BytesIO()

        try:
            pdf = rl_canvas.Canvas(buffer, pagesize=A4, invariant=1)
            pdf.setTitle(TITLE)

            pdf.setFont(*TITLE_FONT)
            pdf.drawString(MARGIN * mm, _baseline(MARGIN), TITLE)

            page = 0
            for entry in layout.entries:
                while page < entry.page:
                    pdf.showPage()
                    page += 1
                self._draw_entry(pdf, entry)

            pdf.showPage()
            pdf.save()
        except ExportFailed:
            raise
        except Exception as e:
            raise ExportFailed(f"Failed to write archive document: {e}") from e

        logger.info(
            f"Rendered archive document: {len(layout.entries)} entries on "
            f"{layout.page_count} page(s)"
        )
        return buffer.getvalue()

    @staticmethod
    def filename(config: GenerationConfig) -> str:
        return f"vintage-camera-archive-{config.resolution.value}.pdf"

    @staticmethod
    def _draw_entry(pdf: rl_canvas.Canvas, entry: PlacedEntry) -> None:
        entity = entry.entity
        image = decode_artifact(entity).convert("RGB")
        pdf.drawImage(
            ImageReader(image),
            MARGIN * mm,
            _baseline(entry.y + IMAGE_SIZE),
            width=IMAGE_SIZE * mm,
            height=IMAGE_SIZE * mm,
        )

        text_x = entry.text_x * mm
        text_y = entry.y + LINE_STEP

        pdf.setFont(*NAME_FONT)
        pdf.setFillColorRGB(0, 0, 0)
        pdf.drawString(text_x, _baseline(text_y), f"{entity.name} ({entity.year})")
        text_y += LINE_STEP

        pdf.setFont(*BODY_FONT)
        pdf.setFillColorRGB(*DIMENSIONS_GREY)
        pdf.drawString(text_x, _baseline(text_y), f"Dimensions: {entity.dimensions_label}")
        text_y += LINE_STEP

        pdf.setFillColorRGB(0, 0, 0)
        font_name, font_size = BODY_FONT
        leading = font_size * LINE_HEIGHT_FACTOR
        lines = simpleSplit(entity.description, font_name, font_size, description_width() * mm)
        for index, line in enumerate(lines):
            pdf.drawString(text_x, _baseline(text_y) - index * leading, line)


def _baseline(top_mm: float) -> float:
    # Layout is measured from the top edge; reportlab's origin is bottom-left
    return (PAGE_HEIGHT - top_mm) * mm
