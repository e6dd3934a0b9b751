"""Shelf materials, export resolutions and aspect ratios.

Every place that branches on the shelf material (the background texture fed
to image synthesis, the base fill of the exported grid, the swatch listing
served to clients) reads from :data:`MATERIALS`, so adding or recolouring a
material is a one-line change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Material(str, Enum):
    """Shelf substrate the archive is displayed on."""

    WOOD = "wood"
    MARBLE = "marble"
    GLASS = "glass"
    BRUSHED_METAL = "brushed-metal"
    STONE = "stone"


class Resolution(str, Enum):
    """Named export resolution for the grid image."""

    HD_1080P = "1080p"
    QHD_2K = "2K"
    UHD_4K = "4K"


class AspectRatio(str, Enum):
    """Requested archive aspect ratio.

    Informational only: grid layout is driven by :data:`RESOLUTIONS`.
    """

    WIDE = "16:9"
    STANDARD = "4:3"
    SQUARE = "1:1"


@dataclass(frozen=True)
class MaterialSpec:
    """Rendering properties of a single shelf material."""

    id: Material
    name: str
    base_color: str
    border_color: str
    pattern_url: str | None = None

    @property
    def base_rgb(self) -> tuple[int, int, int]:
        """Base colour as an RGB tuple."""
        return hex_to_rgb(self.base_color)


WOOD_PATTERN_URL = "https://www.transparenttextures.com/patterns/wood-pattern.png"

MATERIALS: dict[Material, MaterialSpec] = {
    Material.WOOD: MaterialSpec(
        Material.WOOD, "Vintage Oak", "#3d2b1f", "#2a1d15", pattern_url=WOOD_PATTERN_URL
    ),
    Material.MARBLE: MaterialSpec(Material.MARBLE, "Carrara Marble", "#e5e5e5", "#d1d1d1"),
    Material.GLASS: MaterialSpec(Material.GLASS, "Frosted Glass", "#1a1a1a", "#ffffff33"),
    Material.BRUSHED_METAL: MaterialSpec(
        Material.BRUSHED_METAL, "Brushed Steel", "#a0a0a0", "#808080"
    ),
    Material.STONE: MaterialSpec(Material.STONE, "Dark Slate", "#2c2c2c", "#1a1a1a"),
}

RESOLUTIONS: dict[Resolution, tuple[int, int]] = {
    Resolution.HD_1080P: (1920, 1080),
    Resolution.QHD_2K: (2560, 1440),
    Resolution.UHD_4K: (3840, 2160),
}


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Convert ``#rrggbb`` (or ``#rrggbbaa``, alpha ignored) to an RGB tuple."""
    digits = value.lstrip("#")
    if len(digits) not in (6, 8):
        raise ValueError(f"Expected #rrggbb colour, got {value!r}")
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def get_material(material: Material | str) -> MaterialSpec:
    """Look up a material spec by enum member or id string.

    Raises:
        ValueError: If the id is not a known material
    """
    return MATERIALS[Material(material)]


def resolution_size(resolution: Resolution | str) -> tuple[int, int]:
    """Return ``(width, height)`` in pixels for a named resolution."""
    return RESOLUTIONS[Resolution(resolution)]
