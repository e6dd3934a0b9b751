"""Prompt text for the list and image services.

The list prompt asks for a JSON array of cameras; the response schema that
enforces the field set is attached by the adapter. The image prompt places a
single camera on the shared background so every cell of the archive reads as
the same shelf.
"""

from __future__ import annotations

from .models import Entity

LIST_FIELDS = ("name", "year", "description", "width_mm", "height_mm", "depth_mm")


def build_list_prompt(count: int) -> str:
    """Build the instruction for the list service.

    Args:
        count: Number of cameras to request

    Returns:
        Prompt text
    """
    return (
        f"Generate a list of {count} historically significant vintage cameras.\n"
        "Include cameras from different eras (1800s to 1980s).\n"
        "For each camera, provide:\n"
        "- name\n"
        "- year\n"
        "- a brief description\n"
        "- approximate real-world dimensions in millimeters (width, height, depth).\n"
        "Return the data as a JSON array of objects."
    )


def build_image_prompt(entity: Entity) -> str:
    """Build the synthesis prompt for one entity."""
    return (
        f"Add a high-quality, professional studio photograph of a {entity.name} "
        f"({entity.year}) to this background.\n"
        "The camera should be as large as possible within the frame.\n"
        "PERFECT ORTHOGRAPHIC PROJECTION. Zero perspective distortion. Flat front-on view.\n"
        "The camera MUST be positioned at the absolute bottom edge of the image frame.\n"
        "Include a soft, realistic contact shadow directly beneath the camera.\n"
        "Do not add any floor lines, shelves, or extra props. "
        "Just the camera integrated into the provided background.\n"
        "Historically accurate details."
    )
