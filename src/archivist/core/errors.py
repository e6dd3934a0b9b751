"""Exception hierarchy for Archivist.

Run-level failures (:class:`AlreadyRunning`, :class:`ListGenerationFailed`)
propagate to the caller and carry a message suitable for display.
Entity-level failures (:class:`SynthesisFailed`) are recorded on the entity
and never escalated. :class:`TextureFetchFailed` is logged and absorbed by the
texture generator.
"""


class ArchivistError(Exception):
    """Base class for all Archivist errors."""

    pass


class AlreadyRunning(ArchivistError):
    """A run was requested while another one is still active."""

    pass


class ListGenerationFailed(ArchivistError):
    """The entity list could not be obtained (network, parse or schema error)."""

    pass


class MalformedListResponse(ListGenerationFailed):
    """The list service returned data that violates the entity schema."""

    pass


class SynthesisFailed(ArchivistError):
    """Image synthesis for a single entity failed or returned no image."""

    pass


class TextureFetchFailed(ArchivistError):
    """A tileable pattern image could not be fetched or decoded."""

    pass


class ExportFailed(ArchivistError):
    """A grid image or document could not be rendered or encoded."""

    pass
