"""Archivist — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Runs** are driven by one :class:`~archivist.core.orchestrator.GenerationOrchestrator`
  stored on ``app.state``.  ``POST /api/runs`` schedules a run on the server's
  event loop and returns immediately; clients poll ``GET /api/archive``.
- **Exports** are pull-based: each export endpoint renders whatever snapshot
  is current at request time, writes the file to ``outputs_dir`` and records
  it in ``exports.json``.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/api/config``               Materials, resolutions, run bounds
POST      ``/api/runs``                 Start a generation run
DELETE    ``/api/runs/current``         Abandon the active run
GET       ``/api/archive``              Current snapshot and progress
GET       ``/api/archive/{id}/image``   Synthesized image of one entity
POST      ``/api/export/grid``          Render and save the grid PNG
POST      ``/api/export/document``      Render and save the PDF document
GET       ``/api/exports``              Previously exported files
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    archivist

Direct invocation::

    python -m archivist.api.main
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from archivist import __version__
from archivist.api.export_store import load_export_entries, save_export
from archivist.api.models import ExportRequest, RunRequest, SnapshotResponse
from archivist.core.composite import CompositeRenderer
from archivist.core.config import config
from archivist.core.document import DocumentExporter
from archivist.core.errors import AlreadyRunning, ExportFailed
from archivist.core.materials import MATERIALS, RESOLUTIONS, AspectRatio
from archivist.core.models import MAX_COUNT, MIN_COUNT, GenerationConfig
from archivist.core.orchestrator import GenerationOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

EXPORT_MANIFEST_NAME = "exports.json"

# ---------------------------------------------------------------------------
# Application lifecycle — orchestrator setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Builds the :class:`GenerationOrchestrator` from the configured
        service adapter and stores it on ``app.state``.

    On shutdown:
        Abandons any run still in progress so no background task outlives
        the server, then closes the service adapter's clients.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.orchestrator = build_orchestrator(config)
    logger.info(f"Orchestrator initialised with adapter '{config.default_adapter}'.")

    yield  # Application runs here.

    if app.state.orchestrator.is_running:
        logger.info("Cancelling in-flight run on shutdown.")
    await app.state.orchestrator.aclose()


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Archivist",
    description="Generated vintage camera archive with grid and PDF export.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so a frontend can be served from a different
# port during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _orchestrator() -> GenerationOrchestrator:
    return app.state.orchestrator


def _manifest_path() -> Path:
    return config.outputs_dir / EXPORT_MANIFEST_NAME


def _default_run_config() -> GenerationConfig:
    return GenerationConfig(
        count=config.default_count,
        material=config.default_material,
        resolution=config.default_resolution,
        aspect_ratio=config.default_aspect_ratio,
    )


def _export_config(req: ExportRequest | None) -> GenerationConfig:
    """Resolve the configuration an export should render with.

    Starts from the config of the run behind the current snapshot (or the
    configured defaults when nothing has run yet) and applies any overrides
    from the request.
    """
    base = _orchestrator().snapshot.config or _default_run_config()
    if req is None:
        return base
    return replace(
        base,
        resolution=req.resolution or base.resolution,
        material=req.material or base.material,
    )


def _image_media_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def _attachment(data: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return the options a client needs to build a run request.

    Returns:
        Dictionary with keys ``version``, ``materials`` (swatch data),
        ``resolutions``, ``aspect_ratios``, ``count`` bounds and ``defaults``.
    """
    defaults = _default_run_config()
    return {
        "version": __version__,
        "materials": [
            {
                "id": spec.id.value,
                "name": spec.name,
                "base_color": spec.base_color,
                "border_color": spec.border_color,
                "has_pattern": spec.pattern_url is not None,
            }
            for spec in MATERIALS.values()
        ],
        "resolutions": [
            {"id": res.value, "width": w, "height": h} for res, (w, h) in RESOLUTIONS.items()
        ],
        "aspect_ratios": [ratio.value for ratio in AspectRatio],
        "count": {"min": MIN_COUNT, "max": MAX_COUNT},
        "defaults": {
            "count": defaults.count,
            "material": defaults.material.value,
            "resolution": defaults.resolution.value,
            "aspect_ratio": defaults.aspect_ratio.value,
        },
    }


@app.post("/api/runs", status_code=202)
async def start_run(req: RunRequest) -> SnapshotResponse:
    """Start a generation run in the background.

    Returns:
        The snapshot published when the run started (phase ``listing``).

    Raises:
        HTTPException: 409 if a run is already active, 422 if the
            configuration is invalid.
    """
    orchestrator = _orchestrator()
    try:
        orchestrator.start_run(req.to_config())
    except AlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return SnapshotResponse.from_snapshot(orchestrator.snapshot)


@app.delete("/api/runs/current")
async def cancel_run() -> dict:
    """Abandon the active run, if any.

    Returns:
        Dictionary with ``cancelled`` (whether a run was active) and the
        resulting ``phase``.
    """
    orchestrator = _orchestrator()
    cancelled = orchestrator.cancel()
    return {"cancelled": cancelled, "phase": orchestrator.phase.value}


@app.get("/api/archive")
async def get_archive() -> SnapshotResponse:
    """Return the current snapshot, progress and per-entity status."""
    return SnapshotResponse.from_snapshot(_orchestrator().snapshot)


@app.get("/api/archive/{entity_id}/image")
async def get_entity_image(entity_id: str) -> Response:
    """Return the synthesized image of one entity.

    Raises:
        HTTPException: 404 if the entity is unknown or has no image.
    """
    entity = _orchestrator().snapshot.get(entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail="Entity not found")
    if not entity.has_image:
        raise HTTPException(status_code=404, detail="Entity has no image")
    return Response(content=entity.image, media_type=_image_media_type(entity.image))


@app.post("/api/export/grid")
async def export_grid(req: ExportRequest | None = None) -> Response:
    """Render the current snapshot as a grid image, save it and return it.

    Raises:
        HTTPException: 500 if rendering or encoding fails.
    """
    snapshot = _orchestrator().snapshot
    export_config = _export_config(req)
    renderer = CompositeRenderer()

    try:
        data = await asyncio.to_thread(renderer.render_png, snapshot.entities, export_config)
    except ExportFailed as e:
        logger.error(f"Grid export failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    filename = renderer.filename(export_config)
    save_export(config.outputs_dir, _manifest_path(), filename, data, "grid", snapshot.run_id)
    logger.info(f"Exported grid to {config.outputs_dir / filename}")
    return _attachment(data, filename, "image/png")


@app.post("/api/export/document")
async def export_document(req: ExportRequest | None = None) -> Response:
    """Render the current snapshot as a PDF document, save it and return it.

    Raises:
        HTTPException: 500 if rendering fails.
    """
    snapshot = _orchestrator().snapshot
    export_config = _export_config(req)
    exporter = DocumentExporter()

    try:
        data = await asyncio.to_thread(exporter.render, snapshot.entities)
    except ExportFailed as e:
        logger.error(f"Document export failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    filename = exporter.filename(export_config)
    save_export(config.outputs_dir, _manifest_path(), filename, data, "document", snapshot.run_id)
    logger.info(f"Exported document to {config.outputs_dir / filename}")
    return _attachment(data, filename, "application/pdf")


@app.get("/api/exports")
async def list_exports() -> dict:
    """Return previously exported files, newest first."""
    entries = load_export_entries(_manifest_path(), config.outputs_dir)
    return {"exports": entries, "total": len(entries)}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~archivist.core.config.config` (which
    loads from ``ARCHIVIST_SERVER_HOST`` and ``ARCHIVIST_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``archivist`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "archivist.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
