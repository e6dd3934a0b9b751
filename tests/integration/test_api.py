"""Integration tests for archivist.api.main — FastAPI REST API endpoints.

All tests use the FastAPI TestClient with in-memory list and image services
so that no network access occurs. Runs started through the API execute on
the TestClient's event loop thread; tests poll ``GET /api/archive`` until
the phase returns to ``idle``.

- ``GET /api/config`` — Options and defaults.
- ``POST /api/runs`` — Start a run (202 / 409 / 422).
- ``DELETE /api/runs/current`` — Cancel the active run.
- ``GET /api/archive`` — Snapshot and progress.
- ``GET /api/archive/{id}/image`` — Entity image bytes.
- ``POST /api/export/grid`` — Grid PNG export.
- ``POST /api/export/document`` — PDF export.
- ``GET /api/exports`` — Export listing.
"""

from __future__ import annotations

import io
import threading
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from archivist.api.main import app

# ---------------------------------------------------------------------------
# Configuration endpoint tests.
# ---------------------------------------------------------------------------


class TestGetConfig:
    """Test GET /api/config — run options."""

    def test_config_returns_version(self, test_client):
        resp = test_client.get("/api/config")
        assert resp.status_code == 200
        assert "version" in resp.json()

    def test_config_lists_materials(self, test_client):
        data = test_client.get("/api/config").json()
        ids = [m["id"] for m in data["materials"]]
        assert ids == ["wood", "marble", "glass", "brushed-metal", "stone"]
        wood = data["materials"][0]
        assert wood["base_color"] == "#3d2b1f"
        assert wood["has_pattern"] is True

    def test_config_lists_resolutions_and_bounds(self, test_client):
        data = test_client.get("/api/config").json()
        assert {r["id"]: (r["width"], r["height"]) for r in data["resolutions"]} == {
            "1080p": (1920, 1080),
            "2K": (2560, 1440),
            "4K": (3840, 2160),
        }
        assert data["count"] == {"min": 2, "max": 12}
        assert data["defaults"]["count"] == 6
        assert data["defaults"]["material"] == "wood"


# ---------------------------------------------------------------------------
# Run endpoint tests.
# ---------------------------------------------------------------------------


class TestRuns:
    """Test POST /api/runs and DELETE /api/runs/current."""

    def test_start_run_accepted(self, test_client, wait_for_idle):
        resp = test_client.post("/api/runs", json={"count": 3, "material": "marble"})
        assert resp.status_code == 202
        data = resp.json()
        assert data["phase"] == "listing"
        assert data["run_id"]
        wait_for_idle()

    def test_run_completes(self, test_client, wait_for_idle):
        test_client.post("/api/runs", json={"count": 4})
        data = wait_for_idle()

        assert len(data["entities"]) == 4
        assert data["progress"] == 1.0
        assert data["completed_count"] == 4
        assert all(e["status"] == "completed" for e in data["entities"])
        assert all(e["image_url"] for e in data["entities"])
        assert data["error"] is None

    def test_count_out_of_range_rejected(self, test_client, list_service):
        resp = test_client.post("/api/runs", json={"count": 13})
        assert resp.status_code == 422
        assert list_service.calls == []

    def test_unknown_material_rejected(self, test_client):
        resp = test_client.post("/api/runs", json={"count": 3, "material": "plywood"})
        assert resp.status_code == 422

    def test_second_run_conflicts(self, test_client, list_service, wait_for_idle):
        list_service.gate = threading.Event()
        try:
            assert test_client.post("/api/runs", json={"count": 2}).status_code == 202
            resp = test_client.post("/api/runs", json={"count": 2})
            assert resp.status_code == 409
        finally:
            list_service.gate.set()
        wait_for_idle()

    def test_cancel_active_run(self, test_client, image_service, wait_for_idle):
        image_service.gate = threading.Event()
        test_client.post("/api/runs", json={"count": 3})

        resp = test_client.delete("/api/runs/current")
        assert resp.status_code == 200
        assert resp.json() == {"cancelled": True, "phase": "idle"}

        data = wait_for_idle()
        assert data["error"] == "Run cancelled"
        assert all(e["status"] != "completed" for e in data["entities"])

    def test_cancel_without_run(self, test_client):
        resp = test_client.delete("/api/runs/current")
        assert resp.json()["cancelled"] is False

    def test_list_failure_reported(self, test_client, list_service, wait_for_idle):
        list_service.error = ConnectionError("offline")
        test_client.post("/api/runs", json={"count": 2})

        data = wait_for_idle()
        assert data["entities"] == []
        assert data["error"] == "Failed to generate camera list. Please try again."

    def test_entity_failure_reported(self, test_client, image_service, wait_for_idle):
        image_service.fail_names = {"Test Camera 00"}
        test_client.post("/api/runs", json={"count": 2})

        first, second = wait_for_idle()["entities"]
        assert first["status"] == "error"
        assert first["error"] == "quota exceeded"
        assert first["image_url"] is None
        assert second["status"] == "completed"


# ---------------------------------------------------------------------------
# Archive endpoint tests.
# ---------------------------------------------------------------------------


class TestArchive:
    """Test GET /api/archive and GET /api/archive/{id}/image."""

    def test_initial_archive_empty(self, test_client):
        data = test_client.get("/api/archive").json()
        assert data["phase"] == "idle"
        assert data["entities"] == []
        assert data["run_id"] is None

    def test_entity_image_served(self, test_client, wait_for_idle):
        test_client.post("/api/runs", json={"count": 2})
        entity = wait_for_idle()["entities"][0]

        resp = test_client.get(entity["image_url"])
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert Image.open(io.BytesIO(resp.content)).size == (64, 64)

    def test_unknown_entity_404(self, test_client):
        assert test_client.get("/api/archive/nope/image").status_code == 404

    def test_entity_without_image_404(self, test_client, image_service, wait_for_idle):
        image_service.fail_names = {"Test Camera 01"}
        test_client.post("/api/runs", json={"count": 2})
        failed = wait_for_idle()["entities"][1]

        assert test_client.get(f"/api/archive/{failed['id']}/image").status_code == 404


# ---------------------------------------------------------------------------
# Export endpoint tests.
# ---------------------------------------------------------------------------


class TestExports:
    """Test the grid and document export endpoints and the export listing."""

    def test_grid_export(self, test_client, test_config, wait_for_idle):
        test_client.post("/api/runs", json={"count": 3, "resolution": "1080p"})
        wait_for_idle()

        resp = test_client.post("/api/export/grid")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert "vintage-camera-grid-1080p.png" in resp.headers["content-disposition"]
        assert Image.open(io.BytesIO(resp.content)).size == (1920, 1080)
        assert (test_config.outputs_dir / "vintage-camera-grid-1080p.png").exists()

    def test_grid_export_resolution_override(self, test_client, wait_for_idle):
        test_client.post("/api/runs", json={"count": 2})
        wait_for_idle()

        resp = test_client.post("/api/export/grid", json={"resolution": "2K"})
        assert resp.status_code == 200
        assert "vintage-camera-grid-2K.png" in resp.headers["content-disposition"]
        assert Image.open(io.BytesIO(resp.content)).size == (2560, 1440)

    def test_grid_export_before_any_run(self, test_client):
        resp = test_client.post("/api/export/grid")
        assert resp.status_code == 200
        assert Image.open(io.BytesIO(resp.content)).size == (1920, 1080)

    def test_document_export(self, test_client, test_config, wait_for_idle):
        test_client.post("/api/runs", json={"count": 6, "resolution": "4K"})
        wait_for_idle()

        resp = test_client.post("/api/export/document")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")
        assert "vintage-camera-archive-4K.pdf" in resp.headers["content-disposition"]
        assert (test_config.outputs_dir / "vintage-camera-archive-4K.pdf").exists()

    def test_exports_listed_newest_first(self, test_client, wait_for_idle):
        test_client.post("/api/runs", json={"count": 2})
        run_id = wait_for_idle()["run_id"]

        test_client.post("/api/export/grid")
        test_client.post("/api/export/document")

        data = test_client.get("/api/exports").json()
        assert data["total"] == 2
        assert [e["kind"] for e in data["exports"]] == ["document", "grid"]
        assert all(e["run_id"] == run_id for e in data["exports"])

    def test_deleted_export_pruned(self, test_client, test_config):
        test_client.post("/api/export/grid")
        (test_config.outputs_dir / "vintage-camera-grid-1080p.png").unlink()

        assert test_client.get("/api/exports").json()["total"] == 0


# ---------------------------------------------------------------------------
# Application lifecycle tests.
# ---------------------------------------------------------------------------


class TestLifespan:
    """Shutdown releases the service clients and abandons any active run."""

    def test_shutdown_closes_services(self, test_config, orchestrator, list_service, image_service):
        with patch("archivist.api.main.config", test_config), patch(
            "archivist.api.main.build_orchestrator", return_value=orchestrator
        ):
            with TestClient(app) as client:
                assert client.get("/api/archive").status_code == 200
                assert list_service.closed == 0

        assert list_service.closed == 1
        assert image_service.closed == 1

    def test_shutdown_abandons_active_run(
        self, test_config, orchestrator, list_service, image_service
    ):
        list_service.gate = threading.Event()
        with patch("archivist.api.main.config", test_config), patch(
            "archivist.api.main.build_orchestrator", return_value=orchestrator
        ):
            with TestClient(app) as client:
                assert client.post("/api/runs", json={"count": 2}).status_code == 202
                assert orchestrator.is_running

        assert not orchestrator.is_running
        assert list_service.closed == 1
        assert image_service.closed == 1
        assert image_service.prompts == []
