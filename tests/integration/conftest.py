"""Fixtures for API integration tests."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from archivist.api.main import app


@pytest.fixture
def test_client(test_config, orchestrator):
    """TestClient backed by in-memory services and a temporary outputs dir.

    ``build_orchestrator`` is patched so the lifespan handler installs the
    fixture orchestrator instead of a real Gemini-backed one.
    """
    with patch("archivist.api.main.config", test_config), patch(
        "archivist.api.main.build_orchestrator", return_value=orchestrator
    ):
        with TestClient(app) as client:
            yield client


@pytest.fixture
def wait_for_idle(test_client):
    """Return a helper that polls ``GET /api/archive`` until the run ends."""

    def _wait(timeout: float = 5.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            data = test_client.get("/api/archive").json()
            if data["phase"] == "idle":
                return data
            if time.monotonic() > deadline:
                raise AssertionError(f"Run still {data['phase']} after {timeout}s")
            time.sleep(0.01)

    return _wait
