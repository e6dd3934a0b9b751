"""Export manifest storage helpers for the Archivist API.

This module isolates the exported-artifact persistence logic from
``archivist.api.main`` so route handlers can focus on HTTP concerns while the
file-backed store remains testable as a small unit.

The store is intentionally simple:

- artifact files live in the outputs directory
- metadata lives in a single ``exports.json`` file next to them
- list order is reverse-chronological (newest first)
- exporting a file name that already exists replaces the old entry

Users may delete exported files by hand, so every load reconciles the
manifest against the directory and prunes entries whose file is gone.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path


def load_export_entries(manifest: Path, outputs_dir: Path) -> list[dict]:
    """Load the export manifest and reconcile it against files on disk.

    The reconciliation rule is intentionally conservative:

    - if the JSON file is missing or invalid, return an empty list
    - if an entry has no filename, drop it
    - if the referenced file does not exist, drop the entry

    When stale entries are removed, the cleaned list is persisted immediately.

    Args:
        manifest: Path to ``exports.json``.
        outputs_dir: Directory that should contain the exported files.

    Returns:
        List of surviving export entry dictionaries in persisted order.
    """
    if manifest.exists():
        try:
            with open(manifest, encoding="utf-8") as handle:
                raw_entries = json.load(handle)
        except (OSError, ValueError):
            raw_entries = []
    else:
        raw_entries = []

    if not isinstance(raw_entries, list):
        raw_entries = []

    cleaned_entries: list[dict] = []

    for entry in raw_entries:
        if not isinstance(entry, dict):
            continue

        filename = entry.get("filename")
        if not filename:
            continue

        if not (outputs_dir / filename).exists():
            continue

        cleaned_entries.append(entry)

    if cleaned_entries != raw_entries:
        save_export_entries(manifest, cleaned_entries)

    return cleaned_entries


def save_export_entries(manifest: Path, entries: list[dict]) -> None:
    """Persist the export manifest to disk.

    Args:
        manifest: Path to ``exports.json``.
        entries: Export entry dictionaries to persist.
    """
    with open(manifest, "w", encoding="utf-8") as handle:
        json.dump(entries, handle, indent=2)


def save_export(
    outputs_dir: Path,
    manifest: Path,
    filename: str,
    data: bytes,
    kind: str,
    run_id: str | None = None,
) -> dict:
    """Write an exported artifact and record it in the manifest.

    Args:
        outputs_dir: Directory that receives the file.
        manifest: Path to ``exports.json``.
        filename: Bare file name (no directories).
        data: File contents.
        kind: ``"grid"`` or ``"document"``.
        run_id: Run that produced the exported snapshot.

    Returns:
        The manifest entry written for this export.

    Raises:
        ValueError: If ``filename`` contains a path component.
    """
    if Path(filename).name != filename:
        raise ValueError(f"Export filename must not contain directories: {filename!r}")

    outputs_dir.mkdir(parents=True, exist_ok=True)
    (outputs_dir / filename).write_bytes(data)

    entry = {
        "filename": filename,
        "kind": kind,
        "size": len(data),
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    entries = [e for e in load_export_entries(manifest, outputs_dir) if e["filename"] != filename]
    entries.insert(0, entry)
    save_export_entries(manifest, entries)
    return entry
