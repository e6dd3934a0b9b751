"""Archivist — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and the export manifest helpers.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
export_store
    File-backed export manifest reconciliation helpers.
"""
