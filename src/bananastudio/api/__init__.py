"""Banana Studio - FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and the gallery persistence and publishing logic.

Modules
-------
main
    FastAPI application factory with all route handlers and the ``main()``
    CLI entry point.
models
    Pydantic models for API requests, responses, and persisted entries.
gallery_store
    File-backed, lock-serialised, bounded gallery document.
gallery_service
    Publishing, listing, and token-gated deletion rules.
mock_upstream
    Stand-in chat-completions backend for local demos.
"""
