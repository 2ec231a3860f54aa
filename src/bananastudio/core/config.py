"""Configuration management for Banana Studio.

This module provides centralized configuration management using Pydantic
Settings.  All configuration is loaded from environment variables with the
``BANANA_`` prefix, allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Environment variables (``BANANA_*`` prefix)
2. ``.env`` file in the working directory
3. Default values defined in :class:`StudioConfig`

Example .env file::

    BANANA_API_URL=https://images.example.com/v1/chat/completions
    BANANA_API_KEY=sk-...
    BANANA_MODEL_NAME=banana-pro
    BANANA_SITE_PASSWORD=correct-horse
    BANANA_GALLERY_MAX_ITEMS=200

Single Construction
-------------------
Unlike a module-level singleton, the configuration is built exactly once by
the application factory (or the CLI entry point) and handed to every
component that needs it.  Components never read the environment directly,
which keeps them trivially testable with an explicit ``StudioConfig(...)``.

The instance is frozen: assigning to a field after construction raises a
pydantic ``ValidationError``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StudioConfig(BaseSettings):
    """Main configuration for Banana Studio.

    Attributes
    ----------
    Upstream Settings:
        api_url : str
            OpenAI-compatible chat-completions endpoint of the image backend.
        api_key : str
            Bearer token sent to the upstream backend.
        model_name : str
            Model identifier placed in every upstream request.
        upstream_timeout : float
            Seconds to wait for the upstream backend before giving up.
        log_body_limit : int
            Maximum number of characters of an upstream body written to logs.

    Request Limits:
        max_images : int
            Maximum number of reference images per request and per gallery
            entry.
        max_prompt_length : int
            Maximum prompt length in code points (after trimming).

    Gallery:
        data_dir : Path
            Directory holding ``gallery.json``.  Created on initialisation.
        gallery_max_items : int
            Upper bound on the number of gallery entries.  Older entries are
            evicted once the bound is exceeded.

    Access:
        site_password : str
            Shared password that unlocks the site.
        session_max_age : int
            Lifetime of the login cookie in seconds.

    Server:
        server_host : str
            Bind address for uvicorn.
        server_port : int
            Port for uvicorn (1024-65535).
        log_level : str
            Root logging level used by the CLI entry point.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BANANA_",
        case_sensitive=False,
        frozen=True,
    )

    # Upstream settings
    api_url: str = Field(
        default="http://127.0.0.1:8000/v1/chat/completions",
        description="OpenAI-compatible chat-completions endpoint",
    )
    api_key: str = Field(
        default="sk-123456",
        description="Bearer token for the upstream backend",
    )
    model_name: str = Field(
        default="banana-pro",
        description="Model identifier sent to the upstream backend",
    )
    upstream_timeout: float = Field(
        default=120.0,
        description="Upstream request timeout in seconds",
        gt=0,
        le=600,
    )
    log_body_limit: int = Field(
        default=2000,
        description="Maximum characters of an upstream body written to logs",
        ge=0,
    )

    # Request limits
    max_images: int = Field(default=16, ge=0, le=64)
    max_prompt_length: int = Field(default=32000, ge=1)

    # Gallery
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding gallery.json",
    )
    gallery_max_items: int = Field(
        default=100,
        description="Maximum number of gallery entries kept on disk",
        ge=1,
    )

    # Access
    site_password: str = Field(
        default="123456",
        description="Shared site password",
    )
    session_max_age: int = Field(
        default=30 * 24 * 60 * 60,
        description="Login cookie lifetime in seconds",
        ge=60,
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(default="INFO")

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment
                variables).
        """
        super().__init__(**kwargs)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def gallery_db(self) -> Path:
        """Path to the gallery JSON document."""
        return self.data_dir / "gallery.json"
