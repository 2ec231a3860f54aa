"""Banana Studio: FastAPI Application.

This module defines the FastAPI application factory, all REST API routes,
and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** is a frozen :class:`~bananastudio.core.config.StudioConfig`
  built once (by :func:`main` or the caller of :func:`create_app`) and kept
  on ``app.state.config``.
- **Image generation** is delegated to
  :class:`~bananastudio.core.generation.ImageGenerator`, which shares one
  ``httpx.AsyncClient`` opened for the lifetime of the application.
- **Gallery persistence** uses a single ``gallery.json`` document owned by
  :class:`~bananastudio.api.gallery_store.GalleryStore`.  No database.
- **Access** is gated by a shared site password exchanged for an httpOnly
  session cookie.  Gallery deletion additionally requires the per-entry
  delete token issued at publish time.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/api/login``                Exchange password for a session
GET       ``/api/check-auth``           Report whether the session is valid
POST      ``/api/logout``               Clear the session cookie
GET       ``/api/health``               Liveness and limits
POST      ``/api/generate``             Generate an image (auth)
GET       ``/api/gallery``              List gallery entries (auth)
POST      ``/api/gallery``              Publish to the gallery (auth)
DELETE    ``/api/gallery/{id}``         Delete with ``X-Delete-Token`` (auth)
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    banana-studio

Direct invocation::

    python -m bananastudio.api.main
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Cookie, Depends, FastAPI, Header, HTTPException, Request, Response

from bananastudio import __version__
from bananastudio.api.gallery_service import DeleteOutcome, GalleryService
from bananastudio.api.models import GenerateRequest, LoginRequest, PublishRequest
from bananastudio.core.config import StudioConfig
from bananastudio.core.errors import (
    ExtractionError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from bananastudio.core.generation import ImageGenerator

logger = logging.getLogger(__name__)

SESSION_COOKIE = "auth_token"

GENERATION_FAILED = "Image generation failed, please try again later"
DELETE_REFUSED = "Gallery item not found or delete token invalid"
STORAGE_FAILED = "Could not update the gallery, please try again later"


def session_token(site_password: str) -> str:
    """Derive the session cookie value from the site password.

    The cookie never carries the password itself.
    """
    return hmac.new(
        site_password.encode("utf-8"), b"banana-studio-session", hashlib.sha256
    ).hexdigest()


def is_valid_session(auth_token: str | None, config: StudioConfig) -> bool:
    """Return ``True`` if *auth_token* is the current session cookie value."""
    if not auth_token:
        return False
    expected = session_token(config.site_password)
    return hmac.compare_digest(auth_token.encode("utf-8"), expected.encode("utf-8"))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Application lifecycle: upstream HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Opens an ``httpx.AsyncClient`` with the configured upstream timeout
        and stores an :class:`ImageGenerator` on ``app.state``.

    On shutdown:
        Closes the client and its connection pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    config: StudioConfig = app.state.config
    timeout = httpx.Timeout(config.upstream_timeout)

    async with httpx.AsyncClient(timeout=timeout, transport=app.state.transport) as client:
        app.state.generator = ImageGenerator(config, client)
        logger.info(f"Upstream client ready (model={config.model_name}, url={config.api_url})")

        yield  # Application runs here.

    logger.info("Upstream client closed on shutdown.")


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config(request: Request) -> StudioConfig:
    return request.app.state.config


def get_gallery(request: Request) -> GalleryService:
    return request.app.state.gallery


def get_generator(request: Request) -> ImageGenerator:
    return request.app.state.generator


def require_auth(
    config: StudioConfig = Depends(get_config),
    auth_token: str | None = Cookie(default=None),
) -> None:
    """Reject requests without a valid session cookie.

    Raises:
        HTTPException: 401 if the cookie is missing or does not match.
    """
    if not is_valid_session(auth_token, config):
        raise HTTPException(status_code=401, detail="Unauthorized, please log in first")


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.post("/login")
def login(
    req: LoginRequest,
    response: Response,
    config: StudioConfig = Depends(get_config),
) -> dict:
    """Exchange the site password for a session cookie.

    Raises:
        HTTPException: 400 if no password was sent, 403 if it is wrong.
    """
    if not req.password or not isinstance(req.password, str):
        raise HTTPException(status_code=400, detail="Please enter the password")

    # surrogatepass: a lone surrogate in the JSON body must not abort encoding.
    supplied = req.password.encode("utf-8", "surrogatepass")
    expected = config.site_password.encode("utf-8", "surrogatepass")
    if not hmac.compare_digest(supplied, expected):
        logger.warning("Rejected login attempt with wrong password")
        raise HTTPException(status_code=403, detail="Wrong password")

    response.set_cookie(
        SESSION_COOKIE,
        session_token(config.site_password),
        max_age=config.session_max_age,
        httponly=True,
        samesite="strict",
    )
    logger.info("User logged in")
    return {"success": True, "message": "Logged in"}


@router.get("/check-auth")
def check_auth(
    config: StudioConfig = Depends(get_config),
    auth_token: str | None = Cookie(default=None),
) -> dict:
    """Report whether the caller holds a valid session cookie."""
    return {"authenticated": is_valid_session(auth_token, config)}


@router.post("/logout")
def logout(response: Response) -> dict:
    """Clear the session cookie."""
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Logged out"}


@router.get("/health")
def health(config: StudioConfig = Depends(get_config)) -> dict:
    """Return liveness information and the configured limits."""
    return {
        "status": "ok",
        "timestamp": _now(),
        "model": config.model_name,
        "maxImages": config.max_images,
    }


@router.post("/generate", dependencies=[Depends(require_auth)])
async def generate_image(
    req: GenerateRequest,
    generator: ImageGenerator = Depends(get_generator),
) -> dict:
    """Generate one image from a prompt and optional reference images.

    Upstream and extraction failures are logged in full by the generator and
    reported to the client with a generic message only.

    Returns:
        Dictionary with ``success``, ``image``, ``prompt`` (exactly as sent
        upstream), ``inputImages``, and ``timestamp``.

    Raises:
        HTTPException: 400 for invalid input, 502 when generation fails.
    """
    logger.info("Starting image generation...")
    try:
        request = generator.validate(req.prompt, req.images)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        image = await generator.generate_from_request(request)
    except (UpstreamError, ExtractionError) as e:
        raise HTTPException(status_code=502, detail=GENERATION_FAILED) from e

    return {
        "success": True,
        "image": image,
        "prompt": request.prompt,
        "inputImages": list(request.reference_images),
        "timestamp": _now(),
    }


@router.get("/gallery", dependencies=[Depends(require_auth)])
def list_gallery(gallery: GalleryService = Depends(get_gallery)) -> dict:
    """Return every gallery entry, newest first, without delete tokens."""
    items = [entry.model_dump(mode="json", by_alias=True) for entry in gallery.list_public()]
    return {"success": True, "total": len(items), "items": items}


@router.post("/gallery", dependencies=[Depends(require_auth)])
def publish_to_gallery(
    req: PublishRequest,
    gallery: GalleryService = Depends(get_gallery),
) -> dict:
    """Publish a generated image to the shared gallery.

    Returns:
        Dictionary with ``success``, ``item`` (the public entry), and
        ``deleteToken``.  The token is never returned again.

    Raises:
        HTTPException: 400 for invalid input, 500 if the gallery cannot be
            written.
    """
    try:
        entry = gallery.publish(req.prompt, req.image, req.input_images)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Gallery publish failed: {e}")
        raise HTTPException(status_code=500, detail=STORAGE_FAILED) from e

    return {
        "success": True,
        "item": entry.public().model_dump(mode="json", by_alias=True),
        "deleteToken": entry.delete_token,
    }


@router.delete("/gallery/{entry_id}", dependencies=[Depends(require_auth)])
def delete_from_gallery(
    entry_id: str,
    x_delete_token: str | None = Header(default=None),
    gallery: GalleryService = Depends(get_gallery),
) -> dict:
    """Delete a gallery entry owned by the caller.

    The caller proves ownership with the ``X-Delete-Token`` header.  Unknown
    ids and wrong tokens produce the same 403 response.

    Raises:
        HTTPException: 403 if the entry does not exist or the token is wrong,
            500 if the gallery cannot be written.
    """
    try:
        outcome = gallery.delete(entry_id, x_delete_token or "")
    except StorageError as e:
        logger.error(f"Gallery delete failed: {e}")
        raise HTTPException(status_code=500, detail=STORAGE_FAILED) from e

    if outcome is not DeleteOutcome.DELETED:
        raise HTTPException(status_code=403, detail=DELETE_REFUSED)

    return {"success": True, "deleted": entry_id}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    config: StudioConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application configuration.  Loaded from the environment when
            omitted.
        transport: Optional ``httpx`` transport for the upstream client,
            e.g. ``httpx.MockTransport`` in tests.

    Returns:
        A ready-to-serve FastAPI application.
    """
    config = config or StudioConfig()

    app = FastAPI(
        title="Banana Studio",
        description="Prompt-to-image gateway for OpenAI-compatible image backends.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.transport = transport
    app.state.gallery = GalleryService.from_config(config)

    app.include_router(router)
    return app


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port, and log level from :class:`StudioConfig` (which loads
    ``BANANA_SERVER_HOST``, ``BANANA_SERVER_PORT`` and ``BANANA_LOG_LEVEL``).
    Defaults to ``0.0.0.0:3000``.

    This function is registered as the ``banana-studio`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    config = StudioConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Banana Studio starting on http://{config.server_host}:{config.server_port}")
    logger.info(f"Model: {config.model_name}, max images: {config.max_images}")
    logger.info(f"Upstream: {config.api_url}")

    uvicorn.run(create_app(config), host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    main()
