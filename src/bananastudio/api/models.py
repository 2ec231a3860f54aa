"""Pydantic request, response, and persistence models for the Banana Studio API.

These models define the JSON schema for every API endpoint and for the
entries persisted in ``gallery.json``.  FastAPI uses them for automatic
request validation, serialisation, and OpenAPI documentation generation.

Field names are snake_case in Python and on disk.  The browser-facing JSON
uses camelCase, so fields whose names differ carry an ``alias`` and every
model accepts either spelling on input.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
LoginRequest
    Payload for ``POST /api/login``.
PublishRequest
    Payload for ``POST /api/gallery``.
PublicGalleryEntry
    A gallery entry as shown to clients: never carries the delete token.
GalleryEntry
    A gallery entry as persisted, including its delete token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Fields are typed loosely.  A missing or ``null`` image list means no
    images.  Prompt type and length, image count and image format are checked
    by :func:`~bananastudio.core.generation.validate_generation_request`,
    whose rejections map to 400.

    Attributes:
        prompt: Text prompt.  Trimmed server-side before validation.
        images: Reference images as ``data:image/...;base64,...`` URLs.
    """

    prompt: Any = Field(
        default=None,
        description="Text prompt describing the image to generate.",
    )
    images: Any = Field(
        default=None,
        description="Optional reference images as base64 data URLs.",
    )


class LoginRequest(BaseModel):
    """Request body for the ``POST /api/login`` endpoint."""

    password: Any = Field(default=None, description="Shared site password.")


class PublishRequest(BaseModel):
    """Request body for the ``POST /api/gallery`` endpoint.

    Attributes:
        prompt: Prompt that produced the image.
        image: Generated image as a data URL.
        input_images: Reference images used for the generation.  Invalid
            entries are dropped and the list is capped server-side.

    As with :class:`GenerateRequest`, shape checks happen in
    :meth:`~bananastudio.api.gallery_service.GalleryService.publish`.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: Any = Field(default=None, description="Prompt that produced the image.")
    image: Any = Field(default=None, description="Generated image as a data URL.")
    input_images: Any = Field(
        default=None,
        alias="inputImages",
        description="Reference images used for the generation.",
    )


class PublicGalleryEntry(BaseModel):
    """A gallery entry as exposed by list and publish responses.

    Attributes:
        id: Opaque unique identifier.
        prompt: Prompt that produced the image.
        image: Generated image as a data URL.
        reference_images: Reference images, in upload order.
        created_at: Publication timestamp (UTC).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    prompt: str
    image: str
    reference_images: list[str] = Field(default_factory=list, alias="referenceImages")
    created_at: datetime = Field(alias="createdAt")


class GalleryEntry(PublicGalleryEntry):
    """A persisted gallery entry.

    Attributes:
        delete_token: Secret issued to the publisher once, required to delete
            the entry later.
    """

    delete_token: str = Field(alias="deleteToken")

    def public(self) -> PublicGalleryEntry:
        """Return a copy of this entry without the delete token."""
        return PublicGalleryEntry.model_validate(self.model_dump(exclude={"delete_token"}))
