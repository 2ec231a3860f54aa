"""Gallery publishing, listing, and owner-gated deletion.

:class:`GalleryService` sits between the route handlers and
:class:`~bananastudio.api.gallery_store.GalleryStore`.  It owns the rules the
store does not know about:

- what may be published (non-empty prompt, valid image data URL)
- how reference images are sanitised (invalid ones dropped, list capped)
- how identifiers and delete tokens are minted
- that delete tokens never leave the service except once, at publish time

There is exactly one deletion path and it always requires the delete token.
"""

from __future__ import annotations

import enum
import logging
import secrets
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from bananastudio.api.gallery_store import GalleryStore
from bananastudio.api.models import GalleryEntry, PublicGalleryEntry
from bananastudio.core.config import StudioConfig
from bananastudio.core.errors import ValidationError
from bananastudio.core.generation import validate_prompt
from bananastudio.core.images import image_mime_type, is_valid_image

logger = logging.getLogger(__name__)


class DeleteOutcome(enum.Enum):
    """Result of :meth:`GalleryService.delete`."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"


class GalleryService:
    """Shared public gallery with per-entry delete tokens.

    Args:
        store: Backing store.
        config: Application configuration (prompt and image limits).
    """

    def __init__(self, store: GalleryStore, config: StudioConfig):
        self.store = store
        self.config = config

    @classmethod
    def from_config(cls, config: StudioConfig) -> GalleryService:
        """Open the gallery document named by *config*."""
        return cls(GalleryStore(config.gallery_db, config.gallery_max_items), config)

    def publish(
        self,
        prompt: object,
        image: object,
        reference_images: Sequence[object] | None = (),
    ) -> GalleryEntry:
        """Publish a generated image to the gallery.

        Args:
            prompt: Prompt that produced the image.  Trimmed.
            image: Generated image as a data URL.
            reference_images: Reference images.  Entries that are not valid
                data URLs are dropped; the remainder is capped at
                ``config.max_images``.

        Returns:
            The stored entry, including its delete token.  This is the only
            time the token is handed out.

        Raises:
            ValidationError: Missing, empty, over-long or non-text prompt, or
                invalid image.
            StorageError: The gallery could not be written.
        """
        if prompt is None:
            prompt = ""
        prompt = validate_prompt(prompt, max_prompt_length=self.config.max_prompt_length)
        if not is_valid_image(image):
            raise ValidationError("Image is not a valid image data URL")

        if not isinstance(reference_images, (list, tuple)):
            reference_images = ()
        references = [ref for ref in reference_images if is_valid_image(ref)]
        references = references[: self.config.max_images]

        entry = GalleryEntry(
            id=str(uuid.uuid4()),
            prompt=prompt,
            image=image,
            reference_images=references,
            created_at=datetime.now(timezone.utc),
            delete_token=secrets.token_urlsafe(32),
        )
        self.store.insert(entry)

        logger.info(
            f"Published gallery item {entry.id} "
            f"({image_mime_type(image)}, {len(references)} reference images)"
        )
        return entry

    def list_public(self) -> list[PublicGalleryEntry]:
        """Return every gallery entry, newest first, without delete tokens."""
        return [entry.public() for entry in self.store.read_all()]

    def delete(self, entry_id: str, token: str) -> DeleteOutcome:
        """Delete an entry if *token* is its delete token.

        Args:
            entry_id: Identifier of the entry.
            token: Delete token issued at publish time.

        Returns:
            :attr:`DeleteOutcome.DELETED`, :attr:`DeleteOutcome.NOT_FOUND`, or
            :attr:`DeleteOutcome.UNAUTHORIZED`.  Callers facing end users
            should not reveal which of the latter two occurred.

        Raises:
            StorageError: The gallery could not be written.
        """
        result = self.store.remove_by_id(entry_id, token)

        if result.removed:
            logger.info(f"Deleted gallery item {entry_id}")
            return DeleteOutcome.DELETED
        if result.found:
            logger.warning(f"Rejected delete of gallery item {entry_id}: bad token")
            return DeleteOutcome.UNAUTHORIZED
        return DeleteOutcome.NOT_FOUND
