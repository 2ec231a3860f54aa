"""Core functionality for Banana Studio.

This package holds everything that does not know about HTTP routing:

- **config**: :class:`StudioConfig`, Pydantic Settings loaded from ``BANANA_*``
  environment variables.
- **errors**: the ``ValidationError`` / ``UpstreamError`` /
  ``ExtractionError`` / ``StorageError`` taxonomy.
- **images**: the image data URL predicate.
- **messages**: chat-completions ``messages`` construction.
- **extraction**: shape detection and image recovery from upstream replies.
- **generation**: :class:`ImageGenerator`, which ties the above to one
  upstream HTTP call.
"""

from bananastudio.core.config import StudioConfig
from bananastudio.core.errors import (
    ExtractionError,
    StorageError,
    StudioError,
    UpstreamError,
    ValidationError,
)
from bananastudio.core.extraction import classify_response, extract_image
from bananastudio.core.generation import GenerationRequest, ImageGenerator, validate_prompt
from bananastudio.core.images import is_valid_image
from bananastudio.core.messages import build_messages

__all__ = [
    "StudioConfig",
    "StudioError",
    "ValidationError",
    "UpstreamError",
    "ExtractionError",
    "StorageError",
    "classify_response",
    "extract_image",
    "GenerationRequest",
    "ImageGenerator",
    "validate_prompt",
    "is_valid_image",
    "build_messages",
]
