"""Image extraction from upstream responses.

OpenAI-compatible image backends disagree about where the generated image
lives in the response.  This module recovers a single image reference from
whatever JSON document came back.

Shape Detection
---------------
:func:`classify_response` inspects the raw document once and returns the
recognised shapes as tagged variants, in priority order:

========================  ===============================================
Variant                   Recognised when
========================  ===============================================
:class:`ErrorShape`       a truthy top-level ``error`` member is present
:class:`ChatCompletionShape`  a ``choices`` entry has a string
                          ``message.content``
:class:`ImageDataShape`   ``data`` is a non-empty list
:class:`UnknownShape`     nothing above matched
========================  ===============================================

An :class:`ErrorShape` is always returned alone.  A document can otherwise
carry both a chat shape and an image-data shape; both are returned so a
malformed chat payload cannot mask a usable ``data`` list.

Extraction Order
----------------
1. ``ErrorShape`` raises :class:`~bananastudio.core.errors.UpstreamError`.
2. ``ChatCompletionShape``: the first Markdown image whose target is a data
   URL, else the first bare data URL in the text.  The candidate must pass
   :func:`~bananastudio.core.images.is_valid_image`; a candidate that does
   not is a miss and the next shape is tried.
3. ``ImageDataShape``: per entry, inline ``b64_json`` (wrapped as a PNG data
   URL) is preferred over ``url``.  A URL is returned verbatim and is *not*
   a data URL; callers treat it as an opaque image reference.
4. Otherwise :class:`~bananastudio.core.errors.ExtractionError`, carrying a
   size-capped copy of the body for logging.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

from bananastudio.core.errors import ExtractionError, UpstreamError
from bananastudio.core.images import DATA_URL_PATTERN, is_valid_image

logger = logging.getLogger(__name__)

MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[.*?\]\((" + DATA_URL_PATTERN.pattern + r")\)")

DEFAULT_EXCERPT_LIMIT = 2000


@dataclass(frozen=True)
class ErrorShape:
    """Response carrying an explicit error indicator."""

    detail: str


@dataclass(frozen=True)
class ChatCompletionShape:
    """Chat-completions response with assistant text content."""

    content: str


@dataclass(frozen=True)
class ImageDataShape:
    """Images-API response with a ``data`` list."""

    entries: tuple[Any, ...]


@dataclass(frozen=True)
class UnknownShape:
    """Response matching none of the known shapes."""

    pass


ResponseShape = Union[ErrorShape, ChatCompletionShape, ImageDataShape, UnknownShape]


def _error_detail(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
        return json.dumps(error, ensure_ascii=False)
    return str(error)


def _chat_content(choices: Any) -> str | None:
    if not isinstance(choices, list):
        return None
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
    return None


def classify_response(response: Any) -> list[ResponseShape]:
    """Detect which known shapes a response document carries.

    Args:
        response: Parsed JSON body of an upstream response.

    Returns:
        Recognised shapes in extraction priority order.  Never empty; a
        document with no known shape yields ``[UnknownShape()]``.
    """
    if not isinstance(response, dict):
        return [UnknownShape()]

    error = response.get("error")
    if error:
        return [ErrorShape(detail=_error_detail(error))]

    shapes: list[ResponseShape] = []

    content = _chat_content(response.get("choices"))
    if content is not None:
        shapes.append(ChatCompletionShape(content=content))

    data = response.get("data")
    if isinstance(data, list) and data:
        shapes.append(ImageDataShape(entries=tuple(data)))

    return shapes or [UnknownShape()]


def find_embedded_image(content: str) -> str | None:
    """Find a data URL image embedded in assistant text.

    Markdown image syntax (``![alt](data:image/...)``) is tried first; if none
    is present the raw text is scanned for a bare data URL.  Only the first
    match of whichever heuristic succeeds is considered.

    Args:
        content: Assistant message text.

    Returns:
        The candidate data URL if it passes validation, else ``None``.
    """
    markdown = MARKDOWN_IMAGE_PATTERN.search(content)
    if markdown:
        candidate = markdown.group(1)
    else:
        bare = DATA_URL_PATTERN.search(content)
        if not bare:
            return None
        candidate = bare.group(0)

    if is_valid_image(candidate):
        return candidate

    logger.debug(f"Discarding malformed embedded image candidate ({len(candidate)} chars)")
    return None


def _image_from_entries(entries: tuple[Any, ...]) -> str | None:
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        b64 = entry.get("b64_json")
        if isinstance(b64, str) and b64:
            wrapped = f"data:image/png;base64,{b64}"
            if is_valid_image(wrapped):
                return wrapped
        url = entry.get("url")
        if isinstance(url, str) and url:
            return url
    return None


def response_excerpt(response: Any, limit: int = DEFAULT_EXCERPT_LIMIT) -> str:
    """Serialise *response* for logging, truncated to *limit* characters."""
    try:
        text = json.dumps(response, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(response)
    if len(text) > limit:
        return f"{text[:limit]}... [{len(text) - limit} more chars]"
    return text


def extract_image(response: Any, *, excerpt_limit: int = DEFAULT_EXCERPT_LIMIT) -> str:
    """Recover a single image reference from an upstream response.

    Args:
        response: Parsed JSON body of a successful upstream response.
        excerpt_limit: Cap on the body copy attached to a raised
            :class:`ExtractionError`.

    Returns:
        A data URL, or (for images-API responses without inline data) the
        image URL supplied by the backend.

    Raises:
        UpstreamError: The response carries an explicit error indicator.
        ExtractionError: No image could be recovered.
    """
    for shape in classify_response(response):
        if isinstance(shape, ErrorShape):
            raise UpstreamError(f"Upstream returned an error: {shape.detail}")

        if isinstance(shape, ChatCompletionShape):
            logger.info(f"Received assistant content ({len(shape.content)} chars)")
            image = find_embedded_image(shape.content)
            if image:
                return image

        elif isinstance(shape, ImageDataShape):
            image = _image_from_entries(shape.entries)
            if image:
                return image

    raise ExtractionError(
        "Could not extract an image from the upstream response",
        response_excerpt=response_excerpt(response, excerpt_limit),
    )
