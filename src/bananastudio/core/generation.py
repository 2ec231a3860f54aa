"""Image generation against an OpenAI-compatible backend.

:class:`ImageGenerator` validates a prompt and its reference images, sends a
single chat-completions request upstream, and extracts the generated image
from the reply.

Processing flow:
    1. Trim and validate the prompt and the reference images.
    2. Build the ``messages`` payload (:mod:`bananastudio.core.messages`).
    3. POST ``{model, messages}`` with a bearer token.
    4. Extract the image (:mod:`bananastudio.core.extraction`).

There are no retries.  Each call performs exactly one outbound request and
shares no mutable state with concurrent calls, so any number of generations
may be awaited in parallel on the same :class:`httpx.AsyncClient`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from bananastudio.core.config import StudioConfig
from bananastudio.core.errors import ExtractionError, UpstreamError, ValidationError
from bananastudio.core.extraction import extract_image
from bananastudio.core.images import is_valid_image
from bananastudio.core.messages import build_messages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """A validated generation request.

    Attributes:
        prompt: Trimmed, non-empty prompt.
        reference_images: Validated reference image data URLs, in order.
    """

    prompt: str
    reference_images: tuple[str, ...] = ()


def validate_prompt(prompt: object, *, max_prompt_length: int) -> str:
    """Trim *prompt* and check it is usable.

    Args:
        prompt: Prompt as received from the client.
        max_prompt_length: Maximum prompt length after trimming.

    Returns:
        The trimmed prompt.

    Raises:
        ValidationError: Missing, empty, over-long, or not encodable as UTF-8
            (a lone surrogate decoded from a JSON ``\\ud800`` escape).
    """
    if not isinstance(prompt, str):
        raise ValidationError("Please provide a valid prompt")

    trimmed = prompt.strip()
    if not trimmed:
        raise ValidationError("Prompt must not be empty")
    if len(trimmed) > max_prompt_length:
        raise ValidationError(f"Prompt is too long (limit {max_prompt_length} characters)")
    try:
        trimmed.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError("Prompt contains characters that are not valid text") from e
    return trimmed


def validate_generation_request(
    prompt: object,
    images: Sequence[object] | None,
    *,
    max_prompt_length: int,
    max_images: int,
) -> GenerationRequest:
    """Validate raw input and build a :class:`GenerationRequest`.

    Args:
        prompt: Prompt as received from the client.
        images: Reference images as received from the client, or ``None``.
        max_prompt_length: Maximum prompt length after trimming.
        max_images: Maximum number of reference images.

    Returns:
        The validated request.

    Raises:
        ValidationError: Invalid prompt (see :func:`validate_prompt`), an
            image list that is not a list, too many images, or an image that
            is not a valid data URL.
    """
    trimmed = validate_prompt(prompt, max_prompt_length=max_prompt_length)

    if images is None:
        images = []
    elif isinstance(images, (str, bytes)) or not isinstance(images, Sequence):
        raise ValidationError("Images must be a list of image data URLs")

    images = list(images)
    if len(images) > max_images:
        raise ValidationError(f"At most {max_images} images may be uploaded")

    for index, image in enumerate(images, start=1):
        if not is_valid_image(image):
            raise ValidationError(f"Image {index} is not a valid image data URL")

    return GenerationRequest(prompt=trimmed, reference_images=tuple(images))


class ImageGenerator:
    """Generate images through the upstream chat-completions backend.

    Args:
        config: Application configuration (endpoint, key, model, limits).
        client: Shared async HTTP client.  Its timeout applies to every
            upstream call.
    """

    def __init__(self, config: StudioConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    def _excerpt(self, text: str) -> str:
        limit = self.config.log_body_limit
        return text if len(text) <= limit else f"{text[:limit]}..."

    async def request_completion(self, request: GenerationRequest) -> object:
        """Send one chat-completions request and return the parsed JSON body.

        Raises:
            UpstreamError: Transport failure, timeout, or non-2xx status.
            ExtractionError: A 2xx response whose body is not JSON.
        """
        payload = {
            "model": self.config.model_name,
            "messages": build_messages(request.prompt, request.reference_images),
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        try:
            response = await self.client.post(self.config.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.error(f"Upstream request timed out after {self.config.upstream_timeout}s")
            raise UpstreamError("Upstream request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error(f"Upstream request failed: {exc!r}")
            raise UpstreamError(f"Upstream request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                f"Upstream returned {response.status_code}: {self._excerpt(response.text)}"
            )
            raise UpstreamError(
                f"Upstream request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            logger.error(f"Upstream returned a non-JSON body: {self._excerpt(response.text)}")
            raise ExtractionError(
                "Upstream response is not valid JSON",
                response_excerpt=self._excerpt(response.text),
            ) from exc

    async def generate(self, prompt: object, images: Sequence[object] | None = None) -> str:
        """Generate an image from a prompt and optional reference images.

        Args:
            prompt: Text prompt.  Trimmed before validation and sending.
            images: Reference images as data URLs.

        Returns:
            The generated image as a data URL, or an opaque image URL when the
            backend only returned a link.

        Raises:
            ValidationError: Invalid input; nothing was sent upstream.
            UpstreamError: The upstream call failed or reported an error.
            ExtractionError: The upstream reply held no recognisable image.
        """
        return await self.generate_from_request(self.validate(prompt, images))

    def validate(
        self, prompt: object, images: Sequence[object] | None = None
    ) -> GenerationRequest:
        """Validate raw client input against the configured limits."""
        return validate_generation_request(
            prompt,
            images,
            max_prompt_length=self.config.max_prompt_length,
            max_images=self.config.max_images,
        )

    async def generate_from_request(self, request: GenerationRequest) -> str:
        """Generate an image for an already validated *request*.

        Raises:
            UpstreamError: The upstream call failed or reported an error.
            ExtractionError: The upstream reply held no recognisable image.
        """
        logger.info(f"Requesting model: {self.config.model_name}")
        logger.info(f"Prompt: {request.prompt[:100]}...")
        logger.info(f"Reference images: {len(request.reference_images)}")

        body = await self.request_completion(request)

        try:
            image = extract_image(body, excerpt_limit=self.config.log_body_limit)
        except ExtractionError as exc:
            logger.error(f"Image extraction failed; upstream body: {exc.response_excerpt}")
            raise
        except UpstreamError as exc:
            logger.error(f"Upstream reported an error: {exc}")
            raise

        logger.info("Image generated successfully")
        return image
