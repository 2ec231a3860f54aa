"""Error taxonomy for Banana Studio.

Every failure the core can report is one of four kinds.  Route handlers in
:mod:`bananastudio.api.main` translate them into HTTP responses; nothing below
the HTTP layer knows about status codes.

ValidationError
    Malformed or out-of-bounds input.  Raised before any side effect.
UpstreamError
    Transport failure, non-success status, or an explicit error payload from
    the image-generation backend.
ExtractionError
    The backend answered successfully but no image could be recovered.
StorageError
    The gallery document could not be written.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for all Banana Studio errors."""

    pass


class ValidationError(StudioError):
    """User-friendly validation error.

    The message is intended to be displayed directly to the user.
    """

    pass


class UpstreamError(StudioError):
    """The upstream image-generation service failed.

    Attributes:
        status_code: HTTP status returned by the upstream service, or ``None``
            when the failure happened before a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(StudioError):
    """No image could be recovered from an upstream response.

    Attributes:
        response_excerpt: Size-capped serialisation of the response body, kept
            for diagnostic logging only.  Never send it to the client.
    """

    def __init__(self, message: str, response_excerpt: str = ""):
        super().__init__(message)
        self.response_excerpt = response_excerpt


class StorageError(StudioError):
    """The gallery backing document could not be persisted."""

    pass
