"""Image data URL recognition.

An image enters the system only as a base64 data URL of the form
``data:image/<subtype>;base64,<payload>``.  The subtype is alphabetic and the
payload is a non-empty run of the standard base64 alphabet with at most two
trailing ``=`` padding characters.  Anything else is rejected, never coerced.

The unanchored :data:`DATA_URL_PATTERN` is used to *find* candidates inside
free text; :func:`is_valid_image` is the anchored check every candidate must
pass before it is accepted.
"""

from __future__ import annotations

import re

DATA_URL_PATTERN = re.compile(r"data:image/[a-zA-Z]+;base64,[A-Za-z0-9+/=]+")

_VALID_DATA_URL = re.compile(r"^data:image/[a-zA-Z]+;base64,[A-Za-z0-9+/]+={0,2}$")


def is_valid_image(value: object) -> bool:
    """Return ``True`` if *value* is a well-formed image data URL.

    Args:
        value: Candidate value, typically a string from a request body or an
            upstream response.

    Returns:
        ``True`` only for strings matching
        ``data:image/<alpha>;base64,<base64>`` in full.
    """
    if not isinstance(value, str):
        return False
    return _VALID_DATA_URL.fullmatch(value) is not None


def image_mime_type(value: str) -> str | None:
    """Return the MIME type of a valid image data URL, or ``None``."""
    if not is_valid_image(value):
        return None
    return value[len("data:") : value.index(";")]
