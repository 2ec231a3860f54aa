"""Upstream request message construction.

Converts a prompt and optional reference images into the OpenAI
chat-completions ``messages`` shape.

Message Shapes
--------------
Text only::

    [{"role": "user", "content": "<prompt>"}]

With reference images (images first, in order, then exactly one text part)::

    [
        {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}},
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,..."}},
                {"type": "text", "text": "<prompt>"},
            ],
        }
    ]

Images that are not valid data URLs are silently dropped here; rejecting bad
input is the caller's job, not the builder's.
"""

from __future__ import annotations

from collections.abc import Sequence

from bananastudio.core.images import is_valid_image


def build_messages(prompt: str, images: Sequence[str] = ()) -> list[dict]:
    """Build the ``messages`` list for a chat-completions request.

    Args:
        prompt: Text prompt to send.
        images: Reference images as data URLs.  Invalid entries are skipped.

    Returns:
        A list containing a single user message.
    """
    if not images:
        return [{"role": "user", "content": prompt}]

    content: list[dict] = [
        {"type": "image_url", "image_url": {"url": image}}
        for image in images
        if is_valid_image(image)
    ]
    content.append({"type": "text", "text": prompt})

    return [{"role": "user", "content": content}]
