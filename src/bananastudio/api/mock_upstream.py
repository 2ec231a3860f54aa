"""Mock upstream image backend for local development and demos.

Serves an OpenAI-compatible ``POST /v1/chat/completions`` endpoint that
answers every request with a freshly drawn PNG embedded in Markdown, the same
shape real chat-completions image models return.  Point Banana Studio at it
with::

    banana-studio-mock &
    BANANA_API_URL=http://localhost:8000/v1/chat/completions banana-studio

Each reply is delayed by a random amount between ``min_delay`` and
``max_delay`` seconds to imitate generation latency.

Settings are read from ``BANANA_MOCK_*`` environment variables.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import random
import secrets
import time
from typing import Any

from fastapi import FastAPI
from PIL import Image, ImageDraw
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

IMAGE_SIZE = 512

PALETTE = ["#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7", "#DDA0DD"]


class MockUpstreamSettings(BaseSettings):
    """Settings for the mock backend."""

    model_config = SettingsConfigDict(env_prefix="BANANA_MOCK_", case_sensitive=False)

    host: str = Field(default="127.0.0.1", description="Interface to bind")
    port: int = Field(default=8000, ge=1, le=65535, description="Port to bind")
    min_delay: float = Field(default=2.0, ge=0.0, description="Shortest reply delay (s)")
    max_delay: float = Field(default=5.0, ge=0.0, description="Longest reply delay (s)")


def prompt_text(messages: Any) -> str:
    """Return the text of the last message, whichever content form it uses."""
    if not isinstance(messages, list) or not messages:
        return ""
    last = messages[-1]
    content = last.get("content") if isinstance(last, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                return str(part.get("text", ""))
    return ""


def render_image(prompt: str) -> str:
    """Draw a placeholder image for *prompt* and return it as a PNG data URL."""
    color = random.choice(PALETTE)
    base = Image.new("RGB", (IMAGE_SIZE, IMAGE_SIZE), "white")
    tint = Image.new("RGB", (IMAGE_SIZE, IMAGE_SIZE), color)
    mask = Image.linear_gradient("L").resize((IMAGE_SIZE, IMAGE_SIZE)).rotate(45)
    image = Image.composite(base, tint, mask)

    draw = ImageDraw.Draw(image)
    centre = IMAGE_SIZE // 2
    draw.ellipse((centre - 100, centre - 100, centre + 100, centre + 100), fill=color)

    caption = prompt[:20] + ("..." if len(prompt) > 20 else "")
    # The fallback bitmap font only covers Latin-1.
    caption = caption.encode("latin-1", "replace").decode("latin-1")
    for text, y in (("AI Generated", centre - 12), (caption, centre + 8)):
        left, _, right, _ = draw.textbbox((0, 0), text)
        draw.text((centre - (right - left) // 2, y), text, fill="white")

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def create_mock_app(settings: MockUpstreamSettings | None = None) -> FastAPI:
    """Build the mock backend application."""
    settings = settings or MockUpstreamSettings()
    app = FastAPI(title="Banana Studio mock upstream")

    @app.post("/v1/chat/completions")
    async def chat_completions(body: dict[str, Any]) -> dict:
        model = body.get("model") or "banana-pro"
        messages = body.get("messages")
        prompt = prompt_text(messages)
        logger.info(
            f"Mock generation request: model={model}, "
            f"messages={len(messages) if isinstance(messages, list) else 0}, "
            f"prompt={prompt[:100]!r}"
        )

        low, high = sorted((settings.min_delay, settings.max_delay))
        await asyncio.sleep(random.uniform(low, high))

        return {
            "id": f"chatcmpl-{secrets.token_hex(8)}",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {
                        "role": "assistant",
                        "content": f"![Generated Image]({render_image(prompt)})",
                    },
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 50, "completion_tokens": 10, "total_tokens": 60},
        }

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "message": "Mock API is running"}

    return app


def main() -> None:
    """Run the mock backend under uvicorn.

    Registered as the ``banana-studio-mock`` console script.
    """
    import uvicorn

    settings = MockUpstreamSettings()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Mock upstream listening on http://{settings.host}:{settings.port}")
    uvicorn.run(create_mock_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
