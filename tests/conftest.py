"""Shared pytest fixtures for Banana Studio tests."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from bananastudio.api.main import create_app
from bananastudio.core.config import StudioConfig

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4nGNgYGD4DwABBAEAcCBlCwAAAABJRU5ErkJggg=="
JPEG_DATA_URL = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD="
GIF_DATA_URL = "data:image/gif;base64,R0lGODlhAQABAAAAACw="

SITE_PASSWORD = "open-sesame"


def chat_response(content: str) -> dict:
    """Build a minimal chat-completions response body."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "banana-test",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


class FakeUpstream:
    """Scriptable stand-in for the upstream image backend.

    Each call pops the next queued reply; when the queue is empty the default
    reply (a Markdown-embedded PNG) is used.  Every request is recorded.
    """

    def __init__(self):
        self.replies: list = []
        self.requests: list[httpx.Request] = []

    def reply(self, status_code: int = 200, json=None, text: str | None = None) -> None:
        self.replies.append((status_code, json, text))

    def raise_error(self, exc_type: type[httpx.HTTPError]) -> None:
        self.replies.append(exc_type)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if not self.replies:
            return httpx.Response(200, json=chat_response(f"![Generated Image]({PNG_DATA_URL})"))

        reply = self.replies.pop(0)
        if isinstance(reply, type):
            raise reply("simulated failure", request=request)

        status_code, json, text = reply
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=json)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> StudioConfig:
    """Create a test configuration with a temporary data directory.

    The gallery bound is kept small so eviction is easy to exercise.
    """
    return StudioConfig(
        api_url="http://upstream.test/v1/chat/completions",
        api_key="sk-test",
        model_name="banana-test",
        site_password=SITE_PASSWORD,
        data_dir=temp_dir / "data",
        max_images=4,
        gallery_max_items=5,
        upstream_timeout=5.0,
        log_body_limit=200,
        _env_file=None,
    )


@pytest.fixture
def png_data_url() -> str:
    """A valid 1x1 PNG data URL (the default upstream reply image)."""
    return PNG_DATA_URL


@pytest.fixture
def reference_images() -> list[str]:
    """Two valid reference images of different types."""
    return [JPEG_DATA_URL, GIF_DATA_URL]


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    """Upstream backend double with a queue of scripted replies."""
    return FakeUpstream()


@pytest.fixture
def test_client(
    test_config: StudioConfig, fake_upstream: FakeUpstream
) -> Generator[TestClient, None, None]:
    """TestClient for an app wired to :class:`FakeUpstream` (not logged in)."""
    app = create_app(test_config, transport=httpx.MockTransport(fake_upstream.handle))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_client(test_client: TestClient) -> TestClient:
    """TestClient holding a valid session cookie."""
    resp = test_client.post("/api/login", json={"password": SITE_PASSWORD})
    assert resp.status_code == 200
    return test_client
