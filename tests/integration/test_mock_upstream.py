"""Integration tests for bananastudio.api.mock_upstream - the demo backend."""

from __future__ import annotations

import base64
import io

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from bananastudio.api.main import create_app
from bananastudio.api.mock_upstream import (
    IMAGE_SIZE,
    MockUpstreamSettings,
    create_mock_app,
    prompt_text,
    render_image,
)
from bananastudio.core.extraction import extract_image
from bananastudio.core.images import is_valid_image


@pytest.fixture
def mock_app():
    return create_mock_app(MockUpstreamSettings(min_delay=0.0, max_delay=0.0))


class TestMockUpstream:
    """Test the mock chat-completions endpoint on its own."""

    def test_health(self, mock_app):
        with TestClient(mock_app) as client:
            assert client.get("/health").json()["status"] == "ok"

    def test_reply_holds_extractable_png(self, mock_app):
        with TestClient(mock_app) as client:
            resp = client.post(
                "/v1/chat/completions",
                json={"model": "m", "messages": [{"role": "user", "content": "a banana"}]},
            )

        assert resp.status_code == 200
        body = resp.json()
        assert body["model"] == "m"

        image = extract_image(body)
        assert image.startswith("data:image/png;base64,")
        decoded = Image.open(io.BytesIO(base64.b64decode(image.split(",", 1)[1])))
        assert decoded.size == (IMAGE_SIZE, IMAGE_SIZE)

    def test_render_handles_non_latin_prompt(self):
        assert is_valid_image(render_image("香蕉宇航员 in space"))


class TestPromptText:
    """Test prompt recovery from either message content form."""

    def test_plain_content(self):
        assert prompt_text([{"role": "user", "content": "hi"}]) == "hi"

    def test_multimodal_content(self):
        parts = [
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,QUFB"}},
            {"type": "text", "text": "merge"},
        ]
        assert prompt_text([{"role": "user", "content": parts}]) == "merge"

    @pytest.mark.parametrize("messages", [None, [], ["junk"], [{"content": 3}]])
    def test_missing_text(self, messages):
        assert prompt_text(messages) == ""


class TestStudioAgainstMock:
    """Banana Studio wired to the mock backend in-process."""

    def test_generate_and_publish(self, test_config, mock_app):
        app = create_app(test_config, transport=httpx.ASGITransport(app=mock_app))

        with TestClient(app) as client:
            client.post("/api/login", json={"password": test_config.site_password})

            generated = client.post("/api/generate", json={"prompt": "a banana"})
            assert generated.status_code == 200
            image = generated.json()["image"]
            assert is_valid_image(image)

            published = client.post("/api/gallery", json={"prompt": "a banana", "image": image})
            assert published.status_code == 200
