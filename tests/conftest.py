"""Shared fixtures: an ASGI test client with a stubbed Gemini client and small test images."""

import io
from unittest.mock import MagicMock

import httpx
import pytest
from PIL import Image

from lumina.api.routes.sessions import _sessions
from lumina.main import app
from lumina.utils.image import to_data_uri


def make_png(w: int = 64, h: int = 48, color: str = "white") -> bytes:
    img = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(w: int = 64, h: int = 48, color: str = "gray") -> bytes:
    img = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def room_png() -> bytes:
    return make_png(color="white")


@pytest.fixture
def room_image(room_png) -> str:
    return to_data_uri(room_png, "image/png")


@pytest.fixture
def redesigned_image() -> str:
    return to_data_uri(make_png(color="blue"), "image/png")


@pytest.fixture(autouse=True)
def clear_sessions():
    _sessions.clear()
    yield
    _sessions.clear()


@pytest.fixture
def genai_client():
    """Stand-in Gemini client; activities are patched per test."""
    fake = MagicMock(name="genai_client")
    app.state.genai_client = fake
    yield fake
    app.state.genai_client = None


@pytest.fixture
async def client(genai_client):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
