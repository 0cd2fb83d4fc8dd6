"""Shared pytest fixtures for forge tests."""

import io
import sys
import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from PIL import Image  # noqa: E402

from models.asset import AssetContent, AssetKind  # noqa: E402


def make_png_bytes(
    color: tuple = (255, 255, 255),
    size: tuple = (4, 4),
    mode: str = "RGB",
) -> bytes:
    """Solid-colour image encoded as PNG."""
    output = io.BytesIO()
    Image.new(mode, size, color).save(output, format="PNG")
    return output.getvalue()


def make_sticker_bytes(size: int = 8) -> bytes:
    """White canvas with a red square in the centre."""
    img = Image.new("RGB", (size, size), (255, 255, 255))
    quarter = size // 4
    for x in range(quarter, size - quarter):
        for y in range(quarter, size - quarter):
            img.putpixel((x, y), (200, 20, 20))
    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


class FakeExpander:
    """Returns a fixed variation list, or raises ``error``."""

    def __init__(self, variations: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.variations = variations
        self.error = error
        self.calls: list[tuple] = []

    async def expand_variations(self, base_prompt: str, kind: AssetKind, count: int) -> list[str]:
        self.calls.append((base_prompt, kind, count))
        if self.error is not None:
            raise self.error
        if self.variations is not None:
            return list(self.variations)
        return [f"{base_prompt} variation {i + 1}" for i in range(count)]


class FakeFetcher:
    """Returns a PNG for every prompt, except indices mapped to an exception."""

    def __init__(self, failures: Optional[dict[int, Exception]] = None, payload: Optional[bytes] = None):
        self.failures = failures or {}
        self.payload = payload or make_png_bytes((10, 120, 200))
        self.prompts: list[str] = []

    async def fetch_asset(self, prompt: str, kind: AssetKind) -> AssetContent:
        index = len(self.prompts)
        self.prompts.append(prompt)
        if index in self.failures:
            raise self.failures[index]
        mime_type = "video/mp4" if kind.is_motion else "image/png"
        return AssetContent(data=self.payload, mime_type=mime_type)


class SleepRecorder:
    """Awaitable no-op sleep that records requested delays (seconds)."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def no_sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_expander() -> FakeExpander:
    return FakeExpander()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def white_png() -> bytes:
    return make_png_bytes((255, 255, 255))


@pytest.fixture
def black_png() -> bytes:
    return make_png_bytes((0, 0, 0))


@pytest.fixture
def sticker_png() -> bytes:
    return make_sticker_bytes()


@pytest.fixture
def sample_config() -> dict:
    """Sample configuration for testing."""
    return {
        "gemini_api_key": "test_gemini_key",
        "text_model": "gemini-3-flash-preview",
        "image_model": "gemini-2.5-flash-image",
        "video_model": "veo-3.1-fast-generate-preview",
        "variation_count": 20,
        "pacing_delay_ms": 4000,
        "retry_max_attempts": 5,
        "retry_initial_delay_ms": 4000,
        "video_poll_interval_seconds": 15.0,
        "daily_generation_limit": 3,
        "quota_db_path": ".forge/quota.db",
        "transparency_threshold": 245,
        "cors_origins": ["http://localhost:5173"],
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def png_factory():
    """Builder for solid-colour PNG payloads."""
    return make_png_bytes


@pytest.fixture
def make_expander():
    return FakeExpander


@pytest.fixture
def make_fetcher():
    return FakeFetcher
