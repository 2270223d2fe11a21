"""Shared pytest fixtures for SpecGen tests."""

import base64
import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from specgen.api.main import create_app
from specgen.core.config import SpecgenConfig
from specgen.core.content_store import ContentStore
from specgen.core.errors import ProviderError
from specgen.core.orchestrator import GenerationOrchestrator
from specgen.core.parameters import StaticParameterSource
from specgen.core.providers import (
    ImageGenerationProvider,
    ImageGenerationResult,
    TextGenerationProvider,
    TextGenerationResult,
)

MARS_DAWN_STORY = (
    "**Title: Mars Dawn**\n\n"
    "Dr. Vasquez stood at the airlock, watching the first light of 2150 spill over the "
    "rim of Jezero Crater. Behind her the colony hummed. She lifted the advanced scanner "
    "and swept it across the red dust."
)

CATEGORY_DEFINITIONS = {
    "science-fiction": [
        {
            "id": "tech-level",
            "name": "Technology Level",
            "type": "Dropdown",
            "values": ["Primitive", "Contemporary", "Advanced"],
        },
        {"id": "alien-contact", "name": "Alien Contact", "type": "Toggle Switch"},
        {
            "id": "themes",
            "name": "Themes",
            "type": "Checkbox",
            "values": ["Time Travel", "Terraforming", "Artificial Intelligence"],
        },
        {"id": "story-length", "name": "Story Length", "type": "Slider", "min": 100, "max": 3000},
    ],
    "fantasy": [
        {
            "id": "magic-system",
            "name": "Magic System",
            "type": "Radio Buttons",
            "values": ["Elemental", "Runic"],
        },
        {"id": "darkness", "name": "Darkness", "type": "Slider", "min": 0, "max": 10},
    ],
}


class FakeTextProvider(TextGenerationProvider):
    """Text provider double that records every call."""

    name = "fake-text"

    def __init__(self, text=MARS_DAWN_STORY, model="fake-gpt", total_tokens=321, error=None, events=None):
        self.text = text
        self.model = model
        self.total_tokens = total_tokens
        self.error = error
        self.events = events if events is not None else []
        self.calls = []

    def generate_text(self, **kwargs):
        self.calls.append(kwargs)
        self.events.append("text")
        if self.error is not None:
            raise self.error
        return TextGenerationResult(text=self.text, model=self.model, total_tokens=self.total_tokens)


class FakeImageProvider(ImageGenerationProvider):
    """Image provider double returning fixed bytes as base64 (or a URL)."""

    name = "fake-image"

    def __init__(
        self,
        image_bytes=b"",
        model="fake-dalle",
        url=None,
        b64_json=None,
        revised_prompt=None,
        error=None,
        events=None,
    ):
        self.image_bytes = image_bytes
        self.model = model
        self.url = url
        self.b64_json = b64_json
        self.error = error
        self.revised_prompt = revised_prompt
        self.events = events if events is not None else []
        self.calls = []

    def generate_image(self, **kwargs):
        self.calls.append(kwargs)
        self.events.append("image")
        if self.error is not None:
            raise self.error
        if self.url is not None:
            return ImageGenerationResult(
                model=self.model, url=self.url, revised_prompt=self.revised_prompt
            )
        b64_json = self.b64_json or base64.b64encode(self.image_bytes).decode("ascii")
        return ImageGenerationResult(
            model=self.model, b64_json=b64_json, revised_prompt=self.revised_prompt
        )


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
def test_config(temp_dir: Path) -> SpecgenConfig:
    """Create a test configuration pointing at a temporary database.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        SpecgenConfig instance for testing
    """
    return SpecgenConfig(
        openai_api_key="test-key",
        database_path=temp_dir / "data" / "content.db",
        fiction_model="fake-gpt",
        image_model="fake-dalle",
        _env_file=None,
    )


@pytest.fixture
def store(temp_dir: Path) -> Generator[ContentStore, None, None]:
    """A fresh content store backed by a temporary SQLite file."""
    content_store = ContentStore(temp_dir / "store" / "content.db")
    try:
        yield content_store
    finally:
        content_store.close()


@pytest.fixture
def png_bytes() -> bytes:
    """A small real PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), "purple").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small real JPEG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), "orange").save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def events() -> list:
    """Shared call log so tests can check provider ordering."""
    return []


@pytest.fixture
def text_provider(events: list) -> FakeTextProvider:
    return FakeTextProvider(events=events)


@pytest.fixture
def image_provider(events: list, png_bytes: bytes) -> FakeImageProvider:
    return FakeImageProvider(image_bytes=png_bytes, events=events)


@pytest.fixture
def parameter_source() -> StaticParameterSource:
    return StaticParameterSource(CATEGORY_DEFINITIONS)


@pytest.fixture
def orchestrator(store, text_provider, image_provider, parameter_source, test_config) -> GenerationOrchestrator:
    return GenerationOrchestrator(store, text_provider, image_provider, parameter_source, test_config)


@pytest.fixture
def mars_dawn_story() -> str:
    return MARS_DAWN_STORY


@pytest.fixture
def provider_error() -> ProviderError:
    return ProviderError("Rate limit exceeded", provider="fake")


@pytest.fixture
def make_orchestrator(store, parameter_source, test_config, events, png_bytes):
    """Factory building an orchestrator with customised fake providers.

    Keyword arguments prefixed ``text_`` / ``image_`` configure the
    respective fake.  Returns ``(orchestrator, text_provider, image_provider)``.
    """

    def _make(http_client=None, **options):
        text_options = {k[len("text_"):]: v for k, v in options.items() if k.startswith("text_")}
        image_options = {k[len("image_"):]: v for k, v in options.items() if k.startswith("image_")}
        image_options.setdefault("image_bytes", png_bytes)
        text = FakeTextProvider(events=events, **text_options)
        image = FakeImageProvider(events=events, **image_options)
        orchestrator = GenerationOrchestrator(
            store, text, image, parameter_source, test_config, http_client=http_client
        )
        return orchestrator, text, image

    return _make


@pytest.fixture
def test_client(test_config, store, text_provider, image_provider, parameter_source) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with fake providers and a temporary store."""
    app = create_app(
        test_config,
        store=store,
        text_provider=text_provider,
        image_provider=image_provider,
        parameter_source=parameter_source,
    )
    with TestClient(app) as client:
        yield client
