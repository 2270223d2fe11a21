"""Text and image provider interfaces, plus the OpenAI implementation.

The orchestrator depends only on :class:`TextGenerationProvider` and
:class:`ImageGenerationProvider`; tests substitute their own doubles.

Every call is a single attempt.  Any failure (HTTP error, timeout, missing
key, or a response without the expected fields) is raised as
:class:`~specgen.core.errors.ProviderError` carrying the provider's message.
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from openai import OpenAI, OpenAIError

from specgen.core.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class TextGenerationResult:
    text: str
    model: str
    total_tokens: int = 0


@dataclass
class ImageGenerationResult:
    """Provider image payload: inline base64 data or a download URL."""

    model: str
    b64_json: str | None = None
    url: str | None = None
    revised_prompt: str | None = None


class TextGenerationProvider(ABC):
    """Anything that turns a prompt into story text."""

    name = "text"

    @abstractmethod
    def generate_text(
        self,
        *,
        model: str,
        system_prompt: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> TextGenerationResult:
        """Run one completion.

        Raises:
            ProviderError: If the call fails or returns no text.
        """


class ImageGenerationProvider(ABC):
    """Anything that turns a prompt into an image."""

    name = "image"

    @abstractmethod
    def generate_image(
        self,
        *,
        model: str,
        prompt: str,
        size: str,
        quality: str,
    ) -> ImageGenerationResult:
        """Generate one image.

        Raises:
            ProviderError: If the call fails or returns neither data nor URL.
        """


def fetch_image_bytes(
    result: ImageGenerationResult,
    *,
    timeout: float = 60.0,
    client: httpx.Client | None = None,
) -> bytes:
    """Turn a provider image payload into raw bytes.

    Inline base64 data is decoded; otherwise the URL is downloaded.

    Args:
        result: Payload returned by an image provider.
        timeout: Download timeout in seconds.
        client: Optional httpx client, used instead of a one-off request.

    Raises:
        ProviderError: If the data is not valid base64, the download fails,
            or the payload holds neither.
    """
    if result.b64_json:
        try:
            return base64.b64decode(result.b64_json, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"Image provider returned invalid base64 data: {e}") from e

    if result.url:
        logger.info(f"Downloading generated image from {result.url[:60]}")
        try:
            if client is not None:
                response = client.get(result.url, timeout=timeout)
            else:
                response = httpx.get(result.url, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to download generated image: {e}") from e
        if not response.content:
            raise ProviderError("Downloaded image is empty")
        return response.content

    raise ProviderError("Image provider returned neither image data nor a URL")


class OpenAIProvider(TextGenerationProvider, ImageGenerationProvider):
    """OpenAI chat completions and image generation.

    The client is created on first use so the service can start without a
    key; calls made without one fail with a :class:`ProviderError`.

    Args:
        api_key: OpenAI API key.
        base_url: Optional API base URL.
        timeout: Per-request timeout in seconds.
        client: Pre-built client, mainly for tests.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = 120.0,
        client: OpenAI | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderError("OpenAI API key not configured", provider=self.name)
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def generate_text(
        self,
        *,
        model: str,
        system_prompt: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> TextGenerationResult:
        logger.info(f"Requesting story from {model} (max_tokens={max_tokens})")
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"Text generation failed: {e}")
            raise ProviderError(f"Text generation failed: {e}", provider=self.name) from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderError(
                "Text provider returned an unexpected response", provider=self.name
            ) from e
        if not text or not text.strip():
            raise ProviderError("Text provider returned an empty story", provider=self.name)

        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", 0) or 0
        return TextGenerationResult(
            text=text,
            model=getattr(response, "model", None) or model,
            total_tokens=total_tokens,
        )

    def generate_image(
        self,
        *,
        model: str,
        prompt: str,
        size: str,
        quality: str,
    ) -> ImageGenerationResult:
        params = {"model": model, "prompt": prompt, "size": size, "quality": quality, "n": 1}
        # gpt-image models always return base64 and reject response_format.
        if model.startswith("dall-e"):
            params["response_format"] = "b64_json"

        logger.info(f"Requesting image from {model} ({size}, {quality})")
        try:
            response = self.client.images.generate(**params)
        except OpenAIError as e:
            logger.error(f"Image generation failed: {e}")
            raise ProviderError(f"Image generation failed: {e}", provider=self.name) from e

        try:
            item = response.data[0]
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderError(
                "Image provider returned an unexpected response", provider=self.name
            ) from e

        b64_json = getattr(item, "b64_json", None)
        url = getattr(item, "url", None)
        if not b64_json and not url:
            raise ProviderError(
                "Image provider returned neither image data nor a URL", provider=self.name
            )
        return ImageGenerationResult(
            model=model,
            b64_json=b64_json,
            url=url,
            revised_prompt=getattr(item, "revised_prompt", None),
        )
