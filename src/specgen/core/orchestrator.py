"""End-to-end generation of fiction, images, or both.

:class:`GenerationOrchestrator` runs one request through a fixed sequence:

1. **Validate**: parameter selections are filtered against their
   definitions.  Dropped selections are logged, never fatal.
2. **Text** (``fiction``, ``combined``): one call to the text provider.
   Title, word count and, when the caller gave none, the setting year are
   read back out of the story.
3. **Image** (``image``, ``combined``): one call to the image provider.  In
   combined mode this starts only after the story exists, because the image
   prompt is grounded in cues extracted from it.
4. **Assemble and persist**: one :class:`ContentRecord` is built and saved.

A provider failure at any stage aborts the request before anything is
written, so a failed combined request never leaves a text-only record
behind.  The store, providers and parameter source are injected, which lets
tests run the whole pipeline with doubles.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from specgen.core.config import SpecgenConfig
from specgen.core.content_store import ContentStore
from specgen.core.errors import ProviderError, UnsupportedModeError
from specgen.core.models import ContentRecord, ContentType, ImageBlob
from specgen.core.parameters import ParameterSource, filter_parameter_values
from specgen.core.prompt_builder import build_image_prompt, build_text_prompt
from specgen.core.providers import (
    ImageGenerationProvider,
    TextGenerationProvider,
    fetch_image_bytes,
)
from specgen.core.story_parser import (
    count_words,
    extract_setting_year,
    extract_title,
    placeholder_title,
)
from specgen.core.visual_cues import extract_visual_cues

logger = logging.getLogger(__name__)

# Characters of the image prompt kept in record metadata.
PROMPT_EXCERPT_LENGTH = 100


@dataclass
class GenerationRequest:
    """What the caller asked for.

    Attributes:
        parameter_values: category-id -> parameter-id -> value, unvalidated.
        content_type: ``fiction``, ``image`` or ``combined``.
        year: Optional setting year; overrides any year found in the story.
        title: Optional title; overrides the extracted one.
    """

    parameter_values: dict[str, Any] = field(default_factory=dict)
    content_type: ContentType | str = ContentType.FICTION
    year: int | None = None
    title: str | None = None


@dataclass
class StoryResult:
    text: str
    title: str
    word_count: int
    setting_year: int | None
    metadata: dict[str, Any]


@dataclass
class ImageResult:
    image: ImageBlob
    prompt: str
    visual_cues: list[str]
    metadata: dict[str, Any]


def _prompt_excerpt(prompt: str) -> str:
    if len(prompt) > PROMPT_EXCERPT_LENGTH:
        return prompt[:PROMPT_EXCERPT_LENGTH] + "..."
    return prompt


class GenerationOrchestrator:
    """Sequence provider calls for one generation request and persist the result.

    Args:
        store: Where finished records are saved.
        text_provider: Story generator.
        image_provider: Image generator.
        parameter_source: Definitions used to validate selections.
        config: Model names, limits and prompt settings.
        http_client: Optional httpx client for downloading URL-only images.
    """

    def __init__(
        self,
        store: ContentStore,
        text_provider: TextGenerationProvider,
        image_provider: ImageGenerationProvider,
        parameter_source: ParameterSource,
        config: SpecgenConfig,
        *,
        http_client: httpx.Client | None = None,
    ):
        self.store = store
        self.text_provider = text_provider
        self.image_provider = image_provider
        self.parameter_source = parameter_source
        self.config = config
        self.http_client = http_client

    @staticmethod
    def resolve_content_type(value: ContentType | str) -> ContentType:
        """Map a requested content type onto :class:`ContentType`.

        Raises:
            UnsupportedModeError: For anything other than fiction, image or combined.
        """
        try:
            return ContentType(value)
        except ValueError:
            allowed = ", ".join(t.value for t in ContentType)
            raise UnsupportedModeError(
                f"Unsupported content type {value!r}; expected one of: {allowed}"
            ) from None

    def generate(self, request: GenerationRequest) -> ContentRecord:
        """Run a generation request to completion.

        Args:
            request: Parameters, content type, and optional year and title.

        Returns:
            The saved record, including its id and timestamps.

        Raises:
            UnsupportedModeError: Before any provider call, for a bad content type.
            ProviderError: If a provider call fails; nothing is saved.
            StorageError: If the record cannot be saved.
        """
        content_type = self.resolve_content_type(request.content_type)
        started = time.perf_counter()
        logger.info(f"Starting {content_type.value} generation")

        filtered = filter_parameter_values(request.parameter_values, self.parameter_source)
        for dropped in filtered.discarded:
            logger.info(
                f"Dropped parameter selection {dropped.category_id}/"
                f"{dropped.parameter_id or '*'}: {dropped.reason}"
            )
        parameters = filtered.accepted

        story: StoryResult | None = None
        if content_type.has_text:
            story = self.generate_story(parameters, request.year)

        setting_year = request.year
        if setting_year is None and story is not None:
            setting_year = story.setting_year

        image: ImageResult | None = None
        if content_type.has_image:
            image = self.generate_illustration(
                parameters,
                setting_year,
                story_text=story.text if story is not None else None,
            )

        title = (request.title or "").strip()
        if not title:
            title = story.title if story is not None else placeholder_title(content_type.label)

        if content_type is ContentType.COMBINED:
            metadata: dict[str, Any] = {"fiction": story.metadata, "image": image.metadata}
        elif story is not None:
            metadata = dict(story.metadata)
        else:
            metadata = dict(image.metadata)
        metadata["generation_time_ms"] = int((time.perf_counter() - started) * 1000)

        record = ContentRecord(
            content_type=content_type,
            title=title,
            text_body=story.text if story is not None else None,
            image=image.image if image is not None else None,
            parameter_selections=parameters,
            metadata=metadata,
            setting_year=setting_year,
        )
        saved = self.store.save(record)
        logger.info(
            f"Finished {content_type.value} generation '{saved.title}' "
            f"in {metadata['generation_time_ms']} ms"
        )
        return saved

    def generate_story(self, parameters: dict[str, Any], year: int | None) -> StoryResult:
        """Text stage: build the prompt, call the provider, parse the story."""
        prompt = build_text_prompt(
            parameters,
            year,
            default_story_length=self.config.default_story_length,
        )
        try:
            result = self.text_provider.generate_text(
                model=self.config.fiction_model,
                system_prompt=self.config.fiction_system_prompt,
                prompt=prompt,
                temperature=self.config.fiction_temperature,
                max_tokens=self.config.fiction_max_tokens,
            )
        except ProviderError as e:
            logger.error(f"Text stage failed: {e}")
            raise

        text = result.text.strip()
        word_count = count_words(text)
        logger.info(f"Received story of {word_count} words from {result.model}")
        return StoryResult(
            text=text,
            title=extract_title(text),
            word_count=word_count,
            setting_year=year if year is not None else extract_setting_year(text),
            metadata={
                "model": result.model,
                "tokens": result.total_tokens,
                "word_count": word_count,
            },
        )

    def generate_illustration(
        self,
        parameters: dict[str, Any],
        year: int | None,
        *,
        story_text: str | None = None,
    ) -> ImageResult:
        """Image stage: ground the prompt in the story when there is one."""
        cues = extract_visual_cues(story_text) if story_text else []
        if story_text and not cues:
            logger.info("No visual cues found in story; using parameter-only image prompt")

        prompt = build_image_prompt(
            parameters,
            year,
            story_text=story_text,
            visual_cues=cues,
            suffix=self.config.image_prompt_suffix,
            max_length=self.config.image_prompt_max_length,
            excerpt_length=self.config.story_excerpt_length,
        )
        try:
            result = self.image_provider.generate_image(
                model=self.config.image_model,
                prompt=prompt,
                size=self.config.image_size,
                quality=self.config.image_quality,
            )
            data = fetch_image_bytes(
                result,
                timeout=self.config.provider_timeout,
                client=self.http_client,
            )
        except ProviderError as e:
            logger.error(f"Image stage failed: {e}")
            raise

        logger.info(f"Received {len(data)}-byte image from {result.model}")
        metadata: dict[str, Any] = {
            "model": result.model,
            "prompt": _prompt_excerpt(prompt),
            "visual_cues": cues,
            "size": self.config.image_size,
            "quality": self.config.image_quality,
        }
        # Present only when the provider rewrote the prompt (dall-e-3).
        if result.revised_prompt:
            metadata["revised_prompt"] = result.revised_prompt
        return ImageResult(
            image=ImageBlob(data=data),
            prompt=prompt,
            visual_cues=cues,
            metadata=metadata,
        )
