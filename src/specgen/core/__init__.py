"""Core functionality for fiction and image generation.

Architecture Overview
---------------------
1. **Configuration** (config.py): environment-based settings with the
   SPECGEN_ prefix.
2. **Prompting** (visual_cues.py, prompt_builder.py, story_parser.py):
   pure functions that turn parameter selections and generated stories
   into provider prompts, and read titles and years back out.
3. **Validation** (parameters.py): parameter definitions as a tagged union
   and best-effort filtering of user selections.
4. **Providers** (providers.py): text and image provider interfaces with an
   OpenAI implementation.
5. **Orchestration** (orchestrator.py): the validate, text, image, persist
   sequence.
6. **Storage** (content_store.py): indexed SQLite persistence with full and
   summary listings.

Usage Example
-------------
    from specgen.core import (
        ContentStore, GenerationOrchestrator, GenerationRequest,
        JsonParameterSource, OpenAIProvider, config,
    )

    store = ContentStore(config.database_path)
    provider = OpenAIProvider(config.openai_api_key)
    orchestrator = GenerationOrchestrator(
        store, provider, provider, JsonParameterSource(config.categories_path), config
    )
    record = orchestrator.generate(
        GenerationRequest(
            parameter_values={"science-fiction": {"tech-level": "Advanced"}},
            content_type="combined",
            year=2150,
        )
    )
"""

from specgen.core.config import SpecgenConfig, config
from specgen.core.content_store import ContentStore
from specgen.core.errors import (
    ContentNotFoundError,
    ImageNotFoundError,
    ProviderError,
    SpecgenError,
    StorageError,
    UnsupportedModeError,
)
from specgen.core.models import (
    ContentFilter,
    ContentPage,
    ContentRecord,
    ContentSummary,
    ContentType,
    ImageBlob,
    Pagination,
)
from specgen.core.orchestrator import GenerationOrchestrator, GenerationRequest
from specgen.core.parameters import JsonParameterSource, ParameterSource, StaticParameterSource
from specgen.core.providers import (
    ImageGenerationProvider,
    OpenAIProvider,
    TextGenerationProvider,
)

__all__ = [
    "ContentFilter",
    "ContentNotFoundError",
    "ContentPage",
    "ContentRecord",
    "ContentStore",
    "ContentSummary",
    "ContentType",
    "GenerationOrchestrator",
    "GenerationRequest",
    "ImageBlob",
    "ImageGenerationProvider",
    "ImageNotFoundError",
    "JsonParameterSource",
    "OpenAIProvider",
    "Pagination",
    "ParameterSource",
    "ProviderError",
    "SpecgenConfig",
    "SpecgenError",
    "StaticParameterSource",
    "StorageError",
    "TextGenerationProvider",
    "UnsupportedModeError",
    "config",
]
