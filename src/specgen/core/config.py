"""Configuration management for SpecGen.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SPECGEN_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SPECGEN_* prefix)
2. .env file in the project root
3. Default values defined in SpecgenConfig

The OpenAI key is additionally picked up from the conventional
``OPENAI_API_KEY`` variable so existing shells work unchanged.

Example .env file:
    SPECGEN_OPENAI_API_KEY=sk-...
    SPECGEN_FICTION_MODEL=gpt-4o-mini
    SPECGEN_IMAGE_MODEL=dall-e-3
    SPECGEN_DATABASE_PATH=data/generated-content.db

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The HTTP layer reads it when building its components; the core classes
receive configuration values explicitly and never import the global.

Usage Example
-------------
    from specgen.core.config import config

    print(config.fiction_model)
    print(config.database_path)

Directory Management
--------------------
The parent directory of ``database_path`` is created on initialization.

Provider Defaults
-----------------
- Text: ``gpt-4o-mini``, temperature 0.8, 1000 max tokens
- Image: ``dall-e-3``, 1024x1024, standard quality
- Image prompts are capped at 4000 characters (DALL-E 3 limit)
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a speculative fiction generator that creates compelling, imaginative stories."
)

DEFAULT_IMAGE_PROMPT_SUFFIX = (
    "Use high-quality, photorealistic rendering with attention to lighting, detail, "
    "and composition. The image should be visually cohesive and striking."
)

BUNDLED_CATEGORIES_PATH = Path(__file__).resolve().parent.parent / "data" / "categories.json"


class SpecgenConfig(BaseSettings):
    """Main configuration for SpecGen.

    Attributes
    ----------
    Provider Settings:
        openai_api_key : str | None
            API key for the OpenAI provider (``OPENAI_API_KEY`` also accepted)
        openai_base_url : str | None
            Alternative API base URL (proxies, compatible servers)
        provider_timeout : float
            Seconds to wait for a single provider round trip

    Fiction Settings:
        fiction_model, fiction_temperature, fiction_max_tokens : model parameters
        fiction_system_prompt : str
            System instruction sent with every story request
        default_story_length : int
            Target word count when no ``length`` parameter is selected
        max_text_length : int
            Stored story bodies are truncated to this many characters

    Image Settings:
        image_model, image_size, image_quality : model parameters
        image_prompt_suffix : str
            Quality/style sentence appended to every image prompt
        image_prompt_max_length : int
            Image prompts are truncated to this many characters
        story_excerpt_length : int
            Characters of story text quoted in a grounded image prompt

    Storage Settings:
        database_path : Path
            SQLite database file for generated content
        categories_path : Path
            JSON file holding the category/parameter definitions
        default_page_limit, max_page_limit : int
            Listing page size default and upper bound

    Server Settings:
        server_host, server_port, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SPECGEN_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Provider settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
        validation_alias=AliasChoices("SPECGEN_OPENAI_API_KEY", "OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for the OpenAI API base URL",
    )
    provider_timeout: float = Field(
        default=120.0,
        description="Timeout in seconds for a single provider call",
        gt=0,
    )

    # Fiction generation
    fiction_model: str = Field(default="gpt-4o-mini", description="Text model identifier")
    fiction_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    fiction_max_tokens: int = Field(default=1000, ge=1, le=16000)
    fiction_system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System instruction for the text provider",
    )
    default_story_length: int = Field(
        default=500,
        description="Target story length in words when no length parameter is selected",
        ge=50,
        le=10000,
    )
    max_text_length: int = Field(
        default=50000,
        description="Maximum stored story length in characters",
        ge=1,
    )

    # Image generation
    image_model: str = Field(default="dall-e-3", description="Image model identifier")
    image_size: str = Field(default="1024x1024", description="Image size passed to the provider")
    image_quality: Literal["standard", "hd", "low", "medium", "high", "auto"] = Field(
        default="standard",
        description="Image quality tier",
    )
    image_prompt_suffix: str = Field(
        default=DEFAULT_IMAGE_PROMPT_SUFFIX,
        description="Style suffix appended to every image prompt",
    )
    image_prompt_max_length: int = Field(
        default=4000,
        description="Provider maximum prompt length in characters",
        ge=100,
    )
    story_excerpt_length: int = Field(
        default=500,
        description="Characters of story text quoted in grounded image prompts",
        ge=0,
    )

    # Storage
    database_path: Path = Field(
        default=Path("data") / "generated-content.db",
        description="SQLite database for generated content",
    )
    categories_path: Path = Field(
        default=BUNDLED_CATEGORIES_PATH,
        description="JSON file with category and parameter definitions",
    )
    default_page_limit: int = Field(default=20, ge=1, le=100)
    max_page_limit: int = Field(default=100, ge=1, le=1000)

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(default=8000, description="Server port", ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level used by the server entry point",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the database directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.database_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance, loaded from SPECGEN_* variables and .env.
config = SpecgenConfig()
