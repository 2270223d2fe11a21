"""Error taxonomy shared by the store, the orchestrator and the HTTP layer.

Parameter selections that fail validation are not errors: they are reported
through :class:`~specgen.core.parameters.ParameterFilterResult` and logged.
"""


class SpecgenError(Exception):
    """Base class for all SpecGen errors."""


class ContentNotFoundError(SpecgenError):
    """The requested content record does not exist."""

    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(f"Content not found: {content_id}")


class ImageNotFoundError(SpecgenError):
    """The record exists but carries no image (or no thumbnail)."""

    def __init__(self, content_id: str, variant: str = "image"):
        self.content_id = content_id
        self.variant = variant
        super().__init__(f"Content {content_id} has no {variant}")


class ProviderError(SpecgenError):
    """A text or image provider call failed or returned an unexpected shape."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class UnsupportedModeError(SpecgenError):
    """The requested content type is outside fiction/image/combined."""


class StorageError(SpecgenError):
    """The content database could not complete a read or write."""
