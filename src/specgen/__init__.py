"""SpecGen - speculative fiction and image generation with indexed content storage."""

__version__ = "0.3.0"

from specgen.core.config import SpecgenConfig, config
from specgen.core.content_store import ContentStore
from specgen.core.models import ContentRecord, ContentType
from specgen.core.orchestrator import GenerationOrchestrator, GenerationRequest

__all__ = [
    "ContentRecord",
    "ContentStore",
    "ContentType",
    "GenerationOrchestrator",
    "GenerationRequest",
    "SpecgenConfig",
    "config",
]
