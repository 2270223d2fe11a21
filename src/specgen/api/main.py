"""SpecGen - FastAPI Application.

This module defines the application factory, every REST route, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Components** (content store, providers, parameter source and the
  generation orchestrator) are built in the lifespan handler and kept on
  ``app.state``.  :func:`create_app` accepts ready-made components so
  tests can inject doubles.
- **Routes** are plain ``def`` functions: store and provider calls block,
  so FastAPI runs them in its threadpool.
- **Errors** from the core are mapped to HTTP responses by exception
  handlers registered in :func:`create_app`.

Endpoints
---------
========  ================================  ==================================
Method    Path                              Purpose
========  ================================  ==================================
GET       ``/api/health``                   Service and store status
POST      ``/api/generate``                 Generate and save new content
GET       ``/api/content``                  Paginated full records
GET       ``/api/content/summary``          Paginated summaries (no payloads)
GET       ``/api/content/years``            Setting years in use
GET       ``/api/content/year/{year}``      Full records for one year
GET       ``/api/content/{id}``             Single record
GET       ``/api/content/{id}/image``       Raw image bytes
GET       ``/api/content/{id}/thumbnail``   150x150 PNG thumbnail
PUT       ``/api/content/{id}``             Edit title, text or year
DELETE    ``/api/content/{id}``             Delete a record
========  ================================  ==================================

Usage
-----
CLI (installed entry point)::

    specgen

Direct invocation::

    python -m specgen.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from specgen import __version__
from specgen.api.models import (
    ContentUpdateRequest,
    GenerateRequest,
    page_to_dict,
    record_to_dict,
)
from specgen.core.config import SpecgenConfig, config
from specgen.core.content_store import ContentStore
from specgen.core.errors import (
    ContentNotFoundError,
    ImageNotFoundError,
    ProviderError,
    StorageError,
    UnsupportedModeError,
)
from specgen.core.models import ContentFilter, ContentType, ImageBlob
from specgen.core.orchestrator import GenerationOrchestrator, GenerationRequest
from specgen.core.parameters import JsonParameterSource, ParameterSource
from specgen.core.providers import (
    ImageGenerationProvider,
    OpenAIProvider,
    TextGenerationProvider,
)
from specgen.core.story_parser import MAX_SETTING_YEAR, MIN_SETTING_YEAR

logger = logging.getLogger(__name__)

IMAGE_CACHE_CONTROL = "public, max-age=86400"

# ---------------------------------------------------------------------------
# Dependencies: components live on app.state.
# ---------------------------------------------------------------------------


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.orchestrator


def _image_response(image: ImageBlob, etag: str) -> Response:
    return Response(
        content=image.data,
        media_type=image.media_type,
        headers={"Cache-Control": IMAGE_CACHE_CONTROL, "ETag": f'"{etag}"'},
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.get("/health")
def health(store: ContentStore = Depends(get_store)) -> dict:
    """Return service status, version, and the number of stored records."""
    return {"status": "ok", "version": __version__, "content_count": store.count()}


@router.post("/generate", status_code=201)
def generate_content(
    req: GenerateRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Generate fiction, an image, or both, and save the result.

    Args:
        req: Validated :class:`GenerateRequest` payload.

    Returns:
        The saved record (201).

    Raises:
        HTTPException: 400 for an unsupported content type, 502 when a
            provider call fails.
    """
    record = orchestrator.generate(
        GenerationRequest(
            parameter_values=req.parameter_values,
            content_type=req.content_type,
            year=req.year,
            title=req.title,
        )
    )
    return record_to_dict(record)


@router.get("/content")
def list_content(
    content_type: ContentType | None = Query(default=None, alias="type"),
    year: int | None = None,
    page: int = 1,
    limit: int | None = None,
    store: ContentStore = Depends(get_store),
) -> dict:
    """Return a page of full records, newest first.

    Args:
        content_type: Optional ``type`` filter (fiction, image, combined).
        year: Optional setting-year filter.
        page: One-based page; values below 1 are treated as 1.
        limit: Page size, clamped to the configured maximum.

    Returns:
        Dictionary with ``items`` and ``pagination``.
    """
    result = store.list(ContentFilter(content_type=content_type, year=year), page, limit)
    return page_to_dict(result)


@router.get("/content/summary")
def list_content_summary(
    content_type: ContentType | None = Query(default=None, alias="type"),
    year: int | None = None,
    page: int = 1,
    limit: int | None = None,
    store: ContentStore = Depends(get_store),
) -> dict:
    """Same as ``GET /api/content`` without story text or image data.

    Each item carries ``has_image`` instead.
    """
    result = store.list_summary(ContentFilter(content_type=content_type, year=year), page, limit)
    return page_to_dict(result)


@router.get("/content/years")
def list_years(store: ContentStore = Depends(get_store)) -> dict:
    """Return the distinct setting years in ascending order."""
    return {"years": store.distinct_years()}


@router.get("/content/year/{year}")
def list_content_for_year(
    year: int = Path(..., ge=MIN_SETTING_YEAR, le=MAX_SETTING_YEAR),
    page: int = 1,
    limit: int | None = None,
    store: ContentStore = Depends(get_store),
) -> dict:
    """Return full records set in ``year``, newest first."""
    return page_to_dict(store.list(ContentFilter(year=year), page, limit))


@router.get("/content/{content_id}")
def get_content(content_id: str, store: ContentStore = Depends(get_store)) -> dict:
    """Return a single record.

    Raises:
        HTTPException: 404 if the record is not found.
    """
    return record_to_dict(store.get_by_id(content_id))


@router.get("/content/{content_id}/image")
def get_content_image(content_id: str, store: ContentStore = Depends(get_store)) -> Response:
    """Return the raw image bytes of a record.

    Responses are cacheable for a day and tagged with the record id.

    Raises:
        HTTPException: 404 ``Content not found`` when the record does not
            exist, 404 ``Image not found`` when it has no image.
    """
    return _image_response(store.get_image(content_id), content_id)


@router.get("/content/{content_id}/thumbnail")
def get_content_thumbnail(content_id: str, store: ContentStore = Depends(get_store)) -> Response:
    """Return the 150x150 PNG thumbnail of a record's image."""
    return _image_response(store.get_image(content_id, thumbnail=True), f"{content_id}-thumbnail")


@router.put("/content/{content_id}")
def update_content(
    content_id: str,
    req: ContentUpdateRequest,
    store: ContentStore = Depends(get_store),
) -> dict:
    """Apply a partial edit of title, text body or setting year.

    Raises:
        HTTPException: 404 if the record is not found.
    """
    return record_to_dict(store.update(content_id, req.to_fields()))


@router.delete("/content/{content_id}")
def delete_content(content_id: str, store: ContentStore = Depends(get_store)) -> dict:
    """Delete a record and return it.

    Raises:
        HTTPException: 404 if the record is not found.
    """
    record = store.delete(content_id)
    return {
        "message": f"Content '{record.title}' deleted successfully",
        "deleted_content": record_to_dict(record),
    }


# ---------------------------------------------------------------------------
# Error mapping.
# ---------------------------------------------------------------------------


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContentNotFoundError)
    async def content_not_found(request: Request, exc: ContentNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Content not found"})

    @app.exception_handler(ImageNotFoundError)
    async def image_not_found(request: Request, exc: ImageNotFoundError) -> JSONResponse:
        detail = "Thumbnail not found" if exc.variant == "thumbnail" else "Image not found"
        return JSONResponse(status_code=404, content={"detail": detail})

    @app.exception_handler(UnsupportedModeError)
    async def unsupported_mode(request: Request, exc: UnsupportedModeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ProviderError)
    async def provider_failed(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_failed(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Request {request.method} {request.url.path} failed in storage: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal storage error"})


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: SpecgenConfig | None = None,
    *,
    store: ContentStore | None = None,
    text_provider: TextGenerationProvider | None = None,
    image_provider: ImageGenerationProvider | None = None,
    parameter_source: ParameterSource | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Components that are not passed in are created from ``settings`` when
    the application starts.  A store created here is closed on shutdown;
    an injected store is left open for its owner.

    Args:
        settings: Configuration; defaults to the global ``config``.
        store: Content store to use.
        text_provider: Story provider; defaults to :class:`OpenAIProvider`.
        image_provider: Image provider; defaults to :class:`OpenAIProvider`.
        parameter_source: Definitions source; defaults to the categories file.

    Returns:
        The configured application.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # --- Startup -------------------------------------------------------
        owns_store = store is None
        app.state.store = store or ContentStore(
            settings.database_path,
            default_page_limit=settings.default_page_limit,
            max_page_limit=settings.max_page_limit,
            max_text_length=settings.max_text_length,
        )

        openai_provider = None
        if text_provider is None or image_provider is None:
            openai_provider = OpenAIProvider(
                settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.provider_timeout,
            )
            if not settings.openai_api_key:
                logger.warning("No OpenAI API key configured; generation requests will fail.")

        app.state.orchestrator = GenerationOrchestrator(
            app.state.store,
            text_provider or openai_provider,
            image_provider or openai_provider,
            parameter_source or JsonParameterSource(settings.categories_path),
            settings,
        )
        logger.info(f"SpecGen {__version__} ready (database: {app.state.store.db_path})")

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        if owns_store:
            app.state.store.close()

    app = FastAPI(
        title="SpecGen",
        description="Speculative fiction and image generation with indexed content storage.",
        version=__version__,
        lifespan=lifespan,
    )

    # Development frontends are served from other ports.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host, port and log level come from :data:`~specgen.core.config.config`
    (``SPECGEN_SERVER_HOST``, ``SPECGEN_SERVER_PORT``, ``SPECGEN_LOG_LEVEL``).

    This function is registered as the ``specgen`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "specgen.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
