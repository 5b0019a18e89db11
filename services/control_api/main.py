"""redditbg - Control API FastAPI application.

Local HTTP surface over the persistent sets and the image cache. Refreshes
are queued on Huey; this module never fetches or sets backgrounds itself.

Run with:
    uvicorn services.control_api.main:app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from redditbg import __version__
from redditbg.db import init_db
from redditbg.schemas import (
    CacheStatusResponse,
    ErrorResponse,
    RefreshAcceptedResponse,
    SetListResponse,
    SetMemberCreate,
    SetMemberResponse,
    SetMembersResponse,
    SetSummary,
)
from services.control_api.service import (
    ControlError,
    ControlErrorCode,
    add_member,
    cache_status,
    delete_member,
    get_members,
    list_sets,
)

logger = logging.getLogger(__name__)

# --- Database Setup ---

# Module-level session factory (initialized on startup)
_session_factory = None


def get_session_factory():
    """Get the session factory.

    Raises:
        RuntimeError: If session factory not initialized (app lifespan not invoked).
    """
    global _session_factory
    if _session_factory is None:
        raise RuntimeError("Session factory not initialized. App lifespan not invoked?")
    return _session_factory


def get_db_session():
    """Dependency that provides a database session."""
    SessionFactory = get_session_factory()
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


# --- Lifespan ---


def _cleanup_orphan_temp_files_safe() -> None:
    """Remove temp files left in the image cache by interrupted writes.

    Best-effort: errors are logged, never raised.
    """
    from redditbg.utils import paths
    from redditbg.utils.atomic_io import cleanup_orphan_temp_files

    try:
        if paths.IMAGES_DIR.exists():
            cleaned = cleanup_orphan_temp_files(paths.IMAGES_DIR)
            if cleaned > 0:
                logger.info("Startup cleanup: removed %d orphan temp files", cleaned)
    except Exception:
        logger.warning("Startup cleanup failed (non-fatal)", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Initializes the database on startup and cleans up orphan temp files.
    """
    global _session_factory
    engine, _session_factory = init_db()

    _cleanup_orphan_temp_files_safe()

    yield
    engine.dispose()


# --- FastAPI App ---


app = FastAPI(
    title="redditbg - Control API",
    description="Persistent sets, image cache status and refresh queueing.",
    version=__version__,
    lifespan=lifespan,
)


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - DUPLICATE_MEMBER -> 409
    - MEMBER_NOT_FOUND -> 404
    - MISSING_FIELD -> 422
    - anything else -> 500
    """
    if error_code == ControlErrorCode.DUPLICATE_MEMBER:
        return 409
    if error_code == ControlErrorCode.MEMBER_NOT_FOUND:
        return 404
    if error_code == ControlErrorCode.MISSING_FIELD:
        return 422
    return 500


def make_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=error_code_to_status(error_code),
        content=ErrorResponse(
            error_code=error_code,
            error_message=error_message,
        ).model_dump(),
    )


# --- Endpoints ---


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


@app.get("/v1/sets", response_model=SetListResponse, summary="List sets")
def list_all_sets(session: Annotated[Session, Depends(get_db_session)]):
    """List every set name with its member count."""
    return SetListResponse(sets=[SetSummary(name=name, count=count) for name, count in list_sets(session)])


@app.get("/v1/sets/{name}", response_model=SetMembersResponse, summary="List set members")
def list_members(name: str, session: Annotated[Session, Depends(get_db_session)]):
    """List members of a set, oldest first. Unknown sets are empty."""
    members = get_members(session, name)
    return SetMembersResponse(
        name=name,
        members=[SetMemberResponse.model_validate(m) for m in members],
    )


@app.post(
    "/v1/sets/{name}",
    response_model=SetMemberResponse,
    status_code=201,
    responses={
        409: {"model": ErrorResponse, "description": "URL already in the set"},
        500: {"model": ErrorResponse, "description": "Insert failed"},
    },
    summary="Add a URL to a set",
)
def add_set_member(
    name: str,
    request: SetMemberCreate,
    session: Annotated[Session, Depends(get_db_session)],
):
    """Add a URL to a set. Each (set, URL) pair can exist once."""
    try:
        entry = add_member(session, name, request.url)
        return SetMemberResponse.model_validate(entry)
    except ControlError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error adding %s to set %s", request.url, name)
        return make_error_response(
            ControlErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred while adding the member",
        )


@app.delete(
    "/v1/sets/{name}",
    status_code=204,
    responses={404: {"model": ErrorResponse, "description": "URL not in the set"}},
    summary="Remove a URL from a set",
)
def remove_member(
    name: str,
    url: Annotated[str, Query(min_length=1, description="URL to remove")],
    session: Annotated[Session, Depends(get_db_session)],
):
    """Remove a URL from a set."""
    try:
        delete_member(session, name, url)
    except ControlError as e:
        return make_error_response(e.error_code, e.message)
    return Response(status_code=204)


@app.get("/v1/cache", response_model=CacheStatusResponse, summary="Image cache status")
def get_cache_status():
    """Report how many images are cached and how many a refresh would fetch."""
    status = cache_status()
    return CacheStatusResponse(cached=status.cached, max_cached=status.max_cached, need=status.need)


@app.post(
    "/v1/refresh",
    response_model=RefreshAcceptedResponse,
    status_code=202,
    summary="Queue a background refresh",
)
def queue_refresh():
    """Queue a refresh on the task queue.

    Non-blocking: the consumer runs it when it is up.
    """
    from redditbg.huey_app import enqueue_refresh

    try:
        enqueue_refresh()
    except Exception:
        logger.exception("Failed to enqueue refresh")
        return make_error_response(ControlErrorCode.INTERNAL_ERROR, "Failed to queue refresh")
    return RefreshAcceptedResponse()


# --- For testing: allow overriding session factory ---


def override_session_factory(factory):
    """Override the session factory for testing."""
    global _session_factory
    _session_factory = factory
