"""FastAPI app for bulk job imports: upload, status, cancel, retry, delete and template.

Imports run as background tasks inside this process; clients poll
``GET /bulk-import/{id}`` for progress.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .config import settings
from .db import AsyncSessionMaker, get_session
from .import_state import InvalidTransition
from .lifecycle import (
    DeleteResult,
    ImportNotFound,
    ImportOptions,
    ImportRunner,
    cancel_import,
    create_import,
    delete_all_imports,
    delete_import,
    get_import,
    list_imports,
    retry_import,
    scheduler_loop,
)
from .logging_config import setup_logging
from .parsers import ParseError
from .storage import UploadRejected
from .template import build_template

logger = logging.getLogger(__name__)


# Pydantic response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class ImportJobResponse(BaseModel):
    """Status payload of one bulk import."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    import_name: str
    import_type: str
    original_filename: str | None = None
    file_size: int | None = None
    status: str
    total_records: int
    processed_records: int
    successful_imports: int
    failed_imports: int
    skipped_records: int
    progress: float
    error_log: list[dict[str, Any]] = Field(default_factory=list)
    success_log: list[dict[str, Any]] = Field(default_factory=list)
    mapping_config: dict[str, Any] = Field(default_factory=dict)
    validation_rules: dict[str, Any] = Field(default_factory=dict)
    default_values: dict[str, Any] = Field(default_factory=dict)
    is_scheduled: bool
    scheduled_at: datetime | None = None
    notification_email: str | None = None
    created_by: int
    company_id: int | None = None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


class ImportListResponse(BaseModel):
    """Paginated import list."""
    items: list[ImportJobResponse]
    total: int
    page: int
    limit: int
    pages: int


class DeleteResponse(BaseModel):
    """Delete outcome."""
    status: str
    message: str
    deleted_imports: int
    deleted_jobs: int
    deleted_files: int
    skipped_imports: list[int] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")
    runner = ImportRunner(AsyncSessionMaker)
    app.state.runner = runner
    scheduler = None
    if settings.imports.scheduler_enabled:
        scheduler = asyncio.create_task(scheduler_loop(runner, settings.imports.scheduler_interval_seconds))

    yield

    # Shutdown
    logger.info("Application shutting down")
    if scheduler is not None:
        scheduler.cancel()
        await asyncio.gather(scheduler, return_exceptions=True)
    await runner.shutdown()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Bulk job-posting import from CSV, Excel and JSON files",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=str(exc)).model_dump())


# Exception handlers
@app.exception_handler(ParseError)
async def parse_error_handler(request, exc: ParseError):
    """Handle unreadable import files and unknown import types."""
    logger.error(f"Parse error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "parse_error", exc)


@app.exception_handler(UploadRejected)
async def upload_rejected_handler(request, exc: UploadRejected):
    logger.warning(f"Upload rejected: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "upload_rejected", exc)


@app.exception_handler(ImportNotFound)
async def not_found_handler(request, exc: ImportNotFound):
    return _error(status.HTTP_404_NOT_FOUND, "not_found", exc)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request, exc: InvalidTransition):
    logger.warning(f"Rejected state change: {exc}")
    return _error(status.HTTP_409_CONFLICT, "invalid_transition", exc)


# Dependencies
async def get_current_user(
    x_user_id: int | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> models.User:
    """Caller identity from the ``X-User-Id`` header."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = await session.get(models.User, x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def get_runner(request: Request) -> ImportRunner:
    return request.app.state.runner


def _json_form(value: str | None, name: str) -> dict[str, Any]:
    """Decode a JSON-object form field; malformed input falls back to ``{}``."""
    if not value:
        return {}
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed JSON in {name}")
        return {}
    if not isinstance(decoded, dict):
        logger.warning(f"Ignoring non-object JSON in {name}")
        return {}
    return decoded


def _parse_schedule(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"scheduled_at is not an ISO 8601 datetime: {value!r}",
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _delete_response(result: DeleteResult, delete_jobs: bool) -> DeleteResponse:
    if result.deleted_imports == 0 and not result.skipped_imports:
        message = "No bulk imports found to delete"
    elif delete_jobs:
        message = "Bulk import and associated jobs deleted successfully"
    else:
        message = "Bulk import deleted successfully"
    return DeleteResponse(
        status="success",
        message=message,
        deleted_imports=result.deleted_imports,
        deleted_jobs=result.deleted_jobs,
        deleted_files=result.deleted_files,
        skipped_imports=result.skipped_imports,
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "imports": "/bulk-import",
            "import_status": "/bulk-import/{import_id}",
            "cancel": "/bulk-import/{import_id}/cancel",
            "retry": "/bulk-import/{import_id}/retry",
            "template": "/bulk-import/template/{csv|xlsx}",
            "docs": "/docs",
        },
    }


@app.get("/bulk-import/health", response_model=HealthResponse)
async def bulk_import_health() -> HealthResponse:
    """Health check for the import service."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/bulk-import/template/{kind}")
async def download_template(kind: str) -> Response:
    """Download the import template with example rows.

    Args:
        kind: ``csv`` or ``xlsx`` (``xls`` is served as XLSX)

    Returns:
        The template file as an attachment
    """
    if kind.lower() not in ("csv", "xlsx", "xls"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template type must be csv or xlsx")
    template = build_template(kind)
    return Response(
        content=template.content,
        media_type=template.media_type,
        headers={"Content-Disposition": f'attachment; filename="{template.filename}"'},
    )


@app.get("/bulk-import", response_model=ImportListResponse)
async def list_bulk_imports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    import_type: str | None = Query(default=None),
    user: models.User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ImportListResponse:
    """List the caller's company imports, newest first."""
    items, total = await list_imports(
        session, user, page=page, limit=limit, status=status_filter, import_type=import_type
    )
    return ImportListResponse(
        items=[ImportJobResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=(total + limit - 1) // limit,
    )


@app.post(
    "/bulk-import",
    response_model=ImportJobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bulk_import(
    file: UploadFile = File(..., description="Import file (CSV, Excel or JSON)"),
    import_name: str | None = Form(default=None),
    import_type: str | None = Form(default=None),
    mapping_config: str | None = Form(default=None),
    validation_rules: str | None = Form(default=None),
    default_values: str | None = Form(default=None),
    is_scheduled: bool = Form(default=False),
    scheduled_at: str | None = Form(default=None),
    notification_email: str | None = Form(default=None),
    user: models.User = Depends(get_current_user),
    runner: ImportRunner = Depends(get_runner),
    session: AsyncSession = Depends(get_session),
) -> ImportJobResponse:
    """Upload a file and start a bulk import.

    The import runs in the background unless it is scheduled for later.

    Args:
        file: Uploaded import file
        import_name: Display name (defaults to the file name)
        import_type: csv, xlsx, xls, json or excel (detected from the file name when omitted)
        mapping_config: JSON object of ``{sourceColumn: targetField}`` renames
        validation_rules: JSON object of extra validation rules
        default_values: JSON object of values for blank columns
        is_scheduled: Whether to wait for ``scheduled_at``
        scheduled_at: ISO 8601 start time
        notification_email: Address to notify on completion
        user: Caller (injected)
        runner: Background import runner (injected)
        session: Database session (injected)

    Returns:
        ImportJobResponse of the new ``pending`` import

    Raises:
        HTTPException: For missing file names or unexpected errors
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    logger.info(f"Received bulk import upload: {file.filename}")
    options = ImportOptions(
        import_name=import_name,
        import_type=import_type,
        mapping_config=_json_form(mapping_config, "mapping_config"),
        validation_rules=_json_form(validation_rules, "validation_rules"),
        default_values=_json_form(default_values, "default_values"),
        is_scheduled=is_scheduled,
        scheduled_at=_parse_schedule(scheduled_at),
        notification_email=notification_email or None,
    )

    try:
        content = await file.read()
        import_job = await create_import(
            session, runner, user, content=content, filename=file.filename, options=options
        )
        return ImportJobResponse.model_validate(import_job)
    except (ParseError, UploadRejected):
        # Re-raise to be caught by exception handlers
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating bulk import: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {str(e)}",
        )
    finally:
        await file.close()


@app.get("/bulk-import/{import_id}", response_model=ImportJobResponse)
async def get_bulk_import(
    import_id: int,
    user: models.User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ImportJobResponse:
    """Counters, state and logs of one import."""
    return ImportJobResponse.model_validate(await get_import(session, user, import_id))


@app.post("/bulk-import/{import_id}/cancel", response_model=ImportJobResponse)
async def cancel_bulk_import(
    import_id: int,
    user: models.User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ImportJobResponse:
    """Cancel a pending or running import; a running one stops before its next row."""
    return ImportJobResponse.model_validate(await cancel_import(session, user, import_id))


@app.post("/bulk-import/{import_id}/retry", response_model=ImportJobResponse)
async def retry_bulk_import(
    import_id: int,
    user: models.User = Depends(get_current_user),
    runner: ImportRunner = Depends(get_runner),
    session: AsyncSession = Depends(get_session),
) -> ImportJobResponse:
    """Re-run a failed import from scratch."""
    return ImportJobResponse.model_validate(await retry_import(session, runner, user, import_id))


@app.delete("/bulk-import/{import_id}", response_model=DeleteResponse)
async def delete_bulk_import(
    import_id: int,
    delete_jobs: bool = Query(default=False),
    user: models.User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> DeleteResponse:
    """Delete one import and its file; ``delete_jobs`` also removes its postings."""
    result = await delete_import(session, user, import_id, delete_jobs=delete_jobs)
    return _delete_response(result, delete_jobs)


@app.delete("/bulk-import", response_model=DeleteResponse)
async def delete_bulk_imports(
    delete_jobs: bool = Query(default=False),
    user: models.User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> DeleteResponse:
    """Delete every import of the caller's company."""
    result = await delete_all_imports(session, user, delete_jobs=delete_jobs)
    return _delete_response(result, delete_jobs)
