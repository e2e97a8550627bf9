"""Create, cancel, retry, delete and read bulk imports.

Runs are fire-and-forget asyncio tasks owned by an ``ImportRunner``; callers
observe outcomes by polling the import's status.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import models
from .config import settings
from .import_state import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    ImportJobRecord,
    ImportStatus,
    InvalidTransition,
    transition,
)
from .parsers import coerce_import_type, detect_import_type
from .pipelines.bulk_import import run_import
from .storage import check_upload, delete_stored_file, save_upload

logger = logging.getLogger(__name__)


class ImportNotFound(Exception):
    """Raised when an import does not exist or belongs to another company."""
    pass


class ImportRunner:
    """Owns the background tasks that process imports."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._tasks: dict[int, asyncio.Task] = {}

    def is_running(self, import_id: int) -> bool:
        task = self._tasks.get(import_id)
        return task is not None and not task.done()

    def spawn(self, import_id: int) -> asyncio.Task:
        """Start processing an import without waiting for it."""
        if self.is_running(import_id):
            return self._tasks[import_id]
        task = asyncio.create_task(run_import(import_id, self.session_factory), name=f"bulk-import-{import_id}")
        self._tasks[import_id] = task
        task.add_done_callback(lambda t: self._finished(import_id, t))
        logger.info(f"Spawned import {import_id}")
        return task

    def _finished(self, import_id: int, task: asyncio.Task) -> None:
        if self._tasks.get(import_id) is task:
            del self._tasks[import_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Import task {import_id} crashed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for every running import to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running imports; they stay ``processing`` until retried."""
        for task in list(self._tasks.values()):
            task.cancel()
        await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
        self._tasks.clear()


@dataclass
class ImportOptions:
    """Caller-supplied configuration of a new import."""
    import_name: str | None = None
    import_type: str | None = None
    mapping_config: dict[str, Any] = field(default_factory=dict)
    validation_rules: dict[str, Any] = field(default_factory=dict)
    default_values: dict[str, Any] = field(default_factory=dict)
    is_scheduled: bool = False
    scheduled_at: datetime | None = None
    notification_email: str | None = None

    def runs_later(self, now: datetime) -> bool:
        return self.is_scheduled and self.scheduled_at is not None and self.scheduled_at > now


@dataclass
class DeleteResult:
    deleted_imports: int = 0
    deleted_jobs: int = 0
    deleted_files: int = 0
    skipped_imports: list[int] = field(default_factory=list)


def _owned_by(stmt, user: models.User):
    """Restrict an import query to the caller's company (or own imports without one)."""
    if user.company_id:
        return stmt.where(models.BulkJobImport.company_id == user.company_id)
    return stmt.where(
        models.BulkJobImport.company_id.is_(None),
        models.BulkJobImport.created_by == user.id,
    )


async def create_import(
    session: AsyncSession,
    runner: ImportRunner,
    user: models.User,
    *,
    content: bytes,
    filename: str,
    options: ImportOptions,
) -> models.BulkJobImport:
    """Store the upload, insert a ``pending`` import and start it unless scheduled.

    Raises:
        UploadRejected: If the file type or size is not allowed
        UnsupportedFormat: If the declared import type is unknown
    """
    check_upload(filename, len(content))
    if options.import_type:
        import_type = coerce_import_type(options.import_type)
    else:
        import_type = detect_import_type(filename)

    stored_name = await save_upload(content, filename)
    import_job = models.BulkJobImport(
        import_name=options.import_name or filename,
        import_type=import_type.value,
        file_path=stored_name,
        original_filename=filename,
        file_size=len(content),
        status=ImportStatus.PENDING.value,
        mapping_config=options.mapping_config or {},
        validation_rules=options.validation_rules or {},
        default_values=options.default_values or {},
        is_scheduled=options.is_scheduled,
        scheduled_at=options.scheduled_at,
        notification_email=options.notification_email,
        created_by=user.id,
        company_id=user.company_id,
    )
    session.add(import_job)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        await delete_stored_file(stored_name)
        raise
    logger.info(f"Created import {import_job.id} ({import_type.value}) for user {user.id}")

    if options.runs_later(datetime.utcnow()):
        logger.info(f"Import {import_job.id} scheduled for {options.scheduled_at.isoformat()}")
    else:
        runner.spawn(import_job.id)
    return import_job


async def get_import(session: AsyncSession, user: models.User, import_id: int) -> models.BulkJobImport:
    """Raises ImportNotFound if the import is missing or not visible to ``user``."""
    stmt = _owned_by(select(models.BulkJobImport).where(models.BulkJobImport.id == import_id), user)
    import_job = (await session.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
    if import_job is None:
        raise ImportNotFound(f"Bulk import {import_id} not found")
    return import_job


async def list_imports(
    session: AsyncSession,
    user: models.User,
    *,
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    import_type: str | None = None,
) -> tuple[list[models.BulkJobImport], int]:
    """Newest imports first.

    Returns:
        (page of imports, total matching count)
    """
    stmt = _owned_by(select(models.BulkJobImport), user)
    if status:
        stmt = stmt.where(models.BulkJobImport.status == status)
    if import_type:
        stmt = stmt.where(models.BulkJobImport.import_type == import_type)

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    page = max(page, 1)
    rows = await session.execute(
        stmt.order_by(models.BulkJobImport.created_at.desc(), models.BulkJobImport.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(rows.scalars().all()), total


async def cancel_import(session: AsyncSession, user: models.User, import_id: int) -> models.BulkJobImport:
    """Cancel a pending or processing import.

    Cancelling twice is a no-op. A running import stops before its next row.

    Raises:
        ImportNotFound: If the import is not visible to ``user``
        InvalidTransition: If the import already completed or failed
    """
    import_job = await get_import(session, user, import_id)
    if import_job.status == ImportStatus.CANCELLED.value:
        return import_job
    if ImportStatus(import_job.status) in TERMINAL_STATES:
        raise InvalidTransition(f"Cannot cancel a {import_job.status} import")

    changed = await transition(
        session,
        import_id,
        from_states=CANCELLABLE_STATES,
        to=ImportStatus.CANCELLED,
        cancelled_at=datetime.utcnow(),
    )
    await session.commit()
    await session.refresh(import_job)
    if not changed and import_job.status != ImportStatus.CANCELLED.value:
        raise InvalidTransition(f"Cannot cancel a {import_job.status} import")
    return import_job


async def retry_import(
    session: AsyncSession,
    runner: ImportRunner,
    user: models.User,
    import_id: int,
) -> models.BulkJobImport:
    """Reset a failed import's counters and logs, then run it again.

    Raises:
        ImportNotFound: If the import is not visible to ``user``
        InvalidTransition: If the import is not ``failed``
    """
    import_job = await get_import(session, user, import_id)
    ImportJobRecord(import_job).reset_for_retry()
    await session.commit()
    logger.info(f"Retrying import {import_id}")
    runner.spawn(import_id)
    return import_job


def _posting_window(import_job: models.BulkJobImport) -> tuple[datetime, datetime]:
    start = import_job.created_at
    end = import_job.completed_at or import_job.cancelled_at or datetime.utcnow()
    return start, end + timedelta(hours=settings.imports.delete_window_hours)


async def delete_import_postings(session: AsyncSession, import_job: models.BulkJobImport) -> int:
    """Delete postings attributed to an import.

    Postings are not linked to their import row; they are matched by owning
    company, creator and a window from the import's creation to its end plus
    a grace period, capped at the configured limit.
    """
    start, end = _posting_window(import_job)
    stmt = select(models.Job.id).where(
        models.Job.employer_id == import_job.created_by,
        models.Job.created_at >= start,
        models.Job.created_at <= end,
    )
    if import_job.company_id is not None:
        stmt = stmt.where(models.Job.company_id == import_job.company_id)
    ids = list((await session.execute(stmt.limit(settings.imports.delete_limit))).scalars().all())
    if ids:
        await session.execute(delete(models.Job).where(models.Job.id.in_(ids)))
        logger.info(f"Deleted {len(ids)} postings attributed to import {import_job.id}")
    return len(ids)


async def _delete_one(session: AsyncSession, import_job: models.BulkJobImport, delete_jobs: bool,
                      result: DeleteResult) -> str | None:
    """Delete the row (and postings); returns the stored file to remove after commit."""
    if delete_jobs:
        result.deleted_jobs += await delete_import_postings(session, import_job)
    await session.delete(import_job)
    result.deleted_imports += 1
    return import_job.file_path


async def _remove_files(file_refs: list[str | None], result: DeleteResult) -> None:
    for file_ref in file_refs:
        if await delete_stored_file(file_ref):
            result.deleted_files += 1


async def delete_import(
    session: AsyncSession,
    user: models.User,
    import_id: int,
    *,
    delete_jobs: bool = False,
) -> DeleteResult:
    """Delete an import and its stored file, optionally with its postings.

    Raises:
        ImportNotFound: If the import is not visible to ``user``
        InvalidTransition: If the import is still processing
    """
    import_job = await get_import(session, user, import_id)
    if import_job.status == ImportStatus.PROCESSING.value:
        raise InvalidTransition("Cancel the import before deleting it")

    result = DeleteResult()
    file_ref = await _delete_one(session, import_job, delete_jobs, result)
    await session.commit()
    await _remove_files([file_ref], result)
    logger.info(f"Deleted import {import_id} (jobs={result.deleted_jobs})")
    return result


async def delete_all_imports(session: AsyncSession, user: models.User, *, delete_jobs: bool = False) -> DeleteResult:
    """Delete every import visible to ``user``; processing imports are left alone."""
    rows = await session.execute(_owned_by(select(models.BulkJobImport), user))
    result = DeleteResult()
    file_refs = []
    for import_job in rows.scalars().all():
        if import_job.status == ImportStatus.PROCESSING.value:
            result.skipped_imports.append(import_job.id)
            continue
        file_refs.append(await _delete_one(session, import_job, delete_jobs, result))
    await session.commit()
    await _remove_files(file_refs, result)
    logger.info(
        f"Deleted {result.deleted_imports} imports for user {user.id} "
        f"(jobs={result.deleted_jobs}, files={result.deleted_files}, skipped={len(result.skipped_imports)})"
    )
    return result


async def start_due_imports(runner: ImportRunner, *, now: datetime | None = None) -> list[int]:
    """Spawn scheduled imports whose time has come."""
    now = now or datetime.utcnow()
    async with runner.session_factory() as session:
        rows = await session.execute(
            select(models.BulkJobImport.id).where(
                models.BulkJobImport.status == ImportStatus.PENDING.value,
                models.BulkJobImport.is_scheduled.is_(True),
                models.BulkJobImport.scheduled_at <= now,
            )
        )
        due = [import_id for import_id in rows.scalars().all() if not runner.is_running(import_id)]
    for import_id in due:
        runner.spawn(import_id)
    if due:
        logger.info(f"Started {len(due)} scheduled imports")
    return due


async def scheduler_loop(runner: ImportRunner, interval: float) -> None:
    """Poll for due scheduled imports until cancelled."""
    logger.info(f"Import scheduler polling every {interval}s")
    while True:
        try:
            await start_due_imports(runner)
        except Exception as e:
            logger.error(f"Scheduled import poll failed: {e}", exc_info=True)
        await asyncio.sleep(interval)
