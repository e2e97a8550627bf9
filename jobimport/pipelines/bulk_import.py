"""Run one bulk import from its stored file to a terminal state.

Per row: normalize -> validate -> resolve owner -> duplicate check -> persist,
then counters are updated and committed. Row-level problems are recorded on
the import and never abort the run; anything escaping the row boundary marks
the import ``failed``.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobimport import models
from jobimport.dedupe import find_existing_posting
from jobimport.errors import ImportRowError
from jobimport.import_state import ImportJobRecord, ImportStatus, fatal_log, transition
from jobimport.parsers import parse_import_file
from jobimport.persister import build_posting, persist_posting
from jobimport.pipelines.normalization import apply_ownership, normalize_record
from jobimport.resolver import resolve_owner
from jobimport.rules import RuleEngine
from jobimport.storage import read_stored_file

logger = logging.getLogger(__name__)


class ImportAborted(Exception):
    """Raised when a run cannot continue past its setup."""
    pass


async def process_row(
    session: AsyncSession,
    import_job: models.BulkJobImport,
    raw: Any,
    engine: RuleEngine,
) -> tuple[models.Job | None, str]:
    """Take one raw row through the pipeline.

    Returns:
        (job, title): ``job`` is None when the row duplicates an existing posting

    Raises:
        ImportRowError: If the row fails normalization, validation, owner
            resolution or persistence
    """
    record = normalize_record(raw, mapping=import_job.mapping_config, defaults=import_job.default_values)
    engine.check(record)

    resolution = await resolve_owner(session, import_job)
    record = apply_ownership(record, resolution)

    existing = await find_existing_posting(session, resolution.company_id, record.title, record.location)
    if existing is not None:
        logger.debug(f"Row '{record.title}' duplicates posting {existing}")
        return None, record.title

    outcome = await persist_posting(session, build_posting(record, resolution, import_job))
    return outcome.job, record.title


async def _is_cancelled(session: AsyncSession, import_job: models.BulkJobImport) -> bool:
    await session.refresh(import_job, attribute_names=["status"])
    return import_job.status == ImportStatus.CANCELLED.value


async def _load_rows(import_job: models.BulkJobImport) -> list[Any]:
    if not import_job.file_path:
        raise ImportAborted("Import file not found")
    try:
        content = await read_stored_file(import_job.file_path)
    except FileNotFoundError as e:
        raise ImportAborted("Import file not found") from e
    return await asyncio.to_thread(parse_import_file, content, import_job.import_type)


async def _run(import_id: int, session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        started = await transition(
            session,
            import_id,
            from_states=[ImportStatus.PENDING],
            to=ImportStatus.PROCESSING,
            started_at=datetime.utcnow(),
        )
        await session.commit()
        if not started:
            logger.info(f"Import {import_id} is not pending; nothing to run")
            return

        import_job = await session.get(models.BulkJobImport, import_id, populate_existing=True)
        if import_job is None:
            raise ImportAborted(f"Import {import_id} not found")

        state = ImportJobRecord(import_job)
        rows = await _load_rows(import_job)
        engine = RuleEngine.from_overrides(import_job.validation_rules)
        state.begin(len(rows))
        await session.commit()
        logger.info(f"Import {import_id}: processing {len(rows)} rows from {import_job.original_filename}")

        for index, raw in enumerate(rows):
            if await _is_cancelled(session, import_job):
                logger.info(f"Import {import_id} cancelled after {import_job.processed_records} rows")
                return

            row_number = index + 1
            try:
                job, title = await process_row(session, import_job, raw, engine)
            except ImportRowError as e:
                logger.warning(f"Import {import_id} row {row_number} failed: {e}")
                state.record_failure(raw, str(e), row_number, e.details)
            except SQLAlchemyError as e:
                logger.warning(f"Import {import_id} row {row_number} hit a database error: {e}")
                await session.rollback()
                await session.refresh(import_job)
                state.record_failure(raw, f"Database error: {e}", row_number)
            else:
                if job is None:
                    state.record_skip()
                else:
                    state.record_success(job.id, title, row_number)
            await session.commit()

        finished = await transition(
            session,
            import_id,
            from_states=[ImportStatus.PROCESSING],
            to=ImportStatus.COMPLETED,
            progress=Decimal("100"),
            completed_at=datetime.utcnow(),
        )
        await session.commit()
        if not finished:
            logger.info(f"Import {import_id} left processing before completion; status kept")
            return

        logger.info(f"Import {import_id} completed: {state.snapshot()}")
        if import_job.notification_email:
            logger.info(f"Import {import_id}: completion notice due for {import_job.notification_email}")


async def _mark_failed(import_id: int, session_factory: async_sessionmaker[AsyncSession], message: str) -> None:
    async with session_factory() as session:
        await transition(
            session,
            import_id,
            from_states=[ImportStatus.PENDING, ImportStatus.PROCESSING],
            to=ImportStatus.FAILED,
            error_log=fatal_log(message),
            completed_at=datetime.utcnow(),
        )
        await session.commit()


async def run_import(import_id: int, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Process an import to completion, cancellation or failure.

    Safe to call for an import that is no longer ``pending``: the conditional
    start makes it a no-op. Cancellation is checked before every row; the loop
    stops with the counters as they were.

    Args:
        import_id: BulkJobImport id
        session_factory: Session factory; the run opens its own sessions
    """
    try:
        await _run(import_id, session_factory)
    except Exception as e:
        logger.error(f"Import {import_id} failed: {e}", exc_info=True)
        await _mark_failed(import_id, session_factory, str(e))
