"""Build and store postings for imported rows.

Inserts run inside a SAVEPOINT so a failed row never poisons the import's
own transaction. Duplicates are settled by the unique constraint on
(company, title key, location key): an insert that trips it is reported as a
duplicate instead of a failure, which keeps concurrent imports race-free.
"""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import models
from .config import settings
from .dedupe import dedupe_key, find_existing_posting
from .errors import ImportRowError
from .pipelines.normalization import NormalizedRecord
from .resolver import Resolution

logger = logging.getLogger(__name__)


class PersistenceError(ImportRowError):
    """Raised when a posting cannot be stored."""
    pass


@dataclass
class PersistOutcome:
    """Result of one insert attempt."""
    job: models.Job | None = None
    duplicate_of: int | None = None

    @property
    def created(self) -> bool:
        return self.job is not None


def make_slug(title: str) -> str:
    """URL slug from the title plus a random suffix."""
    base = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    base = re.sub(r"[\s-]+", "-", base).strip("-")
    suffix = uuid.uuid4().hex[:10]
    return f"{base[:200]}-{suffix}" if base else f"job-{suffix}"


def build_posting(
    record: NormalizedRecord,
    resolution: Resolution,
    import_job: models.BulkJobImport,
    *,
    now: datetime | None = None,
) -> models.Job:
    """Map a normalized, owner-resolved record onto a new ``Job`` row."""
    now = now or datetime.utcnow()
    valid_till = record.valid_till or now + timedelta(days=settings.imports.default_valid_days)

    return models.Job(
        title=record.title,
        title_key=dedupe_key(record.title),
        slug=make_slug(record.title),
        description=record.description,
        location=record.location,
        location_key=dedupe_key(record.location),
        city=record.city,
        state=record.state,
        country=record.country,
        region=record.region or resolution.region,
        requirements=record.requirements,
        responsibilities=record.responsibilities,
        job_type=record.job_type,
        experience_level=record.experience_level,
        experience=record.experience,
        experience_min=record.experience_min,
        experience_max=record.experience_max,
        salary=record.salary_display,
        salary_min=record.salary_min,
        salary_max=record.salary_max,
        salary_currency=record.salary_currency,
        salary_period=record.salary_period,
        department=record.department,
        category=record.category,
        industry_type=record.industry_type,
        role_category=record.role_category,
        role=record.role,
        employment_type=record.employment_type,
        skills=list(record.skills),
        benefits=list(record.benefits) or None,
        tags=list(record.tags),
        education=record.education,
        remote_work=record.remote_work,
        shift_timing=record.shift_timing,
        is_urgent=record.is_urgent,
        is_featured=record.is_featured,
        is_premium=record.is_premium,
        application_deadline=record.application_deadline,
        valid_till=valid_till,
        published_at=now,
        status="active",
        company_id=resolution.company_id,
        employer_id=resolution.employer_id,
        metadata_=record.posting_metadata(),
    )


@retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(settings.imports.persist_retry_attempts),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    reraise=True,
)
async def _insert_posting(session: AsyncSession, job: models.Job) -> None:
    async with session.begin_nested():
        session.add(job)
        await session.flush()


async def persist_posting(session: AsyncSession, job: models.Job) -> PersistOutcome:
    """Insert ``job``, or report the posting it duplicates.

    Transient operational errors (lock timeouts, dropped connections) are
    retried before giving up.

    Raises:
        PersistenceError: If the insert fails for any reason other than a duplicate
    """
    try:
        await _insert_posting(session, job)
    except IntegrityError as e:
        existing = await find_existing_posting(session, job.company_id, job.title, job.location)
        if existing is not None:
            logger.debug(f"Insert of '{job.title}' hit existing posting {existing}")
            return PersistOutcome(duplicate_of=existing)
        raise PersistenceError(f"Could not save posting: {e.orig}") from e
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not save posting: {e}") from e

    return PersistOutcome(job=job)
