"""Duplicate detection for imported postings.

A posting is a duplicate when the same company already has one with the same
title and location. Both are compared on casefolded, whitespace-collapsed
keys, which the ``uq_jobs_company_title_location`` constraint also enforces.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .pipelines.normalization import normalize_whitespace


def dedupe_key(text: str) -> str:
    return normalize_whitespace(text).casefold()


async def find_existing_posting(
    session: AsyncSession,
    company_id: int,
    title: str,
    location: str,
) -> int | None:
    """Id of an existing posting with the same company, title and location."""
    query = (
        select(models.Job.id)
        .where(
            models.Job.company_id == company_id,
            models.Job.title_key == dedupe_key(title),
            models.Job.location_key == dedupe_key(location),
        )
        .limit(1)
    )
    result = await session.execute(query)
    return result.scalar_one_or_none()
