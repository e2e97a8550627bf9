"""Resolve the owning user, company and region for imported postings."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .config import settings
from .errors import ResolutionError

logger = logging.getLogger(__name__)


class MissingCompany(ResolutionError):
    """Neither the uploader nor the import names an owning company."""
    pass


class CompanyNotFound(ResolutionError):
    """The resolved company id does not point at a live company."""
    pass


@dataclass(frozen=True)
class Resolution:
    """Owner of the postings created by one import row."""
    user: models.User
    company: models.Company
    region: str

    @property
    def company_id(self) -> int:
        return self.company.id

    @property
    def employer_id(self) -> int:
        return self.user.id


async def resolve_owner(session: AsyncSession, import_job: models.BulkJobImport) -> Resolution:
    """Resolve the owning company and region for an import's postings.

    Company id priority: the uploader's own company association, then the
    company configured on the import. Region: uploader, then company, then
    the configured default.

    Raises:
        ResolutionError: If the uploader no longer exists
        MissingCompany: If no company id can be found
        CompanyNotFound: If the company does not exist or is inactive
    """
    user = await session.get(models.User, import_job.created_by)
    if user is None:
        raise ResolutionError(f"User {import_job.created_by} not found")

    company_id = user.company_id or import_job.company_id
    if not company_id:
        raise MissingCompany(
            "Company ID is required. User must be associated with a company before importing jobs."
        )

    company = await session.get(models.Company, company_id)
    if company is None or not company.is_active:
        raise CompanyNotFound(f"Company {company_id} not found. User must be associated with a valid company.")

    region = user.region or company.region or settings.imports.default_region
    return Resolution(user=user, company=company, region=region)
