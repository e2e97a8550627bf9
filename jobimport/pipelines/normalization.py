"""Row normalization for imported job postings.

Turns one raw spreadsheet/JSON row into a ``NormalizedRecord``: resolves
column aliases, splits delimited lists, parses booleans, integers and dates,
and disambiguates salary encodings. Anything needing a database lookup is
applied afterwards by ``apply_ownership``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, DecimalException
from typing import TYPE_CHECKING, Any, Mapping

import pandas as pd

from jobimport.config import settings
from jobimport.errors import ImportRowError, ResolutionError
from jobimport.salary import InvalidSalary, normalize_salary, to_decimal

if TYPE_CHECKING:
    from jobimport.resolver import Resolution

logger = logging.getLogger(__name__)

POSTING_COMPANY = "company"
POSTING_CONSULTANCY = "consultancy"

EXPERIENCE_LEVELS = {
    "fresher": "entry",
    "entry": "entry",
    "junior": "junior",
    "mid": "mid",
    "senior": "senior",
}

EMPLOYMENT_TYPES = {
    "full-time": "Full Time, Permanent",
    "part-time": "Part Time, Permanent",
    "contract": "Full Time, Contract",
}

# Import columns whose attribute name is not the snake_case spelling
_COLUMN_ATTRS = {
    "type": "job_type",
    "salary": "salary_display",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# 32-bit INTEGER column bounds
INT_COLUMN_MIN = -(2**31)
INT_COLUMN_MAX = 2**31 - 1


class NormalizationError(ImportRowError):
    """Raised when a row value cannot be coerced to its field type."""
    pass


@dataclass(frozen=True)
class NormalizedRecord:
    """Typed view of one import row, ready for validation and persistence."""
    title: str
    description: str
    location: str
    city: str = ""
    state: str = ""
    country: str = ""
    region: str = ""
    requirements: str = ""
    responsibilities: str = ""

    job_type: str = "full-time"
    experience_level: str = "entry"
    experience: str = "fresher"
    experience_min: int | None = None
    experience_max: int | None = None
    employment_type: str = ""
    role: str = ""
    role_category: str = ""
    department: str = ""
    category: str = ""
    industry_type: str = ""

    salary_min: Decimal | None = None
    salary_max: Decimal | None = None
    salary_display: str = ""
    salary_currency: str = "INR"
    salary_period: str = "yearly"

    skills: list[str] = field(default_factory=list)
    benefits: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    education: str = ""
    remote_work: str = "on-site"
    shift_timing: str = "day"

    is_urgent: bool = False
    is_featured: bool = False
    is_premium: bool = False
    valid_till: datetime | None = None
    application_deadline: datetime | None = None

    posting_type: str = POSTING_COMPANY
    company_name: str = ""
    hiring_company_name: str = ""
    hiring_company_industry: str = ""
    hiring_company_description: str = ""
    show_hiring_company_details: bool = False
    # Only ever set from the resolved owning company, never from row data
    consultancy_name: str | None = None

    def posting_metadata(self) -> dict[str, Any]:
        """Metadata block stored on the posting."""
        metadata: dict[str, Any] = {
            "postingType": self.posting_type,
            "companyName": self.company_name or None,
        }
        if self.posting_type == POSTING_CONSULTANCY:
            metadata.update({
                "consultancyName": self.consultancy_name,
                "hiringCompany": {
                    "name": self.hiring_company_name or None,
                    "industry": self.hiring_company_industry or None,
                    "description": self.hiring_company_description or None,
                },
                "showHiringCompanyDetails": self.show_hiring_company_details,
            })
        return metadata


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def column_attribute(column: str) -> str:
    """Map an import column name (``salaryMin``) to its record attribute."""
    if column in _COLUMN_ATTRS:
        return _COLUMN_ATTRS[column]
    return _CAMEL_BOUNDARY.sub("_", column).lower()


def field_value(record: NormalizedRecord, column: str) -> Any:
    """Read a record value by import column name; unknown columns read as None."""
    return getattr(record, column_attribute(column), None)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, float) and value != value:  # NaN
        return False
    return True


def _pick(row: Mapping[str, Any], column: str) -> Any:
    """First present value under the camelCase column or its snake_case twin."""
    for key in (column, column_attribute(column)):
        value = row.get(key)
        if _present(value):
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def split_list(value: Any) -> list[str]:
    """Comma-delimited text or a list -> trimmed, non-empty strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [text for text in (_text(item) for item in items) if text]


def parse_bool(value: Any) -> bool:
    """True for ``True`` or the text ``"true"`` (any case); False otherwise."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def parse_int(value: Any, column: str) -> int | None:
    if not _present(value):
        return None
    number = None if isinstance(value, bool) else to_decimal(value)
    if number is None:
        raise NormalizationError(f"{column} must be a whole number, got {value!r}")
    # compare before int(): a huge exponent would expand to millions of digits
    if not INT_COLUMN_MIN <= number <= INT_COLUMN_MAX:
        raise NormalizationError(f"{column} is out of range, got {value!r}")
    if number != number.to_integral_value():
        raise NormalizationError(f"{column} must be a whole number, got {value!r}")
    return int(number)


def parse_datetime(value: Any, column: str) -> datetime | None:
    """Parse a date/datetime cell into a naive UTC datetime."""
    if not _present(value):
        return None
    if isinstance(value, datetime):
        parsed = pd.Timestamp(value)
    else:
        try:
            parsed = pd.to_datetime(str(value).strip())
        except (ValueError, TypeError, OverflowError) as e:
            raise NormalizationError(f"{column} is not a valid date: {value!r}") from e
    if pd.isna(parsed):
        return None
    result = parsed.to_pydatetime()
    if result.tzinfo is not None:
        result = result.astimezone(timezone.utc).replace(tzinfo=None)
    return result


def apply_field_mapping(row: Mapping[str, Any], mapping: Mapping[str, str] | None) -> dict[str, Any]:
    """Rename source columns per ``{sourceColumn: targetField}`` overrides."""
    mapped = dict(row)
    for source, target in (mapping or {}).items():
        if source in row and target and source != target:
            mapped[target] = mapped.pop(source)
    return mapped


def apply_defaults(row: Mapping[str, Any], defaults: Mapping[str, Any] | None) -> dict[str, Any]:
    """Fill absent or blank columns from the import's default values."""
    filled = dict(row)
    for column, value in (defaults or {}).items():
        if not _present(_pick(filled, column)):
            filled[column] = value
    return filled


def normalize_record(
    raw: Mapping[str, Any],
    *,
    mapping: Mapping[str, str] | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> NormalizedRecord:
    """Normalize one raw row.

    Args:
        raw: Row as produced by the file parser
        mapping: Field-mapping overrides from the import configuration
        defaults: Default values from the import configuration

    Returns:
        NormalizedRecord (ownership fields not yet applied)

    Raises:
        NormalizationError: If a typed column holds an unusable value
    """
    if not isinstance(raw, Mapping):
        raise NormalizationError("Row is not a key/value record")

    row = apply_defaults(apply_field_mapping(raw, mapping), defaults)

    job_type = _text(_pick(row, "type") or _pick(row, "jobType")) or "full-time"
    experience = _text(_pick(row, "experience"))
    experience_level = _text(_pick(row, "experienceLevel"))
    if not experience_level:
        experience_level = EXPERIENCE_LEVELS.get(experience.lower(), "entry") if experience else "entry"

    education = _pick(row, "education")
    if isinstance(education, (list, tuple)):
        education = ", ".join(_text(item) for item in education)

    try:
        salary = normalize_salary(
            _pick(row, "salary"),
            _pick(row, "salaryMin"),
            _pick(row, "salaryMax"),
        )
    except InvalidSalary as e:
        raise NormalizationError(str(e)) from e
    except DecimalException as e:
        raise NormalizationError(f"salary is out of range: {e!r}") from e

    return NormalizedRecord(
        title=_text(row.get("title")),
        description=_text(row.get("description")),
        location=_text(row.get("location")),
        city=_text(_pick(row, "city")),
        state=_text(_pick(row, "state")),
        country=_text(_pick(row, "country")) or settings.imports.default_country,
        region=_text(_pick(row, "region")).lower(),
        requirements=_text(_pick(row, "requirements")),
        responsibilities=_text(_pick(row, "responsibilities")),
        job_type=job_type,
        experience_level=experience_level,
        experience=experience or "fresher",
        experience_min=parse_int(_pick(row, "experienceMin"), "experienceMin"),
        experience_max=parse_int(_pick(row, "experienceMax"), "experienceMax"),
        employment_type=_text(_pick(row, "employmentType")) or EMPLOYMENT_TYPES.get(job_type, ""),
        role=_text(_pick(row, "role")),
        role_category=_text(_pick(row, "roleCategory")),
        department=_text(_pick(row, "department")),
        category=_text(_pick(row, "category")),
        industry_type=_text(_pick(row, "industryType")),
        salary_min=salary.minimum,
        salary_max=salary.maximum,
        salary_display=salary.display,
        salary_currency=_text(_pick(row, "salaryCurrency")) or "INR",
        salary_period=_text(_pick(row, "salaryPeriod")) or "yearly",
        skills=split_list(_pick(row, "skills")),
        benefits=split_list(_pick(row, "benefits")),
        tags=split_list(_pick(row, "tags")),
        education=_text(education),
        remote_work=_text(_pick(row, "remoteWork")) or "on-site",
        shift_timing=_text(_pick(row, "shiftTiming")) or "day",
        is_urgent=parse_bool(_pick(row, "isUrgent")),
        is_featured=parse_bool(_pick(row, "isFeatured")),
        is_premium=parse_bool(_pick(row, "isPremium")),
        valid_till=parse_datetime(_pick(row, "validTill"), "validTill"),
        application_deadline=parse_datetime(_pick(row, "applicationDeadline"), "applicationDeadline"),
        posting_type=(_text(_pick(row, "postingType")) or POSTING_COMPANY).lower(),
        company_name=_text(_pick(row, "companyName")),
        hiring_company_name=_text(_pick(row, "hiringCompanyName")),
        hiring_company_industry=_text(_pick(row, "hiringCompanyIndustry")),
        hiring_company_description=_text(_pick(row, "hiringCompanyDescription")),
        show_hiring_company_details=parse_bool(_pick(row, "showHiringCompanyDetails")),
    )


def apply_ownership(record: NormalizedRecord, resolution: Resolution) -> NormalizedRecord:
    """Fill region and consultancy identity from the resolved owner.

    A consultancy posting always carries the owning company's own name as its
    consultancy name, whatever the row says.

    Raises:
        ResolutionError: If a consultancy posting's company has no name
    """
    consultancy_name = None
    if record.posting_type == POSTING_CONSULTANCY:
        consultancy_name = (resolution.company.name or "").strip()
        if not consultancy_name:
            raise ResolutionError("Cannot create consultancy posting: employer company name not found")

    return replace(
        record,
        region=record.region or resolution.region,
        consultancy_name=consultancy_name,
    )
