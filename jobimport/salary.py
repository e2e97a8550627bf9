"""Salary disambiguation for imported rows.

Employers write salaries either as lakhs-per-annum shorthand ("30-40 LPA",
or bare small numbers) or as raw rupee amounts ("3000000-4000000"). Both are
reduced to canonical rupee bounds plus an LPA display string.

The thresholds below are compatibility-critical. A genuine salary under the
threshold is read as LPA; that ambiguity is a known limitation of the format.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .config import settings

LAKH = Decimal(100000)
# Free text: both range ends below this are LPA figures.
TEXT_LPA_THRESHOLD = Decimal(1000)
# Explicit salaryMin/salaryMax fields: values below this are LPA figures.
FIELD_LPA_THRESHOLD = Decimal(100000)

_CENTS = Decimal("0.01")
_RANGE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)")
_NON_NUMERIC_RE = re.compile(r"[^\d.]")


class InvalidSalary(ValueError):
    """A salary bound that no canonical value can represent."""


@dataclass(frozen=True)
class SalaryRange:
    """Canonical salary bounds plus the human-readable display string."""
    minimum: Decimal | None = None
    maximum: Decimal | None = None
    display: str = ""


def to_decimal(value: Any) -> Decimal | None:
    """Best-effort numeric conversion; ``None`` when the value is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).replace(",", "").replace("₹", "").strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    return number if number.is_finite() else None


def _plain(number: Decimal) -> str:
    """Render without exponent or trailing zeros: 30 -> "30", 7.50 -> "7.5"."""
    return format(number.normalize(), "f")


def _in_lakhs(amount: Decimal) -> str:
    return _plain((amount / LAKH).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _explicit_bound(value: Any) -> Decimal | None:
    number = to_decimal(value)
    if number is not None and number < 0:
        raise InvalidSalary(f"salary bounds cannot be negative, got {value!r}")
    if number is not None and 0 < number < FIELD_LPA_THRESHOLD:
        number = number * LAKH
    return number


def _clamp(amount: Decimal | None, cap: Decimal) -> Decimal | None:
    if amount is None:
        return None
    return min(amount, cap).quantize(_CENTS, rounding=ROUND_HALF_UP)


def parse_salary_text(text: str) -> SalaryRange:
    """Interpret a free-text salary such as ``"30-40 LPA"`` or ``"₹3,000,000"``.

    Returns a range whose bounds are ``None`` when no number could be read; the
    display string then keeps the original text.
    """
    clean = text.replace("₹", "").replace(",", "").strip()
    is_lpa = "lpa" in clean.lower()

    match = _RANGE_RE.search(clean)
    if match:
        low, high = Decimal(match.group(1)), Decimal(match.group(2))
        if is_lpa or (low < TEXT_LPA_THRESHOLD and high < TEXT_LPA_THRESHOLD):
            return SalaryRange(low * LAKH, high * LAKH, f"{_plain(low)}-{_plain(high)} LPA")
        return SalaryRange(low, high, f"{_in_lakhs(low)}-{_in_lakhs(high)} LPA")

    value = to_decimal(_NON_NUMERIC_RE.sub("", clean))
    if value is None:
        return SalaryRange(display=text.strip())
    if is_lpa or value < TEXT_LPA_THRESHOLD:
        return SalaryRange(value * LAKH, None, f"{_plain(value)} LPA")
    return SalaryRange(value, None, f"{_in_lakhs(value)} LPA")


def normalize_salary(
    text: Any = None,
    salary_min: Any = None,
    salary_max: Any = None,
    *,
    cap: Decimal | None = None,
) -> SalaryRange:
    """Reduce the salary columns of one row to canonical bounds.

    Free text wins; any bound it does not supply comes from the explicit
    ``salaryMin``/``salaryMax`` fields, each checked against the explicit-field
    threshold on its own. Canonical values are clamped to ``cap`` (the largest
    value a ``NUMERIC(10, 2)`` column can hold by default).

    Args:
        text: ``salary`` column value
        salary_min: ``salaryMin`` column value
        salary_max: ``salaryMax`` column value
        cap: Upper clamp for canonical values

    Returns:
        SalaryRange with canonical bounds and LPA display

    Raises:
        InvalidSalary: If an explicit bound is negative
    """
    cap = cap if cap is not None else settings.imports.max_salary
    parsed = SalaryRange()
    if text is not None and str(text).strip():
        parsed = parse_salary_text(str(text))

    minimum = parsed.minimum if parsed.minimum is not None else _explicit_bound(salary_min)
    maximum = parsed.maximum if parsed.maximum is not None else _explicit_bound(salary_max)

    minimum, maximum = _clamp(minimum, cap), _clamp(maximum, cap)
    display = parsed.display
    if not display and minimum is not None and maximum is not None:
        display = f"{_in_lakhs(minimum)}-{_in_lakhs(maximum)} LPA"

    return SalaryRange(minimum, maximum, display)
