"""Import file parsing.

Decodes a stored CSV, Excel or JSON file into an ordered list of raw rows.
The whole file is materialized in memory; nothing is streamed.
"""
from __future__ import annotations

import io
import json
import logging
import math
from datetime import date, datetime
from enum import Enum
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]


class ImportType(str, Enum):
    """Declared import file types."""
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"
    JSON = "json"


class ParseError(Exception):
    """Raised when an import file cannot be decoded."""
    pass


class UnsupportedFormat(ParseError):
    """Raised when the declared import type is not one we read."""
    pass


def detect_import_type(filename: str) -> ImportType:
    """Guess the import type from a filename extension.

    Only used when the caller did not declare a type.
    """
    suffix = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    try:
        return ImportType(suffix)
    except ValueError:
        raise UnsupportedFormat(f"Unsupported file type: {filename}") from None


def coerce_import_type(value: str | ImportType) -> ImportType:
    """Normalize a declared type; ``excel`` is accepted as ``xlsx``."""
    if isinstance(value, ImportType):
        return value
    key = (value or "").strip().lower()
    if key == "excel":
        return ImportType.XLSX
    try:
        return ImportType(key)
    except ValueError:
        raise UnsupportedFormat(f"Unsupported import type: {value!r}") from None


def _plain_cell(value: Any) -> Any:
    """Convert pandas/numpy cell values into JSON-friendly Python values."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def parse_csv(content: bytes) -> list[RawRecord]:
    """Parse CSV content; every cell is kept as text.

    Args:
        content: Raw file bytes

    Returns:
        List of dictionaries keyed by header name (one per row)

    Raises:
        ParseError: If CSV parsing fails
    """
    if not content.strip():
        return []
    try:
        df = pd.read_csv(
            io.BytesIO(content),
            encoding="utf-8-sig",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        logger.error(f"CSV parsing failed: {e}")
        raise ParseError(f"Failed to parse CSV: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    records = df.to_dict("records")
    logger.info(f"Parsed CSV with {len(records)} rows and {len(df.columns)} columns")
    return records


def parse_excel(content: bytes, import_type: ImportType, sheet_name: str | int = 0) -> list[RawRecord]:
    """Parse the first sheet of an Excel workbook.

    Empty cells are left out of the row mapping.

    Raises:
        ParseError: If Excel parsing fails
    """
    engine = "openpyxl" if import_type == ImportType.XLSX else "xlrd"
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=sheet_name, engine=engine)
    except Exception as e:
        logger.error(f"Excel parsing failed: {e}")
        raise ParseError(f"Failed to parse Excel: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    records: list[RawRecord] = []
    for row in df.to_dict("records"):
        record = {}
        for key, value in row.items():
            cell = _plain_cell(value)
            if cell is not None:
                record[key] = cell
        records.append(record)

    logger.info(f"Parsed Excel with {len(records)} rows and {len(df.columns)} columns")
    return records


def parse_json(content: bytes) -> list[RawRecord]:
    """Parse a JSON array of objects, or a single object.

    Raises:
        ParseError: If the document is not an object or a list of objects
    """
    try:
        data = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Failed to parse JSON: {e}") from e

    records = data if isinstance(data, list) else [data]
    for position, item in enumerate(records, start=1):
        if not isinstance(item, dict):
            raise ParseError(f"JSON item {position} is not an object")

    logger.info(f"Parsed JSON with {len(records)} rows")
    return records


def parse_import_file(content: bytes, import_type: str | ImportType) -> list[RawRecord]:
    """Parse an import file based on its declared type.

    Args:
        content: Stored file content
        import_type: Declared type (``csv``, ``xlsx``, ``xls`` or ``json``)

    Returns:
        Ordered list of raw rows

    Raises:
        UnsupportedFormat: If the type is none of the supported ones
        ParseError: If parsing fails
    """
    kind = coerce_import_type(import_type)

    if kind == ImportType.CSV:
        return parse_csv(content)
    elif kind in (ImportType.XLSX, ImportType.XLS):
        return parse_excel(content, kind)
    else:
        return parse_json(content)
