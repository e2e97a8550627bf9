"""Downloadable bulk-import template (CSV or XLSX)."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import pandas as pd

from config.import_template import HOT_VACANCY_FIELDS, TEMPLATE_ROWS

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class TemplateFile:
    content: bytes
    media_type: str
    filename: str


def filter_hot_vacancy_fields(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Drop hot-vacancy columns from template rows."""
    return [{k: v for k, v in row.items() if k not in HOT_VACANCY_FIELDS} for row in rows]


def template_frame() -> pd.DataFrame:
    return pd.DataFrame(filter_hot_vacancy_fields(TEMPLATE_ROWS))


def build_template(kind: str) -> TemplateFile:
    """Render the example rows as a CSV or XLSX file.

    Any kind other than ``csv`` produces a workbook, matching the ``xlsx``/``xls``
    template links of the upload form.
    """
    frame = template_frame()
    if kind.lower() == "csv":
        content = frame.to_csv(index=False).encode("utf-8")
        return TemplateFile(content, CSV_MEDIA_TYPE, "job-import-template.csv")

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Jobs", index=False)
    logger.debug(f"Built XLSX template with {len(frame)} rows")
    return TemplateFile(buffer.getvalue(), XLSX_MEDIA_TYPE, f"job-import-template-{kind.lower()}.xlsx")
