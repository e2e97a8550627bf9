"""Import run state machine and progress bookkeeping.

States::

    pending --start--> processing --(loop completes)--> completed
    pending --start--> processing --(fatal error)-----> failed
    pending/processing --cancel--> cancelled
    failed --retry--> pending

Status changes that can race with another session (start, finish, cancel)
go through ``transition``, a conditional UPDATE, so e.g. a run finishing
after a cancel never overwrites ``cancelled``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from . import models

logger = logging.getLogger(__name__)


class ImportStatus(str, Enum):
    """Import run states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.CANCELLED})
CANCELLABLE_STATES = frozenset({ImportStatus.PENDING, ImportStatus.PROCESSING})


class InvalidTransition(Exception):
    """Raised when an operation is not allowed from the import's current state."""
    pass


def _timestamp() -> str:
    return datetime.utcnow().isoformat()


def _jsonable(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def compute_progress(processed: int, total: int) -> Decimal:
    """Percentage of rows processed, two decimals, capped at 100."""
    if total <= 0:
        return Decimal("0")
    percent = (Decimal(processed) * 100 / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return min(percent, Decimal("100"))


async def transition(
    session: AsyncSession,
    import_id: int,
    *,
    from_states: Iterable[ImportStatus],
    to: ImportStatus,
    **values: Any,
) -> bool:
    """Move an import to ``to`` only if it is currently in ``from_states``.

    Returns:
        True when the row was updated
    """
    stmt = (
        update(models.BulkJobImport)
        .where(
            models.BulkJobImport.id == import_id,
            models.BulkJobImport.status.in_([s.value for s in from_states]),
        )
        .values(status=to.value, updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    changed = result.rowcount == 1
    if changed:
        logger.info(f"Import {import_id} -> {to.value}")
    return changed


class ImportJobRecord:
    """Counters and logs of one import run, applied to its ``BulkJobImport`` row.

    Every ``record_*`` call advances ``processed_records`` by one and refreshes
    ``progress``, keeping ``processed == successful + failed + skipped``.
    """

    def __init__(self, row: models.BulkJobImport):
        self.row = row

    @property
    def status(self) -> ImportStatus:
        return ImportStatus(self.row.status)

    def begin(self, total: int) -> None:
        self.row.total_records = total
        self.row.progress = Decimal("0")

    def record_success(self, job_id: int, title: str, row_number: int) -> None:
        self.row.success_log = [
            *self.row.success_log,
            {"jobId": job_id, "title": title, "row": row_number, "timestamp": _timestamp()},
        ]
        self.row.successful_imports += 1
        self._advance()

    def record_failure(self, raw: Mapping[str, Any] | Any, error: str, row_number: int,
                       details: list[str] | None = None) -> None:
        entry = {"row": row_number, "record": _jsonable(raw), "error": error, "timestamp": _timestamp()}
        if details and details != [error]:
            entry["details"] = details
        self.row.error_log = [*self.row.error_log, entry]
        self.row.failed_imports += 1
        self._advance()

    def record_skip(self) -> None:
        self.row.skipped_records += 1
        self._advance()

    def _advance(self) -> None:
        self.row.processed_records += 1
        self.row.progress = compute_progress(self.row.processed_records, self.row.total_records)

    def reset_for_retry(self) -> None:
        """Back to a clean ``pending`` run; only valid from ``failed``."""
        if self.status != ImportStatus.FAILED:
            raise InvalidTransition(f"Can only retry failed imports (import is {self.row.status})")
        self.row.status = ImportStatus.PENDING.value
        self.row.total_records = 0
        self.row.processed_records = 0
        self.row.successful_imports = 0
        self.row.failed_imports = 0
        self.row.skipped_records = 0
        self.row.progress = Decimal("0")
        self.row.error_log = []
        self.row.success_log = []
        self.row.started_at = None
        self.row.completed_at = None
        self.row.cancelled_at = None

    def snapshot(self) -> dict[str, Any]:
        """Counters for log lines."""
        return {
            "total": self.row.total_records,
            "processed": self.row.processed_records,
            "successful": self.row.successful_imports,
            "failed": self.row.failed_imports,
            "skipped": self.row.skipped_records,
            "progress": float(self.row.progress),
        }


def fatal_log(message: str) -> list[dict[str, Any]]:
    """Error log holding the single entry that describes a fatal failure."""
    return [{"error": message, "timestamp": _timestamp()}]
