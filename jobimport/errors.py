"""Exception bases shared across the import pipeline.

Concrete errors live next to the code that raises them; the orchestrator only
needs these bases to tell per-row failures apart from fatal ones.
"""
from __future__ import annotations


class ImportRowError(Exception):
    """A single row could not be imported; the run continues."""

    def __init__(self, message: str, *, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or [message]


class ResolutionError(ImportRowError):
    """Owning user/company for a row could not be resolved."""
    pass
