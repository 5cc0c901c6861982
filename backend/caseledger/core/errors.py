"""Errors raised at the ledger's mutation and persistence boundaries."""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    pass


class ValidationError(LedgerError):
    """Malformed or missing input to a mutation. Raised before any write."""

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class NotFoundError(LedgerError):
    def __init__(self, case_id: str) -> None:
        super().__init__(f"Case not found: {case_id}")
        self.case_id = case_id


class PersistenceFailure(LedgerError):
    """The document store rejected a write, failed a read or dropped the feed."""
