from __future__ import annotations

from typing import Optional

from .enums import BulkFailureReason


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ConflictError(DomainError):
    """Raised when a shift would overlap another shift of the same employee."""

    def __init__(self, message: str, *, conflicting_shift_id: Optional[int] = None):
        super().__init__(message)
        self.conflicting_shift_id = conflicting_shift_id


class NotFoundError(DomainError):
    """Raised when a shift no longer exists (e.g. deleted by another session)."""

    def __init__(self, message: str, *, shift_id: Optional[int] = None):
        super().__init__(message)
        self.shift_id = shift_id


class EditInProgressError(DomainError):
    """Raised when a shift already has an unresolved edit."""

    def __init__(self, message: str, *, shift_id: int):
        super().__init__(message)
        self.shift_id = shift_id


class StoreError(DomainError):
    """Raised when the persistent store fails.

    ``outcome_unknown`` is True when the failure happened during or after a
    write call: the caller must re-fetch the affected range before retrying.
    """

    def __init__(self, message: str, *, outcome_unknown: bool = False):
        super().__init__(message)
        self.outcome_unknown = outcome_unknown


class BulkGenerationError(DomainError):
    """Raised when a bulk generation request produces nothing to commit."""

    def __init__(self, message: str, *, reason: BulkFailureReason, skipped: int = 0, outcome_unknown: bool = False):
        super().__init__(message)
        self.reason = reason
        self.skipped = skipped
        self.outcome_unknown = outcome_unknown
