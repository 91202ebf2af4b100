from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Shift, ShiftPatch


class ShiftRepository(Protocol):
    """Giao diện repository cho Shift.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    Read failures raise ``StoreError``; write failures raise ``StoreError(outcome_unknown=True)``.
    """

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        raise NotImplementedError

    def find_overlapping(self, *, employee_id: str, range_start: datetime, range_end: datetime) -> Sequence[Shift]:
        """Shifts of ``employee_id`` with ``start < range_end AND end > range_start``."""

        raise NotImplementedError

    def list_window(self, *, start: datetime, end: datetime, employee_id: Optional[str] = None) -> Sequence[Shift]:
        """Shifts fully inside the calendar window: ``start >= start AND end < end``."""

        raise NotImplementedError

    def insert(self, shift: Shift) -> Shift:
        """Persist one shift and return it with its new id.

        Raises ``ConflictError`` if another session committed an overlapping shift first.
        """

        raise NotImplementedError

    def insert_batch(self, shifts: Sequence[Shift]) -> Sequence[Shift]:
        """All-or-nothing insert of several shifts."""

        raise NotImplementedError

    def update(self, shift_id: int, patch: ShiftPatch) -> Shift:
        """Raises ``NotFoundError`` if the id no longer exists."""

        raise NotImplementedError

    def delete(self, shift_id: int) -> None:
        """Raises ``NotFoundError`` if the id no longer exists."""

        raise NotImplementedError
