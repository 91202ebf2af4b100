from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from ..core.enums import ShiftType


@dataclass(frozen=True)
class Shift:
    """Thực thể miền (domain): Ca làm việc của một nhân viên.

    ``start`` is inclusive and ``end`` exclusive, both UTC-aware.
    ``shift_id`` is None until the store assigns one.
    """

    employee_id: str
    shift_type: ShiftType
    start: datetime
    end: datetime
    notes: Optional[str] = None
    created_by: Optional[str] = None
    shift_id: Optional[int] = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start

    def with_id(self, shift_id: int) -> "Shift":
        return replace(self, shift_id=int(shift_id))

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


@dataclass(frozen=True)
class ShiftPatch:
    """Partial update. ``None`` fields are left unchanged; ``created_by`` is immutable."""

    employee_id: Optional[str] = None
    shift_type: Optional[ShiftType] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def touches_interval(self) -> bool:
        return self.employee_id is not None or self.start is not None or self.end is not None

    def apply(self, shift: Shift) -> Shift:
        return replace(
            shift,
            employee_id=self.employee_id if self.employee_id is not None else shift.employee_id,
            shift_type=self.shift_type if self.shift_type is not None else shift.shift_type,
            start=self.start if self.start is not None else shift.start,
            end=self.end if self.end is not None else shift.end,
            notes=self.notes if self.notes is not None else shift.notes,
        )
