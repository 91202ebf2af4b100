from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import last_day_of_month, parse_iso_date
from ..common.validators import optional_text
from ..core.constants import DEFAULT_BULK_TIME_END, DEFAULT_BULK_TIME_START, DEFAULT_BULK_WEEKDAYS
from ..core.enums import ShiftType
from ..core.exceptions import ValidationError
from ..shifts.model import Shift


@dataclass(frozen=True)
class BulkRequest:
    """Yêu cầu tạo ca hàng loạt theo lịch lặp.

    ``weekdays`` uses 0 = Sunday .. 6 = Saturday; both dates are inclusive.
    Times are ``HH:MM`` wall-clock strings in the service's timezone.
    """

    employee_id: str
    date_from: date
    date_to: date
    weekdays: frozenset[int] = field(default_factory=lambda: DEFAULT_BULK_WEEKDAYS)
    time_start: str = DEFAULT_BULK_TIME_START
    time_end: str = DEFAULT_BULK_TIME_END
    shift_type: ShiftType = ShiftType.REGULAR
    notes: Optional[str] = None

    @classmethod
    def defaults(cls, *, today: date, employee_id: str = "") -> "BulkRequest":
        """Form defaults: Monday-Friday 09:00-17:00 from today to month end."""
        return cls(employee_id=employee_id, date_from=today, date_to=last_day_of_month(today))

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "BulkRequest":
        """Build from the JSON wire shape (camelCase keys)."""
        try:
            date_from = parse_iso_date(str(data.get("dateFrom") or ""))
            date_to = parse_iso_date(str(data.get("dateTo") or ""))
        except ValueError:
            raise ValidationError("Ngày không hợp lệ (YYYY-MM-DD)")

        raw_days = data.get("weekdays")
        if raw_days is None or isinstance(raw_days, (str, bytes)):
            raise ValidationError("Vui lòng chọn ít nhất một ngày trong tuần")
        try:
            weekdays = frozenset(int(d) for d in raw_days)
        except (TypeError, ValueError):
            raise ValidationError("Ngày trong tuần không hợp lệ")

        try:
            shift_type = ShiftType(data.get("shiftType") or ShiftType.REGULAR.value)
        except ValueError:
            raise ValidationError("Loại ca không hợp lệ")

        return cls(
            employee_id=str(data.get("employeeId") or "").strip(),
            date_from=date_from,
            date_to=date_to,
            weekdays=weekdays,
            time_start=str(data.get("timeStart") or ""),
            time_end=str(data.get("timeEnd") or ""),
            shift_type=shift_type,
            notes=optional_text(data.get("notes")),
        )


@dataclass(frozen=True)
class CandidateInterval:
    """A shift the bulk generator will try to create (not yet persisted)."""

    employee_id: str
    start: datetime
    end: datetime
    shift_type: ShiftType
    notes: Optional[str] = None

    def to_shift(self, *, created_by: Optional[str]) -> Shift:
        return Shift(
            employee_id=self.employee_id,
            shift_type=self.shift_type,
            start=self.start,
            end=self.end,
            notes=self.notes,
            created_by=created_by,
        )
