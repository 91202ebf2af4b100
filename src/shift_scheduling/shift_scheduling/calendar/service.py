from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Sequence

from ..common.datetime_utils import last_day_of_month
from ..core.constants import SHIFT_TYPE_COLORS, UNKNOWN_TYPE_COLOR
from ..core.enums import ShiftType
from ..core.exceptions import ValidationError
from ..employees.service import EmployeeService
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository


@dataclass(frozen=True)
class MonthlySummary:
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    vacation_days: int = 0
    study_days: int = 0

    def to_dict(self) -> dict:
        return {
            "total": round(self.regular_hours, 2),
            "extra": round(self.overtime_hours, 2),
            "vacDays": self.vacation_days,
            "studyDays": self.study_days,
        }


class CalendarService:
    """Use case: read side of the calendar page (visible window + stats badges)."""

    def __init__(self, shifts: ShiftRepository, employees: EmployeeService, *, tz: Optional[tzinfo] = None):
        self._shifts = shifts
        self._employees = employees
        self._tz = tz or timezone.utc

    def list_window(self, *, start: datetime, end: datetime, employee_id: Optional[str] = None) -> Sequence[Shift]:
        if end <= start:
            raise ValidationError("Khoảng thời gian không hợp lệ")
        return self._shifts.list_window(start=start, end=end, employee_id=employee_id or None)

    def events(self, *, start: datetime, end: datetime, employee_id: Optional[str] = None) -> list[dict]:
        rows = self.list_window(start=start, end=end, employee_id=employee_id)
        names = self._employees.short_names() if rows else {}
        return [self.to_event(s, names) for s in rows]

    @staticmethod
    def to_event(s: Shift, short_names: dict[str, str]) -> dict:
        name = short_names.get(s.employee_id) or EmployeeService.fallback_short_name(s.employee_id)
        color = SHIFT_TYPE_COLORS.get(s.shift_type.value, UNKNOWN_TYPE_COLOR)
        return {
            "id": str(s.shift_id),
            "title": f"{name} - {s.shift_type.value.upper()}",
            "start": s.start.isoformat(),
            "end": s.end.isoformat(),
            "backgroundColor": color,
            "borderColor": color,
            "allDay": s.shift_type.is_all_day,
            "extendedProps": {
                "employee_id": s.employee_id,
                "shift_type": s.shift_type.value,
                "notes": s.notes,
                "created_by": s.created_by,
            },
        }

    def monthly_summary(self, *, employee_id: Optional[str], year: int, month: int) -> MonthlySummary:
        """Hours and leave days of one employee for shifts starting in the month.

        Without an employee selection the summary is all zeros.
        """
        if not employee_id:
            return MonthlySummary()
        if not 1 <= int(month) <= 12:
            raise ValidationError("Tháng không hợp lệ")

        first = date(int(year), int(month), 1)
        month_start = datetime.combine(first, datetime.min.time(), tzinfo=self._tz)
        next_first = last_day_of_month(first).toordinal() + 1
        month_end = datetime.combine(date.fromordinal(next_first), datetime.min.time(), tzinfo=self._tz)

        rows = self._shifts.find_overlapping(employee_id=employee_id, range_start=month_start, range_end=month_end)

        regular = overtime = 0.0
        vacation = study = 0
        for s in rows:
            if not (month_start <= s.start < month_end):
                continue
            if s.shift_type == ShiftType.VACATION:
                vacation += 1
            elif s.shift_type == ShiftType.STUDY_LEAVE:
                study += 1
            elif s.duration_hours > 0:
                if s.shift_type == ShiftType.OVERTIME:
                    overtime += s.duration_hours
                else:
                    regular += s.duration_hours

        return MonthlySummary(regular_hours=regular, overtime_hours=overtime, vacation_days=vacation, study_days=study)
