from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from ..common.datetime_utils import iter_dates, parse_hhmm, sunday_weekday
from ..common.validators import require_non_empty
from ..core.enums import ShiftType
from ..core.exceptions import ValidationError
from .model import BulkRequest, CandidateInterval

logger = logging.getLogger(__name__)


class RecurrenceExpander:
    """Turn a recurring request into concrete candidate intervals.

    Wall-clock times are read in ``tz`` and emitted as UTC. Candidates come out
    in ascending date order; the bulk generator relies on that order.
    """

    def __init__(self, *, tz: Optional[tzinfo] = None):
        self._tz = tz or timezone.utc

    def expand_request(self, request: BulkRequest) -> list[CandidateInterval]:
        return self.expand(
            employee_id=request.employee_id,
            date_from=request.date_from,
            date_to=request.date_to,
            weekdays=request.weekdays,
            time_start=request.time_start,
            time_end=request.time_end,
            shift_type=request.shift_type,
            notes=request.notes,
        )

    def expand(
        self,
        *,
        employee_id: str,
        date_from: date,
        date_to: date,
        weekdays: Iterable[int],
        time_start: str,
        time_end: str,
        shift_type: ShiftType,
        notes: Optional[str] = None,
    ) -> list[CandidateInterval]:
        employee_id = require_non_empty(employee_id, "Nhân viên")
        if date_from > date_to:
            raise ValidationError("Ngày bắt đầu phải trước hoặc bằng ngày kết thúc")

        days = frozenset(weekdays)
        if not days:
            raise ValidationError("Vui lòng chọn ít nhất một ngày trong tuần")
        if any(d < 0 or d > 6 for d in days):
            raise ValidationError("Ngày trong tuần phải nằm trong khoảng 0 (CN) - 6 (T7)")

        t_start = parse_hhmm(time_start, "Giờ bắt đầu")
        t_end = parse_hhmm(time_end, "Giờ kết thúc")
        if t_start == t_end:
            raise ValidationError("Giờ bắt đầu và giờ kết thúc không được trùng nhau")
        overnight = t_end < t_start

        out: list[CandidateInterval] = []
        for d in iter_dates(date_from, date_to):
            if sunday_weekday(d) not in days:
                continue

            end_day = d + timedelta(days=1) if overnight else d
            start = self._at(d, t_start)
            end = self._at(end_day, t_end)
            if end <= start:
                # Both wall-clock times fall around a daylight-saving jump.
                raise ValidationError(f"Khung giờ {time_start}-{time_end} không tồn tại vào ngày {d.isoformat()} do đổi giờ")
            out.append(
                CandidateInterval(
                    employee_id=employee_id,
                    start=start,
                    end=end,
                    shift_type=shift_type,
                    notes=notes,
                )
            )

        logger.debug(
            "Expanded %s..%s weekdays=%s %s-%s into %s candidate(s)",
            date_from, date_to, sorted(days), time_start, time_end, len(out),
        )
        return out

    def _at(self, d: date, t) -> datetime:
        return datetime.combine(d, t, tzinfo=self._tz).astimezone(timezone.utc)

    def day_bounds(self, date_from: date, date_to: date) -> tuple[datetime, datetime]:
        """UTC bounds of ``[date_from 00:00, date_to + 1 day 00:00)`` in the local timezone."""
        start = datetime.combine(date_from, datetime.min.time(), tzinfo=self._tz)
        end = datetime.combine(date_to + timedelta(days=1), datetime.min.time(), tzinfo=self._tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
