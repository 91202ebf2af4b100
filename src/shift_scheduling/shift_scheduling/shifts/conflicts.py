"""Half-open interval conflict checks.

Two intervals ``[a_start, a_end)`` and ``[b_start, b_end)`` conflict when
``a_start < b_end and a_end > b_start``; touching endpoints do not conflict.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Protocol

from .model import Shift
from .repository import ShiftRepository

logger = logging.getLogger(__name__)


class Interval(Protocol):
    start: datetime
    end: datetime


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def find_conflict_in_set(start: datetime, end: datetime, existing: Iterable[Interval]) -> Optional[Interval]:
    for item in existing:
        if intervals_overlap(start, end, item.start, item.end):
            return item
    return None


def has_conflict_in_set(start: datetime, end: datetime, existing: Iterable[Interval]) -> bool:
    return find_conflict_in_set(start, end, existing) is not None


class ConflictChecker:
    """Store-backed overlap check for a single employee."""

    def __init__(self, shifts: ShiftRepository):
        self._shifts = shifts

    def find_conflict(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> Optional[Shift]:
        rows = self._shifts.find_overlapping(employee_id=employee_id, range_start=start, range_end=end)
        for s in rows:
            if exclude_id is not None and s.shift_id == exclude_id:
                continue
            if s.overlaps(start, end):
                logger.debug("Shift %s of %s blocks %s..%s", s.shift_id, employee_id, start, end)
                return s
        return None

    def has_conflict(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        return self.find_conflict(employee_id, start, end, exclude_id) is not None
