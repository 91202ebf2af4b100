from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional, Sequence

from ..common.validators import require_interval
from ..core.exceptions import ConflictError, NotFoundError
from .model import Shift, ShiftPatch
from .repository import ShiftRepository

logger = logging.getLogger(__name__)


class InMemoryShiftRepository(ShiftRepository):
    """Process-local shift store (``STORE_BACKEND=memory``).

    Writes are serialized by one lock and re-check overlap before committing,
    the same guarantee the MySQL store gives with per-employee named locks.
    """

    def __init__(self, shifts: Sequence[Shift] = ()):
        self._lock = threading.RLock()
        self._rows: dict[int, Shift] = {}
        self._next_id = 1
        for s in shifts:
            self._store(s)

    def _store(self, shift: Shift) -> Shift:
        sid = shift.shift_id if shift.shift_id is not None else self._next_id
        self._next_id = max(self._next_id, sid + 1)
        stored = shift.with_id(sid)
        self._rows[sid] = stored
        return stored

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with self._lock:
            return self._rows.get(int(shift_id))

    def find_overlapping(self, *, employee_id: str, range_start: datetime, range_end: datetime) -> Sequence[Shift]:
        with self._lock:
            rows = [
                s for s in self._rows.values()
                if s.employee_id == employee_id and s.overlaps(range_start, range_end)
            ]
        rows.sort(key=lambda s: (s.start, s.shift_id))
        return rows

    def list_window(self, *, start: datetime, end: datetime, employee_id: Optional[str] = None) -> Sequence[Shift]:
        with self._lock:
            rows = [
                s for s in self._rows.values()
                if s.start >= start and s.end < end and (not employee_id or s.employee_id == employee_id)
            ]
        rows.sort(key=lambda s: (s.start, s.shift_id))
        return rows

    def all(self) -> list[Shift]:
        with self._lock:
            return sorted(self._rows.values(), key=lambda s: s.shift_id)

    def insert(self, shift: Shift) -> Shift:
        return self.insert_batch([shift])[0]

    def insert_batch(self, shifts: Sequence[Shift]) -> Sequence[Shift]:
        for s in shifts:
            require_interval(s.start, s.end)
        with self._lock:
            pending: list[Shift] = []
            for s in shifts:
                self._assert_free(s, pending)
                pending.append(s)
            out = [self._store(s) for s in pending]
        if out:
            logger.info("Inserted %s shift(s)", len(out))
        return out

    def update(self, shift_id: int, patch: ShiftPatch) -> Shift:
        with self._lock:
            current = self._rows.get(int(shift_id))
            if current is None:
                raise NotFoundError("Ca làm việc không tồn tại", shift_id=int(shift_id))
            updated = patch.apply(current)
            if patch.touches_interval:
                require_interval(updated.start, updated.end)
                self._assert_free(updated, ())
            self._rows[int(shift_id)] = updated
        logger.info("Updated shift %s", shift_id)
        return updated

    def delete(self, shift_id: int) -> None:
        with self._lock:
            if self._rows.pop(int(shift_id), None) is None:
                raise NotFoundError("Ca làm việc không tồn tại", shift_id=int(shift_id))
        logger.info("Deleted shift %s", shift_id)

    def _assert_free(self, shift: Shift, pending: Sequence[Shift]) -> None:
        for other in list(self._rows.values()) + list(pending):
            if other.employee_id != shift.employee_id:
                continue
            if shift.shift_id is not None and other.shift_id == shift.shift_id:
                continue
            if other.overlaps(shift.start, shift.end):
                raise ConflictError(
                    "Ca làm việc bị trùng với ca khác của nhân viên",
                    conflicting_shift_id=other.shift_id,
                )
