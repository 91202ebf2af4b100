from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..common.validators import require_interval
from ..core.constants import DEFAULT_EMPLOYEE_LOCK_TIMEOUT
from ..core.enums import ShiftType
from ..core.exceptions import ConflictError, NotFoundError, StoreError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_datetime, to_mysql_datetime
from .model import Shift, ShiftPatch
from .repository import ShiftRepository

logger = logging.getLogger(__name__)

_COLUMNS = "shift_id, employee_id, shift_type, start_time, end_time, notes, created_by"


def _to_shift(r: dict) -> Shift:
    return Shift(
        shift_id=int(r["shift_id"]),
        employee_id=r["employee_id"],
        shift_type=ShiftType(r["shift_type"]),
        start=normalize_mysql_datetime(r["start_time"]),
        end=normalize_mysql_datetime(r["end_time"]),
        notes=r.get("notes"),
        created_by=r.get("created_by"),
    )


def _lock_name(employee_id: str) -> str:
    # GET_LOCK names are limited to 64 characters.
    return "shifts:" + hashlib.sha1(employee_id.encode("utf-8")).hexdigest()


class MySQLShiftRepository(ShiftRepository):
    """Shift store on MySQL.

    Writes that can change an interval hold a per-employee ``GET_LOCK`` until
    their transaction commits and re-check overlap inside it, so two sessions
    racing on the same employee cannot both persist overlapping shifts.
    """

    def __init__(self, conn_factory: DatabaseConnection, *, lock_timeout: int = DEFAULT_EMPLOYEE_LOCK_TIMEOUT):
        self._conn_factory = conn_factory
        self._lock_timeout = int(lock_timeout)

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM shifts WHERE shift_id=%s", (int(shift_id),))
            r = fetchone(cur)
            return _to_shift(r) if r else None

    def find_overlapping(self, *, employee_id: str, range_start: datetime, range_end: datetime) -> Sequence[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._select_overlapping(cur, employee_id, range_start, range_end)

    def list_window(self, *, start: datetime, end: datetime, employee_id: Optional[str] = None) -> Sequence[Shift]:
        clauses = ["start_time >= %s", "end_time < %s"]
        params: list[object] = [to_mysql_datetime(start), to_mysql_datetime(end)]
        if employee_id:
            clauses.append("employee_id=%s")
            params.append(employee_id)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE {where}
                ORDER BY start_time ASC, shift_id ASC
                """,
                tuple(params),
            )
            return [_to_shift(r) for r in fetchall(cur)]

    def insert(self, shift: Shift) -> Shift:
        return self.insert_batch([shift])[0]

    def insert_batch(self, shifts: Sequence[Shift]) -> Sequence[Shift]:
        if not shifts:
            return []
        for s in shifts:
            require_interval(s.start, s.end)

        out: list[Shift] = []
        with db_cursor(self._conn_factory, writes=True) as (conn, cur):
            with self._employee_locks(cur, {s.employee_id for s in shifts}):
                for s in shifts:
                    # Rows inserted earlier in this transaction are visible here too.
                    self._assert_free(cur, s.employee_id, s.start, s.end)
                    cur.execute(
                        """
                        INSERT INTO shifts(employee_id, shift_type, start_time, end_time, notes, created_by)
                        VALUES(%s,%s,%s,%s,%s,%s)
                        """,
                        (
                            s.employee_id,
                            s.shift_type.value,
                            to_mysql_datetime(s.start),
                            to_mysql_datetime(s.end),
                            s.notes,
                            s.created_by,
                        ),
                    )
                    out.append(s.with_id(int(cur.lastrowid)))
                conn.commit()

        logger.info("Inserted %s shift(s)", len(out))
        return out

    def update(self, shift_id: int, patch: ShiftPatch) -> Shift:
        if not patch.touches_interval:
            with db_cursor(self._conn_factory, writes=True) as (_, cur):
                updated = patch.apply(self._select_by_id(cur, int(shift_id)))
                self._write_update(cur, updated)
            logger.info("Updated shift %s", shift_id)
            return updated

        # The owner is read in its own transaction: the write transaction must not
        # read ``shifts`` before GET_LOCK, or its snapshot predates the lock.
        current = self.get_by_id(int(shift_id))
        if current is None:
            raise NotFoundError("Ca làm việc không tồn tại", shift_id=int(shift_id))
        locked = {current.employee_id, patch.employee_id or current.employee_id}

        with db_cursor(self._conn_factory, writes=True) as (conn, cur):
            with self._employee_locks(cur, locked):
                updated = patch.apply(self._select_by_id(cur, int(shift_id)))
                if updated.employee_id not in locked:
                    raise StoreError("Ca làm việc vừa được chuyển cho nhân viên khác, vui lòng tải lại lịch")
                require_interval(updated.start, updated.end)
                self._assert_free(cur, updated.employee_id, updated.start, updated.end, exclude_id=int(shift_id))
                self._write_update(cur, updated)
                conn.commit()

        logger.info("Updated shift %s", shift_id)
        return updated

    def delete(self, shift_id: int) -> None:
        with db_cursor(self._conn_factory, writes=True) as (_, cur):
            cur.execute("DELETE FROM shifts WHERE shift_id=%s", (int(shift_id),))
            if cur.rowcount <= 0:
                raise NotFoundError("Ca làm việc không tồn tại", shift_id=int(shift_id))
        logger.info("Deleted shift %s", shift_id)

    @staticmethod
    def _select_by_id(cur, shift_id: int) -> Shift:
        cur.execute(f"SELECT {_COLUMNS} FROM shifts WHERE shift_id=%s", (shift_id,))
        r = fetchone(cur)
        if not r:
            raise NotFoundError("Ca làm việc không tồn tại", shift_id=shift_id)
        return _to_shift(r)

    @staticmethod
    def _select_overlapping(cur, employee_id: str, range_start: datetime, range_end: datetime) -> list[Shift]:
        cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM shifts
            WHERE employee_id=%s AND start_time < %s AND end_time > %s
            ORDER BY start_time ASC
            """,
            (employee_id, to_mysql_datetime(range_end), to_mysql_datetime(range_start)),
        )
        return [_to_shift(r) for r in fetchall(cur)]

    def _assert_free(
        self,
        cur,
        employee_id: str,
        start: datetime,
        end: datetime,
        *,
        exclude_id: Optional[int] = None,
    ) -> None:
        for s in self._select_overlapping(cur, employee_id, start, end):
            if exclude_id is not None and s.shift_id == exclude_id:
                continue
            logger.warning("Concurrent write lost for %s: shift %s already holds %s..%s", employee_id, s.shift_id, s.start, s.end)
            raise ConflictError("Ca làm việc bị trùng với ca khác của nhân viên", conflicting_shift_id=s.shift_id)

    @staticmethod
    def _write_update(cur, s: Shift) -> None:
        cur.execute(
            """
            UPDATE shifts
            SET employee_id=%s, shift_type=%s, start_time=%s, end_time=%s, notes=%s
            WHERE shift_id=%s
            """,
            (
                s.employee_id,
                s.shift_type.value,
                to_mysql_datetime(s.start),
                to_mysql_datetime(s.end),
                s.notes,
                int(s.shift_id),
            ),
        )

    @contextmanager
    def _employee_locks(self, cur, employee_ids: Iterable[str]):
        # Sorted acquisition keeps two batch writers from deadlocking each other.
        names = sorted(_lock_name(e) for e in set(employee_ids))
        acquired: list[str] = []
        try:
            for name in names:
                cur.execute("SELECT GET_LOCK(%s, %s) AS ok", (name, self._lock_timeout))
                row = fetchone(cur)
                if not row or row.get("ok") != 1:
                    raise StoreError("Nhân viên đang được cập nhật bởi phiên khác, vui lòng thử lại")
                acquired.append(name)
            yield
        finally:
            for name in reversed(acquired):
                cur.execute("SELECT RELEASE_LOCK(%s) AS released", (name,))
                fetchone(cur)
