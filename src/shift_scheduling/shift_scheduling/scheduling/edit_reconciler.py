"""Interactive single-shift edits from the calendar surface.

Every edit runs as ``propose(...) -> PendingEdit`` then ``resolve(token) ->
EditOutcome``. A pending edit moves PROPOSED -> VALIDATING -> COMMITTED or
REJECTED_REVERT. The surface optimistically shows the proposed interval and is
told to keep it (``commit``) or roll it back (``revert``) through the
``CalendarSurface`` callbacks given at construction time.

A proposal left unresolved for longer than ``pending_ttl`` is dropped and
reverted, which releases its shift for new edits.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from ..common.validators import optional_text, require_interval, require_non_empty
from ..common.datetime_utils import now_utc
from ..core.constants import (
    DEFAULT_ALL_DAY_DROP_DURATION,
    DEFAULT_CREATOR,
    DEFAULT_PENDING_EDIT_TTL,
    DEFAULT_TIMED_DROP_DURATION,
)
from ..core.enums import EditKind, EditState, RejectionReason, ShiftType
from ..core.exceptions import ConflictError, EditInProgressError, NotFoundError, StoreError, ValidationError
from ..employees.service import EmployeeService
from ..shifts.conflicts import ConflictChecker
from ..shifts.model import Shift, ShiftPatch
from ..shifts.repository import ShiftRepository

logger = logging.getLogger(__name__)


@dataclass
class PendingEdit:
    token: str
    kind: EditKind
    employee_id: str
    start: datetime
    end: datetime
    shift_id: Optional[int] = None
    previous: Optional[Shift] = None
    shift_type: ShiftType = ShiftType.REGULAR
    notes: Optional[str] = None
    created_by: Optional[str] = None
    state: EditState = EditState.PROPOSED
    proposed_at: Optional[datetime] = None


@dataclass(frozen=True)
class EditOutcome:
    token: str
    kind: EditKind
    state: EditState
    shift: Optional[Shift] = None
    previous: Optional[Shift] = None
    reason: Optional[RejectionReason] = None
    conflicting_shift_id: Optional[int] = None
    outcome_unknown: bool = False
    message: str = ""

    @property
    def committed(self) -> bool:
        return self.state == EditState.COMMITTED

    def to_dict(self) -> dict:
        out: dict = {
            "success": self.committed,
            "state": self.state.value,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.shift is not None:
            out["shift_id"] = self.shift.shift_id
        if self.reason is not None:
            out["reason"] = self.reason.value
        if self.conflicting_shift_id is not None:
            out["conflicting_shift_id"] = self.conflicting_shift_id
        if self.previous is not None and not self.committed:
            out["revert"] = {"start": self.previous.start.isoformat(), "end": self.previous.end.isoformat()}
        if self.outcome_unknown:
            out["outcome_unknown"] = True
        return out


class CalendarSurface(Protocol):
    def commit(self, outcome: EditOutcome) -> None:
        """Keep the optimistic state shown for this edit."""

    def revert(self, outcome: EditOutcome) -> None:
        """Roll the shown state back to ``outcome.previous`` (or drop a create placeholder)."""

    def refresh(self) -> None:
        """Re-fetch the visible calendar window."""


class NullSurface:
    def commit(self, outcome: EditOutcome) -> None:
        pass

    def revert(self, outcome: EditOutcome) -> None:
        pass

    def refresh(self) -> None:
        pass


class EditReconciler:
    def __init__(
        self,
        shifts: ShiftRepository,
        *,
        surface: Optional[CalendarSurface] = None,
        employees: Optional[EmployeeService] = None,
        pending_ttl: timedelta = DEFAULT_PENDING_EDIT_TTL,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._shifts = shifts
        self._pending_ttl = pending_ttl
        self._clock = clock
        self._checker = ConflictChecker(shifts)
        self._surface = surface or NullSurface()
        self._employees = employees
        self._lock = threading.Lock()
        self._pending: dict[str, PendingEdit] = {}
        self._in_flight: dict[int, str] = {}

    # Proposals

    def propose_create(
        self,
        *,
        employee_id: str,
        start: datetime,
        end: datetime,
        shift_type: ShiftType = ShiftType.REGULAR,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> PendingEdit:
        employee_id = self._require_employee(employee_id)
        require_interval(start, end)
        return self._register(
            PendingEdit(
                token=uuid.uuid4().hex,
                kind=EditKind.CREATE,
                employee_id=employee_id,
                start=start,
                end=end,
                shift_type=shift_type,
                notes=optional_text(notes),
                created_by=optional_text(created_by) or DEFAULT_CREATOR,
            )
        )

    def propose_move(
        self,
        shift_id: int,
        *,
        start: datetime,
        end: Optional[datetime] = None,
        all_day: bool = False,
    ) -> PendingEdit:
        if end is None:
            end = start + (DEFAULT_ALL_DAY_DROP_DURATION if all_day else DEFAULT_TIMED_DROP_DURATION)
        return self._propose_interval(EditKind.MOVE, shift_id, start, end)

    def propose_resize(self, shift_id: int, *, start: datetime, end: datetime) -> PendingEdit:
        return self._propose_interval(EditKind.RESIZE, shift_id, start, end)

    def propose_update(
        self,
        shift_id: int,
        *,
        employee_id: str,
        shift_type: ShiftType,
        start: datetime,
        end: datetime,
        notes: Optional[str] = None,
    ) -> PendingEdit:
        employee_id = self._require_employee(employee_id)
        require_interval(start, end)
        previous = self._load(shift_id)
        return self._register(
            PendingEdit(
                token=uuid.uuid4().hex,
                kind=EditKind.UPDATE,
                employee_id=employee_id,
                start=start,
                end=end,
                shift_id=previous.shift_id,
                previous=previous,
                shift_type=shift_type,
                notes=optional_text(notes) or "",
            )
        )

    def _propose_interval(self, kind: EditKind, shift_id: int, start: datetime, end: datetime) -> PendingEdit:
        require_interval(start, end)
        previous = self._load(shift_id)
        return self._register(
            PendingEdit(
                token=uuid.uuid4().hex,
                kind=kind,
                employee_id=previous.employee_id,
                start=start,
                end=end,
                shift_id=previous.shift_id,
                previous=previous,
                shift_type=previous.shift_type,
                notes=previous.notes,
            )
        )

    # Resolution

    def resolve(self, token: str) -> EditOutcome:
        self._expire_stale()
        with self._lock:
            pending = self._pending.pop(token, None)
        if pending is None:
            raise ValidationError("Thao tác không tồn tại, đã hết hạn hoặc đã được xử lý")

        try:
            return self._validate_and_commit(pending)
        finally:
            self._release(pending)

    def cancel(self, token: str) -> None:
        """Drop a proposal without touching the store (e.g. the modal was closed)."""
        with self._lock:
            pending = self._pending.pop(token, None)
        if pending is not None:
            self._release(pending)
            self._surface.revert(self._outcome(pending, EditState.REJECTED_REVERT, message="Đã hủy"))

    def pending_for(self, shift_id: int) -> Optional[PendingEdit]:
        self._expire_stale()
        with self._lock:
            token = self._in_flight.get(int(shift_id))
            return self._pending.get(token) if token else None

    def _validate_and_commit(self, pending: PendingEdit) -> EditOutcome:
        pending.state = EditState.VALIDATING
        try:
            blocking = self._checker.find_conflict(pending.employee_id, pending.start, pending.end, exclude_id=pending.shift_id)
        except StoreError as e:
            return self._reject(pending, RejectionReason.STORE_ERROR, "Lỗi CSDL khi kiểm tra trùng lịch", outcome_unknown=e.outcome_unknown)

        if blocking is not None:
            return self._reject(
                pending,
                RejectionReason.OVERLAP,
                "Không thể lưu: ca làm việc bị trùng với ca khác của nhân viên",
                conflicting_shift_id=blocking.shift_id,
            )

        try:
            shift = self._write(pending)
        except ConflictError as e:
            return self._reject(pending, RejectionReason.OVERLAP, str(e), conflicting_shift_id=e.conflicting_shift_id)
        except NotFoundError as e:
            outcome = self._reject(pending, RejectionReason.NOT_FOUND, str(e))
            self._surface.refresh()
            return outcome
        except StoreError as e:
            outcome = self._reject(pending, RejectionReason.STORE_ERROR, "Lỗi CSDL khi lưu ca làm việc", outcome_unknown=e.outcome_unknown)
            self._surface.refresh()
            return outcome

        pending.state = EditState.COMMITTED
        outcome = self._outcome(pending, EditState.COMMITTED, shift=shift, message="Đã lưu ca làm việc")
        logger.info("%s of shift %s committed for %s", pending.kind.value, shift.shift_id, pending.employee_id)
        self._surface.commit(outcome)
        self._surface.refresh()
        return outcome

    def _write(self, pending: PendingEdit) -> Shift:
        if pending.kind == EditKind.CREATE:
            return self._shifts.insert(
                Shift(
                    employee_id=pending.employee_id,
                    shift_type=pending.shift_type,
                    start=pending.start,
                    end=pending.end,
                    notes=pending.notes,
                    created_by=pending.created_by,
                )
            )
        if pending.kind == EditKind.UPDATE:
            patch = ShiftPatch(
                employee_id=pending.employee_id,
                shift_type=pending.shift_type,
                start=pending.start,
                end=pending.end,
                notes=pending.notes,
            )
        else:
            patch = ShiftPatch(start=pending.start, end=pending.end)
        return self._shifts.update(int(pending.shift_id), patch)

    def _reject(
        self,
        pending: PendingEdit,
        reason: RejectionReason,
        message: str,
        *,
        conflicting_shift_id: Optional[int] = None,
        outcome_unknown: bool = False,
    ) -> EditOutcome:
        pending.state = EditState.REJECTED_REVERT
        outcome = self._outcome(
            pending,
            EditState.REJECTED_REVERT,
            reason=reason,
            conflicting_shift_id=conflicting_shift_id,
            outcome_unknown=outcome_unknown,
            message=message,
        )
        logger.warning(
            "%s for %s rejected (%s, blocking=%s)", pending.kind.value, pending.employee_id, reason.value, conflicting_shift_id
        )
        self._surface.revert(outcome)
        return outcome

    # Delete

    def delete(self, shift_id: int, *, confirmed: bool) -> bool:
        """Physically remove a shift. Returns False when the user did not confirm."""
        if not confirmed:
            return False
        self._expire_stale()
        with self._lock:
            if int(shift_id) in self._in_flight:
                raise EditInProgressError("Ca làm việc đang được chỉnh sửa", shift_id=int(shift_id))
        try:
            self._shifts.delete(int(shift_id))
        except NotFoundError:
            self._surface.refresh()
            raise
        self._surface.refresh()
        return True

    # Convenience one-shot flows

    def create(self, **kwargs) -> EditOutcome:
        return self.resolve(self.propose_create(**kwargs).token)

    def move(self, shift_id: int, **kwargs) -> EditOutcome:
        return self.resolve(self.propose_move(shift_id, **kwargs).token)

    def resize(self, shift_id: int, **kwargs) -> EditOutcome:
        return self.resolve(self.propose_resize(shift_id, **kwargs).token)

    def update(self, shift_id: int, **kwargs) -> EditOutcome:
        return self.resolve(self.propose_update(shift_id, **kwargs).token)

    # Helpers

    def _require_employee(self, employee_id: str) -> str:
        if self._employees:
            return self._employees.require_employee(employee_id).employee_id
        return require_non_empty(employee_id, "Nhân viên")

    def _load(self, shift_id: int) -> Shift:
        shift = self._shifts.get_by_id(int(shift_id))
        if shift is None:
            self._surface.refresh()
            raise NotFoundError("Ca làm việc không tồn tại", shift_id=int(shift_id))
        return shift

    def _register(self, pending: PendingEdit) -> PendingEdit:
        self._expire_stale()
        pending.proposed_at = self._clock()
        with self._lock:
            if pending.shift_id is not None:
                if pending.shift_id in self._in_flight:
                    raise EditInProgressError("Ca làm việc đang được chỉnh sửa, vui lòng đợi", shift_id=pending.shift_id)
                self._in_flight[pending.shift_id] = pending.token
            self._pending[pending.token] = pending
        logger.debug("Proposed %s %s for %s: %s..%s", pending.kind.value, pending.token, pending.employee_id, pending.start, pending.end)
        return pending

    def _expire_stale(self) -> None:
        """Drop proposals older than the TTL so an abandoned edit cannot block its shift."""
        cutoff = self._clock() - self._pending_ttl
        with self._lock:
            stale = [p for p in self._pending.values() if p.proposed_at is not None and p.proposed_at <= cutoff]
            for p in stale:
                p.state = EditState.REJECTED_REVERT
                del self._pending[p.token]
                if p.shift_id is not None and self._in_flight.get(p.shift_id) == p.token:
                    del self._in_flight[p.shift_id]
        for p in stale:
            logger.info("Pending %s %s expired unresolved", p.kind.value, p.token)
            self._surface.revert(self._outcome(p, EditState.REJECTED_REVERT, message="Thao tác đã hết hạn"))

    def _release(self, pending: PendingEdit) -> None:
        if pending.shift_id is None:
            return
        with self._lock:
            if self._in_flight.get(pending.shift_id) == pending.token:
                del self._in_flight[pending.shift_id]

    @staticmethod
    def _outcome(pending: PendingEdit, state: EditState, **kwargs) -> EditOutcome:
        return EditOutcome(token=pending.token, kind=pending.kind, state=state, previous=pending.previous, **kwargs)
