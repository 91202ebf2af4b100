from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ..common.validators import optional_text, require_interval
from ..core.constants import BULK_CREATOR, BULK_NOTE_TAG
from ..core.enums import BulkFailureReason
from ..core.exceptions import BulkGenerationError, StoreError
from ..employees.service import EmployeeService
from ..recurrence.expander import RecurrenceExpander
from ..recurrence.model import BulkRequest, CandidateInterval
from ..shifts.conflicts import find_conflict_in_set
from ..shifts.repository import ShiftRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkPlan:
    """Confirmation summary: what a commit would create and how much was skipped."""

    request: BulkRequest
    accepted: tuple[CandidateInterval, ...]
    skipped: int

    @property
    def will_create(self) -> int:
        return len(self.accepted)

    @property
    def will_skip(self) -> int:
        return self.skipped

    def summary(self) -> dict:
        return {
            "employeeId": self.request.employee_id,
            "willCreate": self.will_create,
            "willSkip": self.will_skip,
            "shifts": [
                {"start": c.start.isoformat(), "end": c.end.isoformat(), "shiftType": c.shift_type.value}
                for c in self.accepted
            ],
        }


@dataclass(frozen=True)
class BulkResult:
    created: int
    skipped: int
    committed: bool = True

    def to_dict(self) -> dict:
        return {"created": self.created, "skipped": self.skipped, "committed": self.committed}


ConfirmCallback = Callable[[BulkPlan], bool]


def tag_bulk_notes(notes: Optional[str]) -> str:
    notes = optional_text(notes)
    return f"{notes} {BULK_NOTE_TAG}" if notes else BULK_NOTE_TAG


class BulkGenerationService:
    """Use case: generate recurring shifts for one employee.

    Existing shifts are fetched once for the whole range, candidates are
    filtered in memory in emission order, and the accepted set is written with
    a single batch insert.
    """

    def __init__(
        self,
        shifts: ShiftRepository,
        *,
        expander: Optional[RecurrenceExpander] = None,
        employees: Optional[EmployeeService] = None,
    ):
        self._shifts = shifts
        self._expander = expander or RecurrenceExpander()
        self._employees = employees

    def plan(self, request: BulkRequest) -> BulkPlan:
        candidates = self._expander.expand_request(request)
        if self._employees:
            self._employees.require_employee(request.employee_id)

        if not candidates:
            raise BulkGenerationError(
                "Không có ca nào được tạo. Hãy kiểm tra khoảng ngày và các ngày trong tuần đã chọn.",
                reason=BulkFailureReason.NO_CANDIDATES,
            )
        for c in candidates:
            require_interval(c.start, c.end)

        range_start, range_end = self._expander.day_bounds(request.date_from, request.date_to)
        # An overnight shift on the last day ends after date_to + 1 at midnight.
        range_end = max(range_end, max(c.end for c in candidates))

        try:
            existing = self._shifts.find_overlapping(
                employee_id=candidates[0].employee_id,
                range_start=range_start,
                range_end=range_end,
            )
        except StoreError as e:
            raise BulkGenerationError(
                "Lỗi CSDL khi tải các ca hiện có",
                reason=BulkFailureReason.STORE_ERROR,
                outcome_unknown=False,
            ) from e

        accepted: list[CandidateInterval] = []
        skipped = 0
        for c in candidates:
            blocking = find_conflict_in_set(c.start, c.end, existing) or find_conflict_in_set(c.start, c.end, accepted)
            if blocking is not None:
                skipped += 1
                logger.debug("Skipping %s..%s: overlaps %s..%s", c.start, c.end, blocking.start, blocking.end)
                continue
            accepted.append(c)

        if not accepted:
            raise BulkGenerationError(
                f"Không có ca nào được tạo vì tất cả đều bị trùng ({skipped} ca bị bỏ qua).",
                reason=BulkFailureReason.ALL_SKIPPED,
                skipped=skipped,
            )

        logger.debug("Bulk plan for %s: create=%s skip=%s", request.employee_id, len(accepted), skipped)
        return BulkPlan(request=request, accepted=tuple(accepted), skipped=skipped)

    def commit(self, plan: BulkPlan, *, created_by: Optional[str] = None) -> BulkResult:
        """Write an accepted plan in one batch.

        A ``ConflictError`` from the store means another session wrote an
        overlapping shift after the plan was built; nothing was written and the
        caller should plan again.
        """
        creator = optional_text(created_by) or BULK_CREATOR
        batch = [replace(c, notes=tag_bulk_notes(c.notes)).to_shift(created_by=creator) for c in plan.accepted]

        try:
            inserted = self._shifts.insert_batch(batch)
        except StoreError as e:
            logger.error("Bulk insert for %s failed (outcome_unknown=%s)", plan.request.employee_id, e.outcome_unknown)
            raise BulkGenerationError(
                "Lỗi CSDL khi tạo ca hàng loạt. Hãy tải lại lịch để kiểm tra trạng thái thực tế.",
                reason=BulkFailureReason.STORE_ERROR,
                skipped=plan.skipped,
                outcome_unknown=e.outcome_unknown,
            ) from e

        logger.info("Bulk generated %s shift(s) for %s (%s skipped)", len(inserted), plan.request.employee_id, plan.skipped)
        return BulkResult(created=len(inserted), skipped=plan.skipped)

    def generate(
        self,
        request: BulkRequest,
        *,
        confirm: ConfirmCallback,
        created_by: Optional[str] = None,
    ) -> BulkResult:
        plan = self.plan(request)
        if not confirm(plan):
            logger.info("Bulk generation for %s cancelled at confirmation", request.employee_id)
            return BulkResult(created=0, skipped=plan.skipped, committed=False)
        return self.commit(plan, created_by=created_by)
