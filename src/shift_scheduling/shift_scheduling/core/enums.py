from __future__ import annotations

from enum import Enum


class ShiftType(str, Enum):
    """Loại ca làm việc lưu trong CSDL."""

    REGULAR = "regular"
    OVERTIME = "overtime"
    VACATION = "vacation"
    STUDY_LEAVE = "studyLeave"

    @property
    def is_all_day(self) -> bool:
        return self in (ShiftType.VACATION, ShiftType.STUDY_LEAVE)


class EditState(str, Enum):
    """Trạng thái một thao tác sửa lịch đang chờ xử lý."""

    PROPOSED = "PROPOSED"
    VALIDATING = "VALIDATING"
    COMMITTED = "COMMITTED"
    REJECTED_REVERT = "REJECTED_REVERT"


class EditKind(str, Enum):
    CREATE = "create"
    MOVE = "move"
    RESIZE = "resize"
    UPDATE = "update"


class RejectionReason(str, Enum):
    OVERLAP = "overlap"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


class BulkFailureReason(str, Enum):
    NO_CANDIDATES = "no_candidates"
    ALL_SKIPPED = "all_skipped"
    STORE_ERROR = "store_error"
