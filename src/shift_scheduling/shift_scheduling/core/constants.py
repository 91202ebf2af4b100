"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import timedelta

# 0 = Sunday .. 6 = Saturday
DEFAULT_BULK_WEEKDAYS = frozenset({1, 2, 3, 4, 5})
DEFAULT_BULK_TIME_START = "09:00"
DEFAULT_BULK_TIME_END = "17:00"

DEFAULT_CREATOR = "System"
BULK_CREATOR = "Bulk"
BULK_NOTE_TAG = "(Bulk)"

DEFAULT_TIMED_DROP_DURATION = timedelta(hours=1)
DEFAULT_ALL_DAY_DROP_DURATION = timedelta(days=1)

DEFAULT_EMPLOYEE_LOCK_TIMEOUT = 10

SHIFT_TYPE_COLORS = {
    "regular": "#3b82f6",
    "overtime": "#f59e0b",
    "vacation": "#10b981",
    "studyLeave": "#8b5cf6",
}
UNKNOWN_TYPE_COLOR = "#64748b"

# Unresolved two-phase edits are dropped after this long
DEFAULT_PENDING_EDIT_TTL = timedelta(minutes=5)
