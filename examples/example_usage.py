"""Example: drive the services directly (no Flask), on the in-memory store.

Controllers are a thin layer; the scheduling rules live in the services.
"""

import logging
from datetime import date, datetime, timezone

from src.shift_scheduling.shift_scheduling.container import build_container
from src.shift_scheduling.shift_scheduling.core.enums import ShiftType
from src.shift_scheduling.shift_scheduling.employees.model import Employee
from src.shift_scheduling.shift_scheduling.recurrence.model import BulkRequest
from src.shift_scheduling.shift_scheduling.shifts.model import Shift


def main():
    logging.basicConfig(level=logging.INFO)
    container = build_container(
        store_backend="memory",
        employees=[Employee("bob@x.com", "Bob Stone", "staff")],
        shifts=[
            Shift(
                employee_id="bob@x.com",
                shift_type=ShiftType.REGULAR,
                start=datetime(2025, 3, 3, 9, tzinfo=timezone.utc),
                end=datetime(2025, 3, 3, 17, tzinfo=timezone.utc),
            )
        ],
    )

    request = BulkRequest(
        employee_id="bob@x.com",
        date_from=date(2025, 3, 3),
        date_to=date(2025, 3, 7),
        weekdays=frozenset({1, 2, 3, 4, 5}),
        time_start="09:00",
        time_end="17:00",
    )

    def confirm(plan) -> bool:
        print(f"Create {plan.will_create} shift(s), skip {plan.will_skip}?")
        return True

    print(container.bulk_service.generate(request, confirm=confirm).to_dict())


if __name__ == "__main__":
    main()
