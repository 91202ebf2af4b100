from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Optional

from .calendar.service import CalendarService
from .common.datetime_utils import load_timezone
from .core.constants import DEFAULT_EMPLOYEE_LOCK_TIMEOUT
from .database.connection import DBConfig, DatabaseConnection
from .employees.memory_employee_repository import InMemoryEmployeeRepository
from .employees.model import Employee
from .employees.mysql_employee_repository import MySQLEmployeeRepository
from .employees.repository import EmployeeRepository
from .employees.service import EmployeeService
from .recurrence.expander import RecurrenceExpander
from .scheduling.bulk_service import BulkGenerationService
from .scheduling.edit_reconciler import CalendarSurface, EditReconciler
from .shifts.memory_shift_repository import InMemoryShiftRepository
from .shifts.model import Shift
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .shifts.repository import ShiftRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    timezone: tzinfo

    shifts_repo: ShiftRepository
    employees_repo: EmployeeRepository

    employee_service: EmployeeService
    calendar_service: CalendarService
    bulk_service: BulkGenerationService
    edit_reconciler: EditReconciler


def build_container(
    *,
    db_config: Optional[dict] = None,
    store_backend: str = "mysql",
    timezone: str = "UTC",
    lock_timeout: int = DEFAULT_EMPLOYEE_LOCK_TIMEOUT,
    surface: Optional[CalendarSurface] = None,
    employees: Iterable[Employee] = (),
    shifts: Iterable[Shift] = (),
) -> Container:
    """Wire repositories and services.

    ``store_backend="memory"`` keeps everything in-process (``employees`` and
    ``shifts`` seed it); ``"mysql"`` requires ``db_config``.
    """
    tz = load_timezone(timezone)

    conn: Optional[DatabaseConnection] = None
    shifts_repo: ShiftRepository
    employees_repo: EmployeeRepository
    if store_backend == "memory":
        shifts_repo = InMemoryShiftRepository(list(shifts))
        employees_repo = InMemoryEmployeeRepository(employees)
    elif store_backend == "mysql":
        if not db_config:
            raise ValueError("db_config is required for the mysql store backend")
        conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))
        shifts_repo = MySQLShiftRepository(conn, lock_timeout=lock_timeout)
        employees_repo = MySQLEmployeeRepository(conn)
    else:
        raise ValueError(f"Unknown store backend: {store_backend!r}")

    employee_service = EmployeeService(employees_repo)
    calendar_service = CalendarService(shifts_repo, employee_service, tz=tz)
    bulk_service = BulkGenerationService(
        shifts_repo,
        expander=RecurrenceExpander(tz=tz),
        employees=employee_service,
    )
    edit_reconciler = EditReconciler(shifts_repo, surface=surface, employees=employee_service)

    return Container(
        conn=conn,
        timezone=tz,
        shifts_repo=shifts_repo,
        employees_repo=employees_repo,
        employee_service=employee_service,
        calendar_service=calendar_service,
        bulk_service=bulk_service,
        edit_reconciler=edit_reconciler,
    )
