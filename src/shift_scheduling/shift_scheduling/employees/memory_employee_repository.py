from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .model import Employee
from .repository import EmployeeRepository


class InMemoryEmployeeRepository(EmployeeRepository):
    def __init__(self, employees: Iterable[Employee] = ()):
        self._by_id = {e.employee_id: e for e in employees}

    def list_all(self) -> Sequence[Employee]:
        return sorted(self._by_id.values(), key=lambda e: e.display_name)

    def get_by_id(self, employee_id: str) -> Optional[Employee]:
        return self._by_id.get(employee_id)
