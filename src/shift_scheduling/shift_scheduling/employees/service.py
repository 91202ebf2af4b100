from __future__ import annotations

import logging

from ..common.validators import require_non_empty
from ..core.exceptions import StoreError, ValidationError
from .model import Employee, short_name_from_id
from .repository import EmployeeRepository

logger = logging.getLogger(__name__)


class EmployeeService:
    """Use case: read the employee directory (pickers, titles, validation)."""

    def __init__(self, employees: EmployeeRepository):
        self._employees = employees

    def list_employees(self) -> list[dict]:
        try:
            rows = self._employees.list_all()
        except StoreError:
            # The picker degrades to empty; shift data is still usable.
            logger.warning("Employee directory unavailable", exc_info=True)
            return []
        return [{"id": e.employee_id, "display_name": e.display_name, "role": e.role or "staff"} for e in rows]

    def require_employee(self, employee_id: str) -> Employee:
        employee_id = require_non_empty(employee_id, "Nhân viên")
        employee = self._employees.get_by_id(employee_id)
        if not employee:
            raise ValidationError("Nhân viên không tồn tại")
        return employee

    def short_names(self) -> dict[str, str]:
        try:
            return {e.employee_id: e.short_name for e in self._employees.list_all()}
        except StoreError:
            logger.warning("Employee directory unavailable", exc_info=True)
            return {}

    @staticmethod
    def fallback_short_name(employee_id: str) -> str:
        return short_name_from_id(employee_id)
