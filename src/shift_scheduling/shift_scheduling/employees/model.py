from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Employee:
    """Thực thể miền (domain): Nhân viên trong danh bạ.

    Lưu ý: danh bạ do hệ thống khác quản lý, ở đây chỉ đọc.
    """

    employee_id: str
    display_name: str
    role: Optional[str] = None

    @property
    def short_name(self) -> str:
        if self.display_name and self.display_name.strip():
            return self.display_name.split()[0]
        return short_name_from_id(self.employee_id)


def short_name_from_id(employee_id: Optional[str]) -> str:
    if employee_id:
        return employee_id.split("@")[0]
    return "Employee"
