from __future__ import annotations

from datetime import datetime

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} không hợp lệ")
    return value.strip()


def require_interval(start: datetime, end: datetime) -> None:
    """End is exclusive and must be strictly after start."""
    if end <= start:
        raise ValidationError("Thời gian kết thúc phải sau thời gian bắt đầu")


def optional_text(value) -> str | None:
    v = (value or "").strip() if isinstance(value, str) or value is None else str(value).strip()
    return v or None
