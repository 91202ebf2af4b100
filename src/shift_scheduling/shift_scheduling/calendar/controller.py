from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_utc, parse_timestamp
from ..core.enums import BulkFailureReason, RejectionReason, ShiftType
from ..core.exceptions import (
    BulkGenerationError,
    ConflictError,
    EditInProgressError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..container import Container
from ..recurrence.model import BulkRequest

logger = logging.getLogger(__name__)

_REJECTION_STATUS = {
    RejectionReason.OVERLAP: 409,
    RejectionReason.NOT_FOUND: 404,
    RejectionReason.STORE_ERROR: 503,
}


def _fail(message: str, status: int, **extra):
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def register(app: Flask, container: Container) -> None:
    tz = container.timezone

    def json_errors(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except ValidationError as e:
                return _fail(str(e), 400)
            except NotFoundError as e:
                return _fail(str(e), 404, reason=RejectionReason.NOT_FOUND.value, shift_id=e.shift_id)
            except ConflictError as e:
                return _fail(str(e), 409, reason=RejectionReason.OVERLAP.value, conflicting_shift_id=e.conflicting_shift_id)
            except EditInProgressError as e:
                return _fail(str(e), 409, reason="edit_in_progress", shift_id=e.shift_id)
            except BulkGenerationError as e:
                status = 503 if e.reason == BulkFailureReason.STORE_ERROR else 422
                return _fail(str(e), status, reason=e.reason.value, skipped=e.skipped, outcome_unknown=e.outcome_unknown)
            except StoreError as e:
                return _fail("Lỗi CSDL, vui lòng tải lại lịch", 503, reason="store_error", outcome_unknown=e.outcome_unknown)
            except Exception:
                logger.exception("Unhandled error in %s", request.path)
                return _fail("Lỗi hệ thống", 500)

        return wrapper

    def _body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Dữ liệu gửi lên phải là JSON object")
        return data

    def _ts(value, field_name: str):
        return parse_timestamp(str(value or ""), field_name, tz=tz)

    def _shift_type(value) -> ShiftType:
        try:
            return ShiftType(value or ShiftType.REGULAR.value)
        except ValueError:
            raise ValidationError("Loại ca không hợp lệ")

    def _edit_response(outcome):
        if outcome.committed:
            return jsonify(outcome.to_dict()), 200
        return jsonify(outcome.to_dict()), _REJECTION_STATUS.get(outcome.reason, 409)

    @app.route("/api/employees", methods=["GET"], endpoint="api_employees")
    @json_errors
    def api_employees():
        return jsonify({"success": True, "employees": container.employee_service.list_employees()})

    @app.route("/api/shifts", methods=["GET"], endpoint="api_shifts")
    @json_errors
    def api_shifts():
        start = _ts(request.args.get("start"), "Ngày bắt đầu")
        end = _ts(request.args.get("end"), "Ngày kết thúc")
        employee_id = (request.args.get("employee_id") or "").strip() or None
        events = container.calendar_service.events(start=start, end=end, employee_id=employee_id)
        return jsonify({"success": True, "events": events})

    @app.route("/api/shifts/summary", methods=["GET"], endpoint="api_shifts_summary")
    @json_errors
    def api_shifts_summary():
        today = now_utc().astimezone(tz).date()
        try:
            year = int(request.args.get("year") or today.year)
            month = int(request.args.get("month") or today.month)
        except ValueError:
            raise ValidationError("Tháng/năm không hợp lệ")
        summary = container.calendar_service.monthly_summary(
            employee_id=(request.args.get("employee_id") or "").strip() or None,
            year=year,
            month=month,
        )
        return jsonify({"success": True, "summary": summary.to_dict()})

    @app.route("/api/shifts/<int:shift_id>", methods=["GET"], endpoint="api_shift_detail")
    @json_errors
    def api_shift_detail(shift_id: int):
        shift = container.shifts_repo.get_by_id(shift_id)
        if shift is None:
            raise NotFoundError("Ca làm việc không tồn tại", shift_id=shift_id)
        return jsonify({"success": True, "shift": container.calendar_service.to_event(shift, {})})

    @app.route("/api/shifts", methods=["POST"], endpoint="api_shift_create")
    @json_errors
    def api_shift_create():
        data = _body()
        outcome = container.edit_reconciler.create(
            employee_id=str(data.get("employeeId") or ""),
            start=_ts(data.get("start"), "Thời gian bắt đầu"),
            end=_ts(data.get("end"), "Thời gian kết thúc"),
            shift_type=_shift_type(data.get("shiftType")),
            notes=data.get("notes"),
            created_by=data.get("createdBy"),
        )
        return _edit_response(outcome)

    @app.route("/api/shifts/<int:shift_id>", methods=["PUT"], endpoint="api_shift_update")
    @json_errors
    def api_shift_update(shift_id: int):
        data = _body()
        outcome = container.edit_reconciler.update(
            shift_id,
            employee_id=str(data.get("employeeId") or ""),
            shift_type=_shift_type(data.get("shiftType")),
            start=_ts(data.get("start"), "Thời gian bắt đầu"),
            end=_ts(data.get("end"), "Thời gian kết thúc"),
            notes=data.get("notes"),
        )
        return _edit_response(outcome)

    @app.route("/api/shifts/<int:shift_id>/drag", methods=["POST"], endpoint="api_shift_drag")
    @json_errors
    def api_shift_drag(shift_id: int):
        data = _body()
        end = data.get("end")
        outcome = container.edit_reconciler.move(
            shift_id,
            start=_ts(data.get("start"), "Thời gian bắt đầu"),
            end=_ts(end, "Thời gian kết thúc") if end else None,
            all_day=bool(data.get("allDay")),
        )
        return _edit_response(outcome)

    @app.route("/api/shifts/<int:shift_id>/resize", methods=["POST"], endpoint="api_shift_resize")
    @json_errors
    def api_shift_resize(shift_id: int):
        data = _body()
        outcome = container.edit_reconciler.resize(
            shift_id,
            start=_ts(data.get("start"), "Thời gian bắt đầu"),
            end=_ts(data.get("end"), "Thời gian kết thúc"),
        )
        return _edit_response(outcome)

    @app.route("/api/shifts/<int:shift_id>", methods=["DELETE"], endpoint="api_shift_delete")
    @json_errors
    def api_shift_delete(shift_id: int):
        confirmed = (request.args.get("confirm") or "").lower() in {"1", "true", "yes"}
        if not container.edit_reconciler.delete(shift_id, confirmed=confirmed):
            return _fail("Cần xác nhận trước khi xóa ca làm việc", 400, reason="confirmation_required")
        return jsonify({"success": True, "message": "Đã xóa ca làm việc"})

    @app.route("/api/shifts/bulk/defaults", methods=["GET"], endpoint="api_bulk_defaults")
    @json_errors
    def api_bulk_defaults():
        today = now_utc().astimezone(tz).date()
        req = BulkRequest.defaults(today=today, employee_id=request.args.get("employee_id") or "")
        return jsonify(
            {
                "success": True,
                "defaults": {
                    "employeeId": req.employee_id,
                    "dateFrom": req.date_from.isoformat(),
                    "dateTo": req.date_to.isoformat(),
                    "weekdays": sorted(req.weekdays),
                    "timeStart": req.time_start,
                    "timeEnd": req.time_end,
                    "shiftType": req.shift_type.value,
                    "notes": "",
                },
            }
        )

    @app.route("/api/shifts/bulk/preview", methods=["POST"], endpoint="api_bulk_preview")
    @json_errors
    def api_bulk_preview():
        plan = container.bulk_service.plan(BulkRequest.from_payload(_body()))
        return jsonify({"success": True, "plan": plan.summary()})

    @app.route("/api/shifts/bulk", methods=["POST"], endpoint="api_bulk_generate")
    @json_errors
    def api_bulk_generate():
        data = _body()
        confirmed = bool(data.get("confirmed"))
        plans = []

        def confirm(plan) -> bool:
            plans.append(plan)
            return confirmed

        result = container.bulk_service.generate(
            BulkRequest.from_payload(data),
            confirm=confirm,
            created_by=data.get("createdBy"),
        )
        if not result.committed:
            return jsonify({"success": False, "reason": "confirmation_required", "plan": plans[0].summary(), **result.to_dict()}), 200
        return jsonify({"success": True, **result.to_dict()}), 201
