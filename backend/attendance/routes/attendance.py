# Overview: Flask API routes for attendance sessions; parses input and returns JSON responses.

"""
Attendance Routes

SECURITY:
- Clock in/out, status, today, and history act on the authenticated employee.
- /admin/* routes require the admin role.

Polling contract: the UI polls /status every 60s and /admin/live every 30s.
These are plain reads; there is no push channel.
"""

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..errors import AttendanceError, ValidationError
from ..services import audit_service, export_service
from ..services.entry_store import LogFilters
from ..services.runtime import build_engines, get_runtime
from ..validation import (
    CLOCK_IN_POLICY,
    CLOCK_OUT_POLICY,
    EDIT_ENTRY_POLICY,
    FLAG_ENTRY_POLICY,
    MANUAL_ENTRY_POLICY,
    validate_payload,
)
from attendance.time_utils import parse_iso_date, to_utc_z


attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


def _error(e: AttendanceError):
    return jsonify({"error": str(e)}), e.http_status


def _expected_version(data: dict) -> int | None:
    """versionId from the body wins; otherwise an If-Match header."""
    if data.get("versionId") is not None:
        return data["versionId"]
    header = request.headers.get("If-Match")
    if not header:
        return None
    value = header.strip().strip('"')
    if not value.isdigit():
        raise ValidationError("If-Match must be an entry versionId")
    return int(value)


def _arg_date(*names: str):
    for name in names:
        raw = request.args.get(name)
        if raw:
            try:
                return parse_iso_date(raw)
            except ValueError:
                raise ValidationError(f"{name} must be a YYYY-MM-DD date")
    return None


def _arg_int(*names: str):
    for name in names:
        raw = request.args.get(name)
        if raw:
            if not raw.strip().isdigit():
                raise ValidationError(f"{name} must be an integer")
            return int(raw)
    return None


def _log_filters() -> LogFilters:
    return LogFilters(
        date=_arg_date("date"),
        date_from=_arg_date("date_from", "dateFrom"),
        date_to=_arg_date("date_to", "dateTo"),
        employee_id=_arg_int("employee_id", "employeeId"),
        department_id=_arg_int("department_id", "departmentId"),
        status=request.args.get("status"),
    )


# ----------------------------------------------------------------------
# Employee endpoints
# ----------------------------------------------------------------------

@attendance_bp.post("/clock-in")
@require_auth
def clock_in_route():
    try:
        data = validate_payload(request.get_json(silent=True), CLOCK_IN_POLICY)
        entry = build_engines().clock.clock_in(
            g.current_employee.id,
            note=data.get("note"),
            device_info=data.get("deviceInfo"),
        )
        return jsonify({
            "id": entry.id,
            "clockedInAt": to_utc_z(entry.clock_in),
            "note": entry.note,
        }), 201
    except AttendanceError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to clock in")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.post("/clock-out")
@require_auth
def clock_out_route():
    try:
        data = validate_payload(request.get_json(silent=True), CLOCK_OUT_POLICY)
        entry = build_engines().clock.clock_out(
            g.current_employee.id,
            work_summary=data.get("workSummary"),
        )
        return jsonify({
            "id": entry.id,
            "clockOut": to_utc_z(entry.clock_out),
            "durationMinutes": entry.duration_minutes,
            "workSummary": entry.work_summary,
            "status": entry.status.value,
        })
    except AttendanceError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to clock out")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/status")
@require_auth
def status_route():
    try:
        return jsonify(build_engines().clock.status(g.current_employee.id))
    except Exception:
        current_app.logger.exception("Failed to load attendance status")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/today")
@require_auth
def today_route():
    try:
        return jsonify(build_engines().aggregation.today(g.current_employee.id))
    except Exception:
        current_app.logger.exception("Failed to load today attendance")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/history")
@require_auth
def history_route():
    now = get_runtime().now()
    try:
        year = _arg_int("year") or now.year
        month = _arg_int("month") or now.month
        return jsonify(build_engines().aggregation.history(g.current_employee.id, year, month))
    except AttendanceError as e:
        return _error(e)


# ----------------------------------------------------------------------
# Admin endpoints
# ----------------------------------------------------------------------

@attendance_bp.get("/admin/logs")
@require_auth
@require_admin
def admin_logs_route():
    try:
        page = _arg_int("page") or 1
        return jsonify(build_engines().aggregation.admin_logs(_log_filters(), page=page))
    except AttendanceError as e:
        return _error(e)


@attendance_bp.get("/admin/logs/export")
@require_auth
@require_admin
def admin_logs_export_route():
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in ("csv", "json"):
        return jsonify({"error": "format must be csv or json"}), 400
    try:
        entries = build_engines().store.list_logs(_log_filters())
    except AttendanceError as e:
        return _error(e)

    if fmt == "csv":
        body = export_service.render_csv(entries)
        mimetype = "text/csv"
    else:
        body = export_service.render_json(entries)
        mimetype = "application/json"

    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename=attendance-logs.{fmt}"},
    )


@attendance_bp.patch("/admin/logs/<int:entry_id>")
@require_auth
@require_admin
def admin_edit_entry_route(entry_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), EDIT_ENTRY_POLICY)
        entry = build_engines().overrides.edit_entry(
            entry_id,
            actor=g.current_employee,
            edit_reason=data.get("editReason"),
            clock_in=data.get("clockIn"),
            clock_out=data.get("clockOut"),
            work_summary=data.get("workSummary"),
            expected_version=_expected_version(data),
        )
        return jsonify(entry.to_dict(include_employee=True))
    except AttendanceError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to edit attendance entry")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.patch("/admin/logs/<int:entry_id>/flag")
@require_auth
@require_admin
def admin_flag_entry_route(entry_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), FLAG_ENTRY_POLICY)
        entry = build_engines().overrides.flag_entry(
            entry_id,
            actor=g.current_employee,
            is_flagged=data["isFlagged"],
            flag_reason=data.get("flagReason"),
            expected_version=_expected_version(data),
        )
        return jsonify(entry.to_dict(include_employee=True))
    except AttendanceError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to flag attendance entry")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/admin/logs/<int:entry_id>/audit")
@require_auth
@require_admin
def admin_entry_audit_route(entry_id: int):
    try:
        events = audit_service.list_events(build_engines().store, entry_id)
        return jsonify({"events": [ev.to_dict() for ev in events]})
    except AttendanceError as e:
        return _error(e)


@attendance_bp.post("/admin/manual-entry")
@require_auth
@require_admin
def admin_manual_entry_route():
    try:
        data = validate_payload(request.get_json(silent=True), MANUAL_ENTRY_POLICY)
        entry = build_engines().overrides.manual_entry(
            actor=g.current_employee,
            employee_id=data.get("employeeId"),
            clock_in=data.get("clockIn"),
            clock_out=data.get("clockOut"),
            work_summary=data.get("workSummary"),
            manual_entry_reason=data.get("manualEntryReason"),
        )
        return jsonify(entry.to_dict(include_employee=True)), 201
    except AttendanceError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create manual attendance entry")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/admin/live")
@require_auth
@require_admin
def admin_live_route():
    try:
        return jsonify(build_engines().aggregation.live_status())
    except Exception:
        current_app.logger.exception("Failed to load live attendance")
        return jsonify({"error": "Internal server error"}), 500


@attendance_bp.get("/admin/summary")
@require_auth
@require_admin
def admin_summary_route():
    try:
        return jsonify(build_engines().aggregation.admin_summary(_arg_date("date")))
    except AttendanceError as e:
        return _error(e)
