from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import isoformat_or_none
from ..common.validators import parse_attendance_status
from ..common.web import current_email, failure_response, identity_required, json_errors
from ..container import Container
from ..core.exceptions import ValidationError
from ..core.result import Result
from ..registrations.model import EventRegistration, RegistrationRow
from ..statistics.model import AttendanceStats
from .service import parse_attendance_items


def registration_to_dict(reg: EventRegistration) -> dict:
    att = reg.attendance
    return {
        "id": reg.registration_id,
        "user_id": reg.user_id,
        "status": reg.status.value,
        "registered_at": isoformat_or_none(reg.registered_at),
        "attendance_status": att.status.value if att.status else None,
        "attendance_validated_at": isoformat_or_none(att.validated_at),
        "attendance_validated_by": att.validated_by,
    }


def attendance_row_to_dict(row: RegistrationRow) -> dict:
    out = registration_to_dict(row.registration)
    out.update({"email": row.email, "full_name": row.full_name, "validated_by_name": row.validator_name})
    return out


def stats_to_dict(stats: AttendanceStats) -> dict:
    return {
        "event_id": stats.event_id,
        "event_title": stats.event_title,
        "event_date": isoformat_or_none(stats.event_date),
        "total_registered": stats.total_registered,
        "total_validated": stats.total_validated,
        "present_count": stats.present_count,
        "absent_count": stats.absent_count,
        "excused_count": stats.excused_count,
        "not_yet_validated_count": stats.not_yet_validated_count,
        "attendance_rate": float(stats.attendance_rate),
        "validation_rate": float(stats.validation_rate),
    }


def register(app: Flask, container: Container) -> None:
    svc = container.attendance_service
    stats_svc = container.statistics_service

    @app.route("/api/events/<int:event_id>/attendance", methods=["GET"], endpoint="event_attendance")
    @identity_required
    @json_errors
    def event_attendance(event_id: int):
        result = svc.get_event_attendance(event_id)
        if not result.ok:
            return failure_response(result)

        sheet = result.value
        return jsonify(
            {
                "id": sheet.event.event_id,
                "title": sheet.event.title,
                "start_date": isoformat_or_none(sheet.event.start_date),
                "end_date": isoformat_or_none(sheet.event.end_date),
                "location": sheet.event.location,
                "registrations": [attendance_row_to_dict(r) for r in sheet.rows],
                "stats": stats_to_dict(sheet.stats),
            }
        ), 200

    @app.route("/api/events/<int:event_id>/attendance/stats", methods=["GET"], endpoint="attendance_stats")
    @identity_required
    @json_errors
    def attendance_stats(event_id: int):
        materialize = request.args.get("materialize", "0") in {"1", "true", "yes"}
        result = stats_svc.get_attendance_stats(event_id, materialize=materialize)
        if not result.ok:
            return failure_response(result)
        return jsonify(stats_to_dict(result.value)), 200

    @app.route("/api/events/<int:event_id>/attendance/<int:registration_id>", methods=["PUT"], endpoint="validate_attendance")
    @identity_required
    @json_errors
    def validate_attendance(event_id: int, registration_id: int):
        data = request.get_json(silent=True) or {}
        try:
            status = parse_attendance_status(data.get("status"))
        except ValidationError as e:
            return failure_response(Result.failure(e))

        result = svc.validate_attendance(event_id, registration_id, status, current_email())
        if not result.ok:
            return failure_response(result)
        return jsonify(registration_to_dict(result.value)), 200

    @app.route("/api/events/<int:event_id>/attendance", methods=["PUT"], endpoint="bulk_validate_attendance")
    @identity_required
    @json_errors
    def bulk_validate_attendance(event_id: int):
        data = request.get_json(silent=True) or {}
        try:
            items = parse_attendance_items(data.get("attendances") or [])
        except ValidationError as e:
            return failure_response(Result.failure(e))

        result = svc.bulk_validate_attendance(event_id, items, current_email())
        if not result.ok:
            return failure_response(result)
        count = result.value
        return jsonify({"message": f"Successfully validated {count} attendances", "count": count}), 200

    @app.route("/api/events/<int:event_id>/attendance/<int:registration_id>", methods=["DELETE"], endpoint="reset_attendance")
    @identity_required
    @json_errors
    def reset_attendance(event_id: int, registration_id: int):
        result = svc.reset_attendance(event_id, registration_id, current_email())
        if not result.ok:
            return failure_response(result)
        return "", 204
