from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import isoformat_or_none
from ..common.validators import parse_id_list
from ..common.web import current_email, failure_response, identity_required, json_errors
from ..container import Container
from ..core.exceptions import ValidationError
from .model import RegistrationRow, UserRegistration


def registration_row_to_dict(row: RegistrationRow) -> dict:
    reg = row.registration
    return {
        "id": reg.registration_id,
        "user_id": reg.user_id,
        "email": row.email,
        "full_name": row.full_name,
        "status": reg.status.value,
        "registered_at": isoformat_or_none(reg.registered_at),
        "form_payload": reg.form_payload,
    }


def user_registration_to_dict(item: UserRegistration) -> dict:
    reg = item.registration
    return {
        "id": reg.registration_id,
        "event_id": reg.event_id,
        "event_title": item.event_title,
        "event_start_date": isoformat_or_none(item.event_start_date),
        "event_end_date": isoformat_or_none(item.event_end_date),
        "event_location": item.event_location,
        "status": reg.status.value,
        "registered_at": isoformat_or_none(reg.registered_at),
        "attendance_status": reg.attendance.status.value if reg.attendance.status else None,
    }


def register(app: Flask, container: Container) -> None:
    svc = container.registration_service

    @app.route("/api/events/<int:event_id>/registrations", methods=["POST"], endpoint="register_for_event")
    @identity_required
    @json_errors
    def register_for_event(event_id: int):
        data = request.get_json(silent=True) or {}
        result = svc.register_for_event(event_id, current_email(), data.get("form_payload"))
        if not result.ok:
            return failure_response(result)
        return jsonify({"success": True, "message": result.message, "registration_id": result.value.registration_id}), 200

    @app.route("/api/events/<int:event_id>/registrations", methods=["DELETE"], endpoint="unregister_from_event")
    @identity_required
    @json_errors
    def unregister_from_event(event_id: int):
        result = svc.unregister_from_event(event_id, current_email())
        if not result.ok:
            return failure_response(result)
        return jsonify({"success": True, "message": result.message}), 200

    @app.route("/api/events/<int:event_id>/registrations", methods=["GET"], endpoint="event_registrations")
    @identity_required
    @json_errors
    def event_registrations(event_id: int):
        result = svc.get_event_registrations(event_id)
        if not result.ok:
            return failure_response(result)

        data = result.value
        return jsonify(
            {
                "event_id": data.event.event_id,
                "title": data.event.title,
                "max_participants": data.event.max_participants,
                "registered_count": data.active_count,
                "is_current_user_registered": svc.is_registered(event_id, current_email()),
                "registrations": [registration_row_to_dict(r) for r in data.rows],
            }
        ), 200

    @app.route("/api/registrations/me", methods=["GET"], endpoint="my_registrations")
    @identity_required
    @json_errors
    def my_registrations():
        result = svc.get_user_registrations(current_email())
        if not result.ok:
            return failure_response(result)
        return jsonify({"registrations": [user_registration_to_dict(r) for r in result.value]}), 200

    @app.route("/api/registrations/me/status", methods=["GET"], endpoint="my_registration_status")
    @identity_required
    @json_errors
    def my_registration_status():
        try:
            event_ids = parse_id_list(request.args.get("event_ids"), "event_ids")
        except ValidationError as e:
            return jsonify({"success": False, "error": e.kind.value, "message": str(e)}), 400

        flags = svc.registration_flags(current_email(), event_ids)
        return jsonify({"registered": {str(k): v for k, v in flags.items()}}), 200
