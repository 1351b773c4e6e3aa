from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import isoformat_or_none
from ..common.web import current_email, failure_response, identity_required, json_errors
from ..container import Container
from ..core.constants import DEFAULT_TOP_EVENTS, DEFAULT_TREND_MONTHS
from .model import AttendanceBreakdown, ParticipationTrend, TopEvent


def breakdown_to_dict(b: AttendanceBreakdown) -> dict:
    return {
        "present_count": b.present_count,
        "absent_count": b.absent_count,
        "excused_count": b.excused_count,
        "not_validated_count": b.not_validated_count,
        "total_count": b.total_count,
        "present_percentage": float(b.present_percentage),
        "absent_percentage": float(b.absent_percentage),
        "excused_percentage": float(b.excused_percentage),
    }


def trend_to_dict(trend: ParticipationTrend) -> dict:
    return {
        "data_points": [
            {
                "label": p.label,
                "year": p.year,
                "month": p.month,
                "registered_count": p.registered_count,
                "attended_count": p.attended_count,
                "participation_rate": float(p.participation_rate),
            }
            for p in trend.points
        ],
        "average_rate": float(trend.average_rate),
    }


def top_event_to_dict(e: TopEvent) -> dict:
    return {
        "event_id": e.event_id,
        "title": e.title,
        "start_date": isoformat_or_none(e.start_date),
        "registration_count": e.registration_count,
        "max_participants": e.max_participants,
        "fill_rate": float(e.fill_rate) if e.fill_rate is not None else None,
        "attendance_rate": float(e.attendance_rate),
    }


def register(app: Flask, container: Container) -> None:
    svc = container.statistics_service

    @app.route("/api/statistics/attendance-breakdown", methods=["GET"], endpoint="attendance_breakdown")
    @identity_required
    @json_errors
    def attendance_breakdown():
        result = svc.get_attendance_breakdown(current_email())
        if not result.ok:
            return failure_response(result)
        return jsonify(breakdown_to_dict(result.value)), 200

    @app.route("/api/statistics/participation-trend", methods=["GET"], endpoint="participation_trend")
    @identity_required
    @json_errors
    def participation_trend():
        months = request.args.get("months", DEFAULT_TREND_MONTHS, type=int)
        result = svc.get_participation_trend(current_email(), months)
        if not result.ok:
            return failure_response(result)
        return jsonify(trend_to_dict(result.value)), 200

    @app.route("/api/statistics/top-events", methods=["GET"], endpoint="top_events")
    @identity_required
    @json_errors
    def top_events():
        count = request.args.get("count", DEFAULT_TOP_EVENTS, type=int)
        result = svc.get_top_events(current_email(), count)
        if not result.ok:
            return failure_response(result)
        return jsonify([top_event_to_dict(e) for e in result.value]), 200
