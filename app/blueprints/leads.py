"""Leads blueprint — /api/*

Per-lead contact timeline, follow-ups, the dashboard and client config.

Route Map:
  GET    /api/config                        — Client config (maps key, CSRF token)
  GET    /api/dashboard                     — Headline stats over visible leads
  GET    /api/leads/<id>/activities         — Timeline (newest first) + follow-up
  POST   /api/leads/<id>/activities         — Log an activity (+ optional follow-up)
  PUT    /api/leads/<id>/follow-up          — Schedule follow-up
  DELETE /api/leads/<id>/follow-up          — Complete (clear) follow-up
"""

from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf.csrf import generate_csrf

from app.decorators import permission_required
from app.services import role_service, timeline_service
from app.services.dashboard_service import compute_stats
from app.services.record_store import get_record_store

leads_bp = Blueprint("leads", __name__, url_prefix="/api")


def _visible_lead_or_404(lead_id):
    for record in get_record_store().snapshot():
        if record.id == lead_id:
            if not role_service.can_view_lead(current_user, record):
                abort(404)
            return record
    abort(404)


def _timeline_payload(record):
    return {
        "lead_id": record.id,
        "activities": [a.to_dict() for a in timeline_service.ordered_activities(record)],
        "follow_up_date": record.follow_up_date,
        "follow_up_due": timeline_service.is_follow_up_due(record),
    }


def _follow_up_from(data):
    """Epoch ms from {"timestamp": ms} or {"date": "YYYY-MM-DD", "time": "HH:MM"}."""
    if data.get("timestamp") is not None:
        try:
            return int(data["timestamp"])
        except (TypeError, ValueError):
            raise ValueError(f"Invalid follow-up timestamp: {data['timestamp']}")
    return timeline_service.parse_follow_up(data.get("date"), data.get("time"))


# ─── Config / dashboard ──────────────────────────────────────────

@leads_bp.route("/config")
def config():
    return jsonify({
        "google_maps_api_key": current_app.config.get("GOOGLE_MAPS_API_KEY"),
        "csrf_token": generate_csrf(),
    })


@leads_bp.route("/dashboard")
@permission_required("view_dashboard")
def dashboard():
    records = role_service.visible_records(current_user, get_record_store().snapshot())
    return jsonify(compute_stats(records))


# ─── Timeline ────────────────────────────────────────────────────

@leads_bp.route("/leads/<lead_id>/activities")
@login_required
def list_activities(lead_id):
    record = _visible_lead_or_404(lead_id)
    return jsonify(_timeline_payload(record))


@leads_bp.route("/leads/<lead_id>/activities", methods=["POST"])
@login_required
def add_activity(lead_id):
    record = _visible_lead_or_404(lead_id)
    if not role_service.can_log_activity(current_user, record):
        abort(403)

    data = request.get_json(silent=True) or {}
    try:
        activity = timeline_service.build_activity(
            data.get("type"),
            notes=data.get("notes"),
            outcome=data.get("outcome"),
            created_by=current_user.name,
        )
        follow_up = None
        if data.get("follow_up_date"):
            follow_up = timeline_service.parse_follow_up(
                data["follow_up_date"], data.get("follow_up_time"),
            )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    store = get_record_store()
    ok, error = timeline_service.add_activity(store, record, activity)
    if not ok:
        return jsonify({"error": error}), 500

    if follow_up is not None:
        ok, error = timeline_service.set_follow_up(store, record, follow_up)
        if not ok:
            return jsonify({"activity": activity.to_dict(), "error": error}), 500

    return jsonify({"activity": activity.to_dict(), "follow_up_date": follow_up}), 201


@leads_bp.route("/leads/<lead_id>/follow-up", methods=["PUT"])
@login_required
def schedule_follow_up(lead_id):
    record = _visible_lead_or_404(lead_id)
    if not role_service.can_log_activity(current_user, record):
        abort(403)

    data = request.get_json(silent=True) or {}
    try:
        when = _follow_up_from(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    ok, error = timeline_service.set_follow_up(get_record_store(), record, when)
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"follow_up_date": when})


@leads_bp.route("/leads/<lead_id>/follow-up", methods=["DELETE"])
@login_required
def complete_follow_up(lead_id):
    record = _visible_lead_or_404(lead_id)
    if not role_service.can_log_activity(current_user, record):
        abort(403)

    ok, error = timeline_service.complete_follow_up(get_record_store(), record)
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"follow_up_date": None})
