"""Sheet blueprint — /sheet/api/*

The team sheet: filtered/sorted lead grid with inline cell editing,
selection and bulk actions. Filters, sort order, the active edit and the
selection live in the member's session; every request rebuilds the view
from a fresh store snapshot.

Route Map:
  GET    /sheet/api/leads                 — Current view + sheet state
  POST   /sheet/api/leads                 — Add a lead
  PUT    /sheet/api/filters               — Replace filter criteria
  POST   /sheet/api/filters/reset         — Back to defaults
  POST   /sheet/api/sort                  — Sort by key (toggles direction)
  POST   /sheet/api/edit                  — Start editing a cell
  PUT    /sheet/api/edit                  — Stage a value
  POST   /sheet/api/edit/commit           — Commit (Enter / Tab)
  POST   /sheet/api/edit/blur             — Focus left the cell (commit)
  POST   /sheet/api/edit/cancel           — Discard (Escape)
  POST   /sheet/api/selection/toggle      — Toggle one row
  POST   /sheet/api/selection/all         — Select all visible / none
  DELETE /sheet/api/selection             — Clear selection
  PUT    /sheet/api/leads/<id>/status     — Change status (immediate)
  PUT    /sheet/api/leads/<id>/assignee   — Assign / unassign
  DELETE /sheet/api/leads/<id>            — Delete (confirm required)
  POST   /sheet/api/bulk/status           — Status for every selected lead
  POST   /sheet/api/bulk/delete           — Delete selected (confirm required)
"""

from flask import Blueprint, abort, jsonify, request, session
from flask_login import current_user, login_required

from app.models.records import LEAD_STATUSES, LeadRecord, new_lead_id
from app.services import role_service
from app.services.grid_service import ConfirmationRequired, LeadSheet
from app.services.lead_view import FilterCriteria, SortSpec, team_members
from app.services.record_store import get_record_store
from app.services.timeline_service import is_follow_up_due

sheet_bp = Blueprint("sheet", __name__, url_prefix="/sheet/api")


# ─── Helpers ─────────────────────────────────────────────────────

def _open_sheet():
    """Build the member's sheet from session state and a fresh snapshot."""
    state = session.get("sheet") or {}
    try:
        criteria = FilterCriteria.from_dict(state.get("filters"))
        sort = SortSpec.from_dict(state.get("sort"))
    except ValueError:
        criteria, sort = FilterCriteria(), SortSpec()
    sheet = LeadSheet(
        get_record_store(), current_user,
        criteria=criteria, sort=sort, state=state.get("grid"),
    )
    return sheet.open()


def _save(sheet):
    session["sheet"] = sheet.to_state()


def _payload(sheet):
    return {
        "leads": [_row(r) for r in sheet.rows],
        "count": len(sheet.rows),
        "team_members": team_members(sheet.controller.records.values()),
        "statuses": list(LEAD_STATUSES),
        **sheet.to_state(),
    }


def _row(record):
    row = record.to_dict()
    row["activity_count"] = len(record.activities)
    row["follow_up_due"] = is_follow_up_due(record)
    row["can_edit"] = role_service.can_edit_lead(current_user, record)
    return row


def _lead_or_404(sheet, lead_id):
    record = sheet.record(lead_id)
    if record is None:
        abort(404)
    return record


def _require_edit(record):
    if not role_service.can_edit_lead(current_user, record):
        abort(403)


def _confirmed(data):
    if data.get("confirm") is True:
        return True
    return request.args.get("confirm", "").lower() in ("1", "true", "yes")


def _results(results):
    return [{"id": lead_id, "ok": ok, "error": error} for lead_id, ok, error in results]


# ─── View ────────────────────────────────────────────────────────

@sheet_bp.route("/leads")
@login_required
def view():
    sheet = _open_sheet()
    _save(sheet)
    return jsonify(_payload(sheet))


@sheet_bp.route("/filters", methods=["PUT"])
@login_required
def set_filters():
    data = request.get_json(silent=True) or {}
    try:
        criteria = FilterCriteria.from_dict(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    sheet = _open_sheet()
    sheet.set_criteria(criteria)
    _save(sheet)
    return jsonify(_payload(sheet))


@sheet_bp.route("/filters/reset", methods=["POST"])
@login_required
def reset_filters():
    sheet = _open_sheet()
    sheet.set_criteria(FilterCriteria())
    _save(sheet)
    return jsonify(_payload(sheet))


@sheet_bp.route("/sort", methods=["POST"])
@login_required
def sort():
    data = request.get_json(silent=True) or {}
    key = (data.get("key") or "").strip()
    if not key:
        return jsonify({"error": "Sort key is required"}), 400
    sheet = _open_sheet()
    sheet.sort_by(key)
    _save(sheet)
    return jsonify(_payload(sheet))


# ─── Create ──────────────────────────────────────────────────────

@sheet_bp.route("/leads", methods=["POST"])
@login_required
def create_lead():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Name is required"}), 400

    status = data.get("status") or "NEW"
    if status not in LEAD_STATUSES:
        return jsonify({"error": f"Invalid status: {status}"}), 400

    assigned_to = (data.get("assigned_to") or "").strip() or None
    if assigned_to and not role_service.has_permission(current_user, "assign_leads"):
        return jsonify({"error": "You cannot assign leads"}), 403

    record = LeadRecord(
        id=new_lead_id(),
        name=name,
        phone=(data.get("phone") or "").strip() or None,
        address=(data.get("address") or "").strip() or None,
        notes=(data.get("notes") or "").strip() or None,
        status=status,
        added_by=current_user.name,
        assigned_to=assigned_to,
    )
    ok, error = get_record_store().create(record)
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"id": record.id}), 201


# ─── Cell editing ────────────────────────────────────────────────

@sheet_bp.route("/edit", methods=["POST"])
@login_required
def start_edit():
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    record = _lead_or_404(sheet, data.get("id"))
    _require_edit(record)
    try:
        value, previous = sheet.controller.start_edit(record.id, data.get("field"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    _save(sheet)
    body = {"editing": {"id": record.id, "field": data.get("field")}, "value": value}
    if previous is not None:
        written, error = previous
        body["previous"] = {"written": written, "error": error}
    return jsonify(body)


@sheet_bp.route("/edit", methods=["PUT"])
@login_required
def stage_edit():
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    try:
        sheet.controller.stage(data.get("value"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 409
    _save(sheet)
    return jsonify(sheet.controller.to_state())


@sheet_bp.route("/edit/commit", methods=["POST"])
@sheet_bp.route("/edit/blur", methods=["POST"])
@login_required
def commit_edit():
    sheet = _open_sheet()
    editing = sheet.controller.editing
    if editing is not None:
        record = sheet.record(editing[0])
        if record is not None:
            _require_edit(record)
    written, error = sheet.controller.commit_edit()
    _save(sheet)
    if error:
        return jsonify({"written": False, "error": error}), 500
    return jsonify({"written": written})


@sheet_bp.route("/edit/cancel", methods=["POST"])
@login_required
def cancel_edit():
    sheet = _open_sheet()
    sheet.controller.cancel_edit()
    _save(sheet)
    return jsonify({"written": False})


# ─── Selection ───────────────────────────────────────────────────

@sheet_bp.route("/selection/toggle", methods=["POST"])
@login_required
def toggle_selection():
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    record = _lead_or_404(sheet, data.get("id"))
    selected = sheet.controller.toggle_selection(record.id)
    _save(sheet)
    return jsonify({"id": record.id, "selected": selected,
                    "selection": sorted(sheet.controller.selected)})


@sheet_bp.route("/selection/all", methods=["POST"])
@login_required
def select_all():
    sheet = _open_sheet()
    sheet.controller.select_all()
    _save(sheet)
    return jsonify({"selection": sorted(sheet.controller.selected)})


@sheet_bp.route("/selection", methods=["DELETE"])
@login_required
def clear_selection():
    sheet = _open_sheet()
    sheet.controller.clear_selection()
    _save(sheet)
    return jsonify({"selection": []})


# ─── Single-lead actions ─────────────────────────────────────────

@sheet_bp.route("/leads/<lead_id>/status", methods=["PUT"])
@login_required
def update_status(lead_id):
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    record = _lead_or_404(sheet, lead_id)
    _require_edit(record)
    try:
        ok, error = sheet.controller.update_status(record.id, data.get("status"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"success": True})


@sheet_bp.route("/leads/<lead_id>/assignee", methods=["PUT"])
@login_required
def update_assignee(lead_id):
    if not role_service.has_permission(current_user, "assign_leads"):
        abort(403)
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    record = _lead_or_404(sheet, lead_id)
    assigned_to = (data.get("assigned_to") or "").strip() or None
    ok, error = get_record_store().write(record.id, {"assigned_to": assigned_to})
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"success": True, "assigned_to": assigned_to})


@sheet_bp.route("/leads/<lead_id>", methods=["DELETE"])
@login_required
def delete_lead(lead_id):
    if not role_service.can_delete_lead(current_user):
        abort(403)
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    record = _lead_or_404(sheet, lead_id)
    try:
        ok, error = sheet.controller.delete_lead(record.id, lambda message: _confirmed(data))
    except ConfirmationRequired as e:
        return jsonify({"error": str(e), "confirm": f"Delete {record.name or record.id}?"}), 409
    _save(sheet)
    if not ok:
        return jsonify({"error": error}), 500
    return jsonify({"success": True})


# ─── Bulk actions ────────────────────────────────────────────────

@sheet_bp.route("/bulk/status", methods=["POST"])
@login_required
def bulk_status():
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    for lead_id in sheet.controller.selected:
        _require_edit(sheet.record(lead_id))
    try:
        results = sheet.controller.bulk_status_change(data.get("status"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    _save(sheet)
    return jsonify({"results": _results(results)})


@sheet_bp.route("/bulk/delete", methods=["POST"])
@login_required
def bulk_delete():
    if not role_service.can_delete_lead(current_user):
        abort(403)
    data = request.get_json(silent=True) or {}
    sheet = _open_sheet()
    count = len(sheet.controller.selected)
    try:
        results = sheet.controller.bulk_delete(lambda message: _confirmed(data))
    except ConfirmationRequired as e:
        return jsonify({"error": str(e), "confirm": f"Delete {count} leads?"}), 409
    _save(sheet)
    return jsonify({"results": _results(results), "selection": []})
