"""Team blueprint — /api/team/*

Team roster and role management. Listing needs a login; changes need the
manage_team permission. Members cannot remove or demote themselves.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.decorators import permission_required
from app.models.team_member import TeamMember
from app.services import team_service
from app.services.role_service import ROLES

team_bp = Blueprint("team", __name__, url_prefix="/api/team")


@team_bp.route("")
@login_required
def list_members():
    members = TeamMember.query.order_by(TeamMember.name).all()
    return jsonify({
        "members": [m.to_dict() for m in members],
        "roles": {key: role["label"] for key, role in ROLES.items()},
    })


@team_bp.route("", methods=["POST"])
@permission_required("manage_team")
def add_member():
    data = request.get_json(silent=True) or {}
    member, error = team_service.add_team_member(
        data.get("name"),
        role=data.get("role"),
        email=data.get("email"),
        avatar=data.get("avatar"),
        password=data.get("password"),
    )
    if error:
        return jsonify({"error": error}), 400
    return jsonify({"member": member.to_dict()}), 201


@team_bp.route("/<member_id>", methods=["PUT"])
@permission_required("manage_team")
def update_member(member_id):
    data = request.get_json(silent=True) or {}
    member, error = team_service.update_team_member(current_user, member_id, data)
    if error:
        status = 404 if "not found" in error else 400
        return jsonify({"error": error}), status
    return jsonify({"member": member.to_dict()})


@team_bp.route("/<member_id>", methods=["DELETE"])
@permission_required("manage_team")
def remove_member(member_id):
    ok, error = team_service.remove_team_member(current_user, member_id)
    if not ok:
        status = 404 if "not found" in error else 400
        return jsonify({"error": error}), status
    return jsonify({"success": True})
