"""Auth blueprint — /auth/*

Team members log in with their member id and password. The logged-in
member (flask_login.current_user) is the session context every other
blueprint passes into the services.
"""

import logging

from flask import Blueprint, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from app.extensions import db, limiter
from app.models.team_member import TeamMember
from app.services import role_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    """Log in as a team member. Body: {"member_id": ..., "password": ...}."""
    data = request.get_json(silent=True) or {}
    member_id = (data.get("member_id") or "").strip().lower()
    password = data.get("password") or ""

    member = db.session.get(TeamMember, member_id) if member_id else None
    if (
        member is None
        or not member.password_hash
        or not check_password_hash(member.password_hash, password)
    ):
        logger.info(f"Failed login for member '{member_id}'")
        return jsonify({"error": "Invalid member or password"}), 401

    # Sheet filters/selection belong to the previous member, if any
    session.pop("sheet", None)
    login_user(member, remember=bool(data.get("remember")))
    return jsonify({"member": _member_payload(member)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    session.pop("sheet", None)
    return jsonify({"success": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"member": _member_payload(current_user)})


def _member_payload(member):
    payload = member.to_dict()
    role = role_service.ROLES.get(member.role, {})
    payload["permissions"] = sorted(role.get("permissions", []))
    return payload
