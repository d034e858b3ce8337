"""Sheets blueprint — /api/sheets/*

Legacy Google Sheets lead list. Rows are addressed by position; nothing
here touches the record store except the explicit import endpoint.
Admin only.

Route Map:
  GET  /api/sheets/leads               — All rows
  POST /api/sheets/leads               — Append a row
  PUT  /api/sheets/leads/<row_index>   — Update called/status/notes (0-based)
  POST /api/sheets/init                — Write headers if empty
  POST /api/sheets/import              — Copy rows into the record store as new leads
"""

import logging
from functools import wraps

import requests
from flask import Blueprint, jsonify, request
from flask_login import current_user
from google.auth.exceptions import GoogleAuthError

from app.decorators import admin_required
from app.services import sheets_service
from app.services.record_store import get_record_store
from app.services.sheets_service import SheetsNotConfigured

logger = logging.getLogger(__name__)

sheets_bp = Blueprint("sheets", __name__, url_prefix="/api/sheets")


def _sheets_endpoint(failure_message):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except SheetsNotConfigured:
                return jsonify({"error": "Google Sheets not configured"}), 503
            except (requests.RequestException, GoogleAuthError) as e:
                logger.error(f"{failure_message}: {e}")
                return jsonify({"error": failure_message}), 500

        return decorated

    return decorator


@sheets_bp.route("/leads")
@admin_required
@_sheets_endpoint("Failed to fetch leads")
def list_rows():
    return jsonify(sheets_service.list_rows())


@sheets_bp.route("/leads", methods=["POST"])
@admin_required
@_sheets_endpoint("Failed to add lead")
def append_row():
    data = request.get_json(silent=True) or {}
    sheets_service.append_row(data)
    return jsonify({"success": True, "message": "Lead added successfully"})


@sheets_bp.route("/leads/<int:row_index>", methods=["PUT"])
@admin_required
@_sheets_endpoint("Failed to update lead")
def update_row(row_index):
    data = request.get_json(silent=True) or {}
    sheets_service.update_row(
        row_index,
        called=bool(data.get("called")),
        status=data.get("status"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "message": "Lead updated successfully"})


@sheets_bp.route("/init", methods=["POST"])
@admin_required
@_sheets_endpoint("Failed to initialize sheet")
def init_sheet():
    written = sheets_service.init_sheet()
    return jsonify({"success": True, "message": "Sheet initialized", "headers_written": written})


@sheets_bp.route("/import", methods=["POST"])
@admin_required
@_sheets_endpoint("Failed to import sheet")
def import_sheet():
    rows = sheets_service.list_rows()
    imported, failed = sheets_service.import_rows(
        get_record_store(), rows, added_by=current_user.name,
    )
    return jsonify({"imported": imported, "failed": failed})
