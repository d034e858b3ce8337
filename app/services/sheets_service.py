"""Sheets service — the legacy Google Sheets lead list.

Rows are addressed by position, not id, and there is no change feed, so
this path is never merged into the record store implicitly. import_rows()
copies rows in as brand-new leads with fresh ids; nothing links them back
to their sheet row afterwards.

Sheet layout (tab GOOGLE_SHEETS_TAB, default "Leads"):
    A Name | B Address | C Phone | D Website | E Email | F Notes |
    G Lat  | H Lng     | I Called | J Status
"""

import logging
import re

import requests
from flask import current_app
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from app.models.records import LEAD_STATUSES, LeadRecord, new_lead_id, now_ms

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

HEADERS = ["Name", "Address", "Phone", "Website", "Email", "Notes", "Lat", "Lng", "Called", "Status"]


class SheetsNotConfigured(Exception):
    """Sheet id or service-account credentials are missing."""


def is_configured():
    config = current_app.config
    return bool(
        config.get("GOOGLE_SHEET_ID")
        and config.get("GOOGLE_SHEETS_CLIENT_EMAIL")
        and config.get("GOOGLE_SHEETS_PRIVATE_KEY")
    )


def _access_token():
    """Fetch a bearer token for the configured service account."""
    config = current_app.config
    credentials = service_account.Credentials.from_service_account_info(
        {
            "client_email": config["GOOGLE_SHEETS_CLIENT_EMAIL"],
            "private_key": config["GOOGLE_SHEETS_PRIVATE_KEY"],
            "token_uri": TOKEN_URI,
        },
        scopes=SCOPES,
    )
    credentials.refresh(Request())
    return credentials.token


def _request(method, cell_range, params=None, body=None):
    if not is_configured():
        raise SheetsNotConfigured("Google Sheets not configured")

    sheet_id = current_app.config["GOOGLE_SHEET_ID"]
    url = f"{SHEETS_API}/{sheet_id}/values/{cell_range}"
    if method == "POST":
        url += ":append"

    resp = requests.request(
        method,
        url,
        headers={"Authorization": f"Bearer {_access_token()}"},
        params=params,
        json=body,
        timeout=15,
    )
    resp.raise_for_status()
    return resp.json() if resp.content else {}


def _tab():
    return current_app.config.get("GOOGLE_SHEETS_TAB") or "Leads"


def header_key(header):
    """'Last Called' -> 'last_called'."""
    return re.sub(r"\s+", "_", header.strip().lower())


def list_rows():
    """All data rows as dicts keyed by the header row.

    Row ids are 1-based data-row numbers (sheet row 2 is id 1); missing
    trailing cells come back as "".
    """
    data = _request("GET", f"{_tab()}!A:J")
    rows = data.get("values") or []
    if not rows:
        return []

    headers = [header_key(h) for h in rows[0]]
    leads = []
    for index, row in enumerate(rows[1:]):
        lead = {"id": index + 1}
        for i, key in enumerate(headers):
            lead[key] = row[i] if i < len(row) else ""
        leads.append(lead)
    return leads


def append_row(data):
    values = [[
        data.get("name") or "",
        data.get("address") or "",
        data.get("phone") or "",
        data.get("website") or "",
        data.get("email") or "",
        data.get("notes") or "",
        data.get("lat") or "",
        data.get("lng") or "",
        "Yes" if data.get("called") else "No",
        data.get("status") or "New",
    ]]
    _request("POST", f"{_tab()}!A:J",
             params={"valueInputOption": "USER_ENTERED"},
             body={"values": values})
    logger.info(f"Appended sheet row for {data.get('name') or '(unnamed)'}")


def update_row(row_index, called=False, status=None, notes=None):
    """Update called/status (and notes when given) for a data row.

    row_index is 0-based over data rows: 0 is sheet row 2.
    """
    if row_index < 0:
        raise ValueError(f"Invalid row index: {row_index}")
    sheet_row = row_index + 2
    params = {"valueInputOption": "USER_ENTERED"}

    _request("PUT", f"{_tab()}!I{sheet_row}:J{sheet_row}", params=params,
             body={"values": [["Yes" if called else "No", status or ""]]})

    if notes is not None:
        _request("PUT", f"{_tab()}!F{sheet_row}", params=params,
                 body={"values": [[notes]]})


def init_sheet():
    """Write the header row if the sheet is empty. Returns True if written."""
    data = _request("GET", f"{_tab()}!A1:J1")
    if data.get("values"):
        return False
    _request("PUT", f"{_tab()}!A1:J1",
             params={"valueInputOption": "USER_ENTERED"},
             body={"values": [HEADERS]})
    logger.info("Initialized sheet headers")
    return True


# ──────────────────────────────────────────────
# One-way import into the record store
# ──────────────────────────────────────────────

def row_to_record(row, added_by=None, now=None):
    """Map a sheet row to a new LeadRecord with a fresh id."""
    now = now_ms() if now is None else now
    status = (row.get("status") or "").strip().upper()
    if status not in LEAD_STATUSES:
        status = "NEW"

    extra = {}
    for key in ("website", "email", "lat", "lng"):
        if row.get(key):
            extra[key] = row[key]
    if row.get("called"):
        extra["called"] = str(row["called"]).strip().lower() == "yes"

    return LeadRecord(
        id=new_lead_id(),
        name=row.get("name") or None,
        phone=row.get("phone") or None,
        address=row.get("address") or None,
        notes=row.get("notes") or None,
        status=status,
        added_by=added_by,
        added_at=now,
        last_updated=now,
        extra=extra,
    )


def import_rows(store, rows, added_by=None):
    """Create one lead per row. Returns (imported, failed) counts."""
    imported = failed = 0
    for row in rows:
        if not (row.get("name") or "").strip():
            continue
        ok, error = store.create(row_to_record(row, added_by=added_by))
        if ok:
            imported += 1
        else:
            failed += 1
            logger.warning(f"Sheet row {row.get('id')} not imported: {error}")
    return imported, failed
