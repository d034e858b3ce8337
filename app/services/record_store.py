"""Record store — subscribe/write/delete façade over the lead documents.

Two backends:
- SqlRecordStore: leads table in the app database, listeners notified
  in-process after every commit.
- FirebaseRecordStore: Firebase Realtime Database REST API, change feed
  via the REST event stream.

Contract shared by both:
- subscribe(callback) pushes the FULL record list on every change, never
  a diff. Returns an unsubscribe function.
- write(lead_id, updates) is a field-level merge; last_updated is always
  stamped. Returns (ok: bool, error: str|None), never raises.
- delete(lead_id) returns (ok, error).
- An unconfigured store is a no-op returning (False, NOT_CONFIGURED).
"""

import logging
import threading

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.models.lead import Lead, LeadTombstone
from app.models.records import DOCUMENT_KEYS, LeadRecord, field_to_document, now_ms

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Record store not configured"

# Fields a caller may never overwrite once set
IMMUTABLE_FIELDS = ("id", "added_at")


def _noop():
    return None


class RecordStore:
    """Base store. Subclasses implement _fetch_all, _patch and _remove."""

    configured = True

    def __init__(self, clock=now_ms):
        self.clock = clock

    # ── Reads ──

    def snapshot(self):
        """Return the full current record list ([] when unavailable)."""
        if not self.configured:
            return []
        return self._fetch_all()

    def subscribe(self, on_snapshot):
        raise NotImplementedError

    # ── Writes ──

    def write(self, lead_id, updates):
        if not self.configured:
            return False, NOT_CONFIGURED
        if not lead_id:
            return False, "Lead id is required"

        fields = {k: v for k, v in dict(updates).items() if k not in IMMUTABLE_FIELDS}
        unknown = [k for k in fields if k not in DOCUMENT_KEYS and k != "extra"]
        if unknown:
            return False, f"Unknown lead fields: {', '.join(sorted(unknown))}"
        fields.setdefault("last_updated", self.clock())
        return self._patch(lead_id, fields, creating=False)

    def create(self, record):
        """Store a brand-new record under its own id."""
        if not self.configured:
            return False, NOT_CONFIGURED
        fields = {
            attr: getattr(record, attr)
            for attr in DOCUMENT_KEYS
            if attr != "id"
        }
        fields["extra"] = dict(record.extra)
        now = self.clock()
        fields["added_at"] = record.added_at or now
        fields["last_updated"] = record.last_updated or now
        return self._patch(record.id, fields, creating=True)

    def delete(self, lead_id):
        if not self.configured:
            return False, NOT_CONFIGURED
        return self._remove(lead_id)

    # ── Backend hooks ──

    def _fetch_all(self):
        raise NotImplementedError

    def _patch(self, lead_id, fields, creating):
        raise NotImplementedError

    def _remove(self, lead_id):
        raise NotImplementedError


# ──────────────────────────────────────────────
# SQL-backed store
# ──────────────────────────────────────────────

class SqlRecordStore(RecordStore):
    """Leads table with in-process change notification."""

    def __init__(self, clock=now_ms):
        super().__init__(clock=clock)
        self._listeners = []
        self._lock = threading.Lock()

    def subscribe(self, on_snapshot):
        with self._lock:
            self._listeners.append(on_snapshot)
        on_snapshot(self._fetch_all())

        def unsubscribe():
            with self._lock:
                if on_snapshot in self._listeners:
                    self._listeners.remove(on_snapshot)

        return unsubscribe

    def _fetch_all(self):
        return [lead.to_record() for lead in Lead.query.order_by(Lead.added_at).all()]

    def _patch(self, lead_id, fields, creating):
        try:
            if db.session.get(LeadTombstone, lead_id) is not None:
                return False, f"Lead {lead_id} was deleted"

            lead = db.session.get(Lead, lead_id)
            if lead is None:
                lead = Lead(id=lead_id, added_at=fields.get("added_at") or self.clock())
                db.session.add(lead)
            elif creating:
                return False, f"Lead {lead_id} already exists"

            for attr, value in fields.items():
                if attr == "activities":
                    value = field_to_document({"activities": value or []})["activities"]
                elif attr == "extra":
                    value = {**(lead.extra or {}), **(value or {})}
                elif attr == "added_at" and not creating:
                    continue
                setattr(lead, attr, value)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Lead write failed for {lead_id}: {e}")
            return False, str(e)

        self._notify()
        return True, None

    def _remove(self, lead_id):
        try:
            lead = db.session.get(Lead, lead_id)
            if lead is not None:
                db.session.delete(lead)
            if db.session.get(LeadTombstone, lead_id) is None:
                db.session.add(LeadTombstone(id=lead_id))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Lead delete failed for {lead_id}: {e}")
            return False, str(e)

        self._notify()
        return True, None

    def _notify(self):
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        records = self._fetch_all()
        for listener in listeners:
            try:
                listener(list(records))
            except Exception as e:
                # One broken subscriber must not block the others
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)


# ──────────────────────────────────────────────
# Firebase Realtime Database (REST)
# ──────────────────────────────────────────────

class FirebaseRecordStore(RecordStore):
    """Leads under /leads/<id> in a Firebase Realtime Database."""

    def __init__(self, database_url, auth_token=None, timeout=10, clock=now_ms):
        super().__init__(clock=clock)
        self.database_url = (database_url or "").rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.configured = bool(self.database_url)

    def _url(self, path=""):
        suffix = f"/{path}" if path else ""
        return f"{self.database_url}/leads{suffix}.json"

    def _params(self):
        return {"auth": self.auth_token} if self.auth_token else {}

    def _fetch_all(self):
        try:
            resp = requests.get(self._url(), params=self._params(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json() or {}
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Firebase snapshot failed: {e}")
            return []
        return [
            LeadRecord.from_document(doc, lead_id=key)
            for key, doc in data.items()
            if isinstance(doc, dict)
        ]

    def _patch(self, lead_id, fields, creating):
        extra = fields.pop("extra", None) or {}
        doc = {**extra, **field_to_document(fields)}
        if creating:
            doc["id"] = lead_id
        try:
            resp = requests.patch(
                self._url(lead_id), params=self._params(), json=doc, timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Firebase write failed for {lead_id}: {e}")
            return False, str(e)
        return True, None

    def _remove(self, lead_id):
        try:
            resp = requests.delete(self._url(lead_id), params=self._params(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Firebase delete failed for {lead_id}: {e}")
            return False, str(e)
        return True, None

    def subscribe(self, on_snapshot):
        """Push the current set, then a fresh full set on every remote change.

        Runs the REST event stream on a daemon thread. Each put/patch event
        triggers a full re-read so subscribers always get a complete snapshot.
        """
        if not self.configured:
            return _noop

        stop = threading.Event()
        on_snapshot(self._fetch_all())

        thread = threading.Thread(
            target=self._listen, args=(on_snapshot, stop), daemon=True,
        )
        thread.start()
        return stop.set

    def _listen(self, on_snapshot, stop):
        headers = {"Accept": "text/event-stream"}
        try:
            with requests.get(
                self._url(), params=self._params(), headers=headers,
                stream=True, timeout=(self.timeout, None),
            ) as resp:
                resp.raise_for_status()
                first = True
                for line in resp.iter_lines(decode_unicode=True):
                    if stop.is_set():
                        break
                    if not line or not line.startswith("event:"):
                        continue
                    event = line.split(":", 1)[1].strip()
                    if event in ("put", "patch"):
                        # The stream opens with a put of the full tree, already delivered
                        if first:
                            first = False
                            continue
                        on_snapshot(self._fetch_all())
                    elif event in ("cancel", "auth_revoked"):
                        logger.warning(f"Firebase stream closed by server: {event}")
                        break
        except requests.RequestException as e:
            logger.error(f"Firebase stream failed: {e}")


# ──────────────────────────────────────────────
# App wiring
# ──────────────────────────────────────────────

def build_record_store(config):
    """Create the store selected by RECORD_STORE."""
    backend = (config.get("RECORD_STORE") or "sql").lower()
    if backend == "firebase":
        store = FirebaseRecordStore(
            config.get("FIREBASE_DATABASE_URL"),
            auth_token=config.get("FIREBASE_AUTH_TOKEN"),
            timeout=config.get("FIREBASE_TIMEOUT", 10),
        )
        if not store.configured:
            logger.warning("RECORD_STORE=firebase but FIREBASE_DATABASE_URL is not set")
        return store
    if backend != "sql":
        raise ValueError(f"Unknown RECORD_STORE: {backend}")
    return SqlRecordStore()


def init_record_store(app):
    app.extensions["record_store"] = build_record_store(app.config)


def get_record_store():
    return current_app.extensions["record_store"]
