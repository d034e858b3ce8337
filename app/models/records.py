"""Lead and Activity record types.

These are the documents held by the record store. Every optional field may
be absent on a record written by another client, so consumers read through
the attributes (or ``LeadRecord.get``) and never index raw dicts.

Document keys are camelCase (shared with other store clients); the HTTP API
uses the snake_case attribute names.
"""

import time
import uuid
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Optional

LEAD_STATUSES = ("NEW", "CALLED", "CALLBACK", "INTERESTED", "REJECTED", "CLOSED")

ACTIVITY_TYPES = ("CALL", "EMAIL", "SMS", "MEETING", "PROPOSAL", "FORM", "PAYMENT", "NOTE")

CALL_OUTCOMES = ("ANSWERED", "VOICEMAIL", "NO_ANSWER", "BUSY", "WRONG_NUMBER")

# attribute name -> document key
DOCUMENT_KEYS = {
    "id": "id",
    "name": "name",
    "phone": "phone",
    "address": "address",
    "notes": "notes",
    "status": "status",
    "added_by": "addedBy",
    "assigned_to": "assignedTo",
    "added_at": "addedAt",
    "last_updated": "lastUpdated",
    "activities": "activities",
    "follow_up_date": "followUpDate",
    "stripe_customer_id": "stripeCustomerId",
    "stripe_subscription_status": "stripeSubscriptionStatus",
    "monthly_rate": "monthlyRate",
    "total_paid": "totalPaid",
}

ATTRIBUTE_NAMES = {v: k for k, v in DOCUMENT_KEYS.items()}


def now_ms():
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def new_lead_id():
    return uuid.uuid4().hex


def _to_ms(value):
    """Coerce a stored timestamp to epoch ms, or None if unusable."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            pass
        # ISO strings written by the browser timeline form
        if value[-1:] in ("Z", "z"):
            value = value[:-1] + "+00:00"
        try:
            return int(datetime.fromisoformat(value).timestamp() * 1000)
        except ValueError:
            return None
    return None


def _to_number(value):
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Activity:
    id: str
    type: str
    timestamp: int
    notes: str = ""
    outcome: Optional[str] = None
    created_by: Optional[str] = None

    @classmethod
    def from_document(cls, data):
        timestamp = _to_ms(data.get("timestamp")) or 0
        return cls(
            id=str(data.get("id") or f"act_{timestamp}"),
            type=str(data.get("type") or "NOTE"),
            timestamp=timestamp,
            notes=data.get("notes") or "",
            outcome=data.get("outcome"),
            created_by=data.get("createdBy"),
        )

    def to_document(self):
        return {
            "id": self.id,
            "type": self.type,
            "outcome": self.outcome,
            "notes": self.notes,
            "timestamp": self.timestamp,
            "createdBy": self.created_by,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "outcome": self.outcome,
            "notes": self.notes,
            "timestamp": self.timestamp,
            "created_by": self.created_by,
        }


@dataclass
class LeadRecord:
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    status: str = "NEW"
    added_by: Optional[str] = None
    assigned_to: Optional[str] = None
    added_at: Optional[int] = None
    last_updated: Optional[int] = None
    activities: list = field(default_factory=list)
    follow_up_date: Optional[int] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_status: Optional[str] = None
    monthly_rate: Optional[float] = None
    total_paid: Optional[float] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_document(cls, data, lead_id=None):
        """Build a record from a store document (camelCase keys).

        Tolerates missing keys, stray types, and activities stored as a
        keyed object instead of a list.
        """
        data = dict(data or {})
        raw_activities = data.get("activities") or []
        if isinstance(raw_activities, dict):
            raw_activities = list(raw_activities.values())
        activities = [
            Activity.from_document(a) for a in raw_activities if isinstance(a, dict)
        ]

        extra = {k: v for k, v in data.items() if k not in ATTRIBUTE_NAMES}

        return cls(
            id=str(data.get("id") or lead_id or ""),
            name=data.get("name"),
            phone=_as_text(data.get("phone")),
            address=data.get("address"),
            notes=data.get("notes"),
            status=data.get("status") or "NEW",
            added_by=data.get("addedBy"),
            assigned_to=data.get("assignedTo") or None,
            added_at=_to_ms(data.get("addedAt")),
            last_updated=_to_ms(data.get("lastUpdated")),
            activities=activities,
            follow_up_date=_to_ms(data.get("followUpDate")),
            stripe_customer_id=data.get("stripeCustomerId"),
            stripe_subscription_status=data.get("stripeSubscriptionStatus"),
            monthly_rate=_to_number(data.get("monthlyRate")),
            total_paid=_to_number(data.get("totalPaid")),
            extra=extra,
        )

    def to_document(self):
        doc = dict(self.extra)
        for attr, key in DOCUMENT_KEYS.items():
            value = getattr(self, attr)
            if attr == "activities":
                value = [a.to_document() for a in value]
            if value is not None:
                doc[key] = value
        return doc

    def to_dict(self):
        data = {attr: getattr(self, attr) for attr in DOCUMENT_KEYS}
        data["activities"] = [a.to_dict() for a in self.activities]
        data["extra"] = dict(self.extra)
        return data

    def get(self, name, default=None):
        """Read an attribute, its document key, or an extra key. Never raises."""
        attr = ATTRIBUTE_NAMES.get(name, name)
        if attr in DOCUMENT_KEYS:
            value = getattr(self, attr)
        else:
            value = self.extra.get(name)
        return default if value is None else value

    @property
    def effective_timestamp(self):
        """Last modification time, falling back to creation time."""
        return self.last_updated or self.added_at or 0


def _as_text(value: Any):
    # Phone numbers sometimes arrive as numbers from spreadsheet imports
    if value is None or isinstance(value, str):
        return value
    return str(value)


def field_to_document(updates):
    """Translate attribute-named field updates to document keys."""
    doc = {}
    for attr, value in updates.items():
        if attr == "activities":
            value = [
                a.to_document() if isinstance(a, Activity) else a for a in value
            ]
        doc[DOCUMENT_KEYS.get(attr, attr)] = value
    return doc
