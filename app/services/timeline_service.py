"""Timeline service — contact activities and the single follow-up slot.

Activities are append-only: created once, never edited or removed.
A lead has at most one scheduled follow-up; completing it clears the field
(log an Activity separately if a record of it is wanted).
"""

import logging
from datetime import datetime

from app.models.records import ACTIVITY_TYPES, CALL_OUTCOMES, Activity, now_ms

logger = logging.getLogger(__name__)

DEFAULT_FOLLOW_UP_TIME = "09:00"


def build_activity(activity_type, notes="", outcome=None, created_by=None, timestamp=None):
    """Validate and build a new Activity.

    Outcome is kept only for calls (defaulting to ANSWERED) and dropped
    for every other type. Raises ValueError on bad input.
    """
    activity_type = (activity_type or "").upper()
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Invalid activity type: {activity_type or '(empty)'}")

    if activity_type == "CALL":
        outcome = (outcome or "ANSWERED").upper()
        if outcome not in CALL_OUTCOMES:
            raise ValueError(f"Invalid call outcome: {outcome}")
    else:
        outcome = None

    timestamp = now_ms() if timestamp is None else int(timestamp)
    return Activity(
        id=f"act_{timestamp}",
        type=activity_type,
        timestamp=timestamp,
        notes=(notes or "").strip(),
        outcome=outcome,
        created_by=created_by or "Unknown",
    )


def add_activity(store, record, activity):
    """Append an activity to the lead. Returns (ok, error)."""
    activities = list(record.activities or []) + [activity]
    ok, error = store.write(record.id, {"activities": activities})
    if ok:
        logger.info(f"Logged {activity.type} on lead {record.id}")
    return ok, error


def set_follow_up(store, record, when):
    """Schedule (epoch ms) or clear (None) the lead's follow-up."""
    value = None if when is None else int(when)
    return store.write(record.id, {"follow_up_date": value})


def complete_follow_up(store, record):
    return set_follow_up(store, record, None)


def is_follow_up_due(record, now=None):
    if record.follow_up_date is None:
        return False
    now = now_ms() if now is None else now
    return record.follow_up_date <= now


def follow_ups_due(records, now=None):
    now = now_ms() if now is None else now
    return [r for r in records if is_follow_up_due(r, now)]


def ordered_activities(record):
    """Newest first; equal timestamps keep insertion order."""
    return sorted(record.activities or [], key=lambda a: a.timestamp, reverse=True)


def parse_follow_up(date_str, time_str=None):
    """Turn form inputs (YYYY-MM-DD, optional HH:MM, local time) into epoch ms."""
    if not date_str:
        raise ValueError("Follow-up date is required")
    try:
        when = datetime.fromisoformat(f"{date_str}T{time_str or DEFAULT_FOLLOW_UP_TIME}")
    except ValueError:
        raise ValueError(f"Invalid follow-up date: {date_str} {time_str or ''}".strip())
    return int(when.timestamp() * 1000)
