"""Lead view — filtering and sorting for the team sheet.

apply_view() is a pure function of (records, criteria, sort, now). It is
re-run on every snapshot the store pushes and assumes nothing about the
previous snapshot.

Filters stack as logical AND:
  1. search      case-insensitive substring in name / address / phone / notes
  2. status      exact match, or "all"
  3. added_by    exact match, or "all"
  4. assigned_to exact match, "unassigned", or "all"
  5. date        last_updated (else added_at) >= threshold for
                 today / week / month, or "all"
"""

import locale
from dataclasses import asdict, dataclass, replace
from datetime import datetime

from app.models.records import ATTRIBUTE_NAMES, now_ms

ALL = "all"
UNASSIGNED = "unassigned"

DATE_PERIODS = ("today", "week", "month", ALL)

DAY_MS = 24 * 60 * 60 * 1000

SEARCH_FIELDS = ("name", "address", "phone", "notes")

# Derived sort key: number of logged activities ("calls" kept for old clients)
ACTIVITY_COUNT_KEYS = ("activities", "calls")

NUMERIC_SORT_KEYS = (
    "added_at",
    "last_updated",
    "follow_up_date",
    "monthly_rate",
    "total_paid",
)

TEXT_SORT_KEYS = SEARCH_FIELDS + ("status", "added_by", "assigned_to")

SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class FilterCriteria:
    search: str = ""
    status: str = ALL
    added_by: str = ALL
    assigned_to: str = ALL
    date: str = ALL

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        date = data.get("date") or ALL
        if date not in DATE_PERIODS:
            raise ValueError(f"Invalid date filter: {date}")
        return cls(
            search=(data.get("search") or "").strip(),
            status=data.get("status") or ALL,
            added_by=data.get("added_by") or ALL,
            assigned_to=data.get("assigned_to") or ALL,
            date=date,
        )

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class SortSpec:
    key: str = "last_updated"
    direction: str = "desc"

    def toggle(self, key):
        """Same key flips asc -> desc (anything else -> asc); a new key starts asc."""
        if key == self.key and self.direction == "asc":
            return replace(self, direction="desc")
        return SortSpec(key=key, direction="asc")

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        direction = data.get("direction") or "desc"
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"Invalid sort direction: {direction}")
        return cls(key=data.get("key") or "last_updated", direction=direction)

    def to_dict(self):
        return asdict(self)


def date_threshold(period, now=None):
    """Lower bound (epoch ms) for a recency filter, or 0 for "all"."""
    now = now_ms() if now is None else now
    if period == "today":
        local = datetime.fromtimestamp(now / 1000)
        midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
        return int(midnight.timestamp() * 1000)
    if period == "week":
        return now - 7 * DAY_MS
    if period == "month":
        # Rolling 30 days, not the calendar month
        return now - 30 * DAY_MS
    return 0


def matches_search(record, query):
    if not query:
        return True
    query = query.lower()
    for name in SEARCH_FIELDS:
        value = record.get(name)
        if value is not None and query in str(value).lower():
            return True
    return False


def filter_records(records, criteria, now=None):
    # Exact-match stages first, substring search last
    result = list(records)

    if criteria.status != ALL:
        result = [r for r in result if r.status == criteria.status]

    if criteria.added_by != ALL:
        result = [r for r in result if r.added_by == criteria.added_by]

    if criteria.assigned_to == UNASSIGNED:
        result = [r for r in result if not r.assigned_to]
    elif criteria.assigned_to != ALL:
        result = [r for r in result if r.assigned_to == criteria.assigned_to]

    if criteria.date != ALL:
        threshold = date_threshold(criteria.date, now)
        result = [r for r in result if r.effective_timestamp >= threshold]

    if criteria.search:
        result = [r for r in result if matches_search(r, criteria.search)]

    return result


def _number(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _text_key(value):
    text = str(value).casefold()
    try:
        return locale.strxfrm(text)
    except (ValueError, OSError):
        return text


def sort_value(record, key):
    """Comparable sort key for one record.

    Returns a (kind, value) pair so numbers and strings under the same
    free-form key never get compared with each other.
    """
    key = ATTRIBUTE_NAMES.get(key, key)
    if key in ACTIVITY_COUNT_KEYS:
        return (0, float(len(record.activities or [])))
    value = record.get(key)
    if key in NUMERIC_SORT_KEYS:
        return (0, _number(value))
    if isinstance(value, str):
        return (1, _text_key(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value))
    if value is None:
        # Known text columns sort missing values as ""; unknown keys as 0
        if key in TEXT_SORT_KEYS:
            return (1, _text_key(""))
        return (0, 0.0)
    return (1, _text_key(value))


def sort_records(records, sort):
    return sorted(
        records,
        key=lambda r: sort_value(r, sort.key),
        reverse=sort.direction == "desc",
    )


def apply_view(records, criteria=None, sort=None, now=None):
    """Filtered, ordered view of a snapshot. Never mutates its inputs."""
    criteria = criteria or FilterCriteria()
    sort = sort or SortSpec()
    return sort_records(filter_records(records, criteria, now), sort)


def team_members(records):
    """Distinct added_by values, in first-seen order (filter dropdown)."""
    seen = []
    for record in records:
        if record.added_by and record.added_by not in seen:
            seen.append(record.added_by)
    return seen
