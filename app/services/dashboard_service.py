"""Dashboard service — headline numbers computed from a lead snapshot."""

from collections import Counter

from app.models.records import now_ms
from app.services.lead_view import DAY_MS
from app.services.timeline_service import is_follow_up_due

ACTIVE_STATUSES = ("INTERESTED", "CALLED", "CALLBACK")


def compute_stats(records, now=None):
    now = now_ms() if now is None else now
    one_week_ago = now - 7 * DAY_MS
    one_day_ago = now - DAY_MS

    active_subs = [r for r in records if r.stripe_subscription_status == "active"]

    return {
        "total_leads": len(records),
        "new_leads_this_week": sum(
            1 for r in records if (r.added_at or 0) >= one_week_ago and r.status == "NEW"
        ),
        "active_clients": sum(1 for r in records if r.status in ACTIVE_STATUSES),
        "closed_deals": sum(1 for r in records if r.status == "CLOSED"),
        "follow_ups_due": sum(1 for r in records if is_follow_up_due(r, now)),
        "by_status": dict(Counter(r.status for r in records)),
        "by_assignee": dict(Counter(r.assigned_to or "Unassigned" for r in records)),
        "recent_activity": sum(1 for r in records if (r.last_updated or 0) >= one_day_ago),
        "subscribed_clients": len(active_subs),
        "total_revenue": sum(r.total_paid or 0 for r in records),
        "monthly_recurring": sum(r.monthly_rate or 0 for r in active_subs),
    }
