"""Tests for dashboard statistics and /api/dashboard."""

from app.services.dashboard_service import compute_stats

NOW = 1772452800000
DAY = 24 * 60 * 60 * 1000


class TestComputeStats:

    def test_counts(self, make_record):
        records = [
            make_record(status="NEW", added_at=NOW - DAY, last_updated=NOW - DAY),
            make_record(status="NEW", added_at=NOW - 10 * DAY, last_updated=NOW - 10 * DAY),
            make_record(status="INTERESTED", assigned_to="Sam Rep", follow_up_date=NOW - 1),
            make_record(status="CLOSED", stripe_subscription_status="active",
                        monthly_rate=99.0, total_paid=297.0),
            make_record(status="CLOSED", stripe_subscription_status="canceled",
                        monthly_rate=49.0, total_paid=49.0),
        ]

        stats = compute_stats(records, now=NOW)

        assert stats["total_leads"] == 5
        assert stats["new_leads_this_week"] == 1
        assert stats["active_clients"] == 1
        assert stats["closed_deals"] == 2
        assert stats["follow_ups_due"] == 1
        assert stats["by_status"] == {"NEW": 2, "INTERESTED": 1, "CLOSED": 2}
        assert stats["by_assignee"] == {"Unassigned": 4, "Sam Rep": 1}
        assert stats["subscribed_clients"] == 1
        assert stats["total_revenue"] == 346.0
        assert stats["monthly_recurring"] == 99.0

    def test_empty(self):
        stats = compute_stats([], now=NOW)
        assert stats["total_leads"] == 0
        assert stats["by_status"] == {}


class TestDashboardRoute:

    def test_rep_sees_stats_over_visible_leads_only(self, client, seed_data, store, make_record, login):
        store.create(make_record(assigned_to="Sam Rep"))
        store.create(make_record(assigned_to=None))
        store.create(make_record(assigned_to="Ada Admin"))
        login("sam_rep", "rep123")

        resp = client.get("/api/dashboard")

        assert resp.status_code == 200
        assert resp.get_json()["total_leads"] == 2

    def test_requires_login(self, client, seed_data):
        assert client.get("/api/dashboard").status_code == 401
