"""Tests for the lead view (filter + sort engine).

Covers:
- Status, added-by, assignee and date filters
- Case-insensitive search over name/address/phone/notes
- Filters only ever narrow the input
- Sort toggle rules
- Ascending is the mirror of descending
- Missing values and derived sort keys
- apply_view is idempotent and leaves its input alone
"""

import pytest

from app.models.records import Activity, LeadRecord
from app.services.lead_view import (
    DAY_MS,
    FilterCriteria,
    SortSpec,
    apply_view,
    date_threshold,
    filter_records,
    sort_records,
    team_members,
)

NOW = 1772452800000


def _ids(records):
    return [r.id for r in records]


@pytest.fixture
def ten_leads(make_record):
    statuses = ["NEW", "CLOSED", "CALLED", "CLOSED", "NEW",
                "INTERESTED", "CLOSED", "CALLBACK", "REJECTED", "NEW"]
    return [make_record(status=s) for s in statuses]


class TestFilters:

    def test_status_filter_returns_only_matching(self, ten_leads):
        result = apply_view(ten_leads, FilterCriteria(status="CLOSED"), now=NOW)
        assert len(result) == 3
        assert all(r.status == "CLOSED" for r in result)

    def test_default_criteria_return_everything(self, ten_leads):
        assert len(apply_view(ten_leads, now=NOW)) == 10

    def test_search_matches_address_case_insensitively(self, make_record):
        records = [
            make_record(name="Bakery", address="12 Main St"),
            make_record(name="Florist", address="4 Oak Ave"),
            make_record(name="Garage", notes="near MAIN STREET"),
        ]
        result = apply_view(records, FilterCriteria(search="main st"), now=NOW)
        assert sorted(r.name for r in result) == ["Bakery", "Garage"]

    def test_search_matches_phone(self, make_record):
        records = [make_record(phone="555-0101"), make_record(phone="555-0199")]
        result = filter_records(records, FilterCriteria(search="0199"), now=NOW)
        assert _ids(result) == [records[1].id]

    def test_search_tolerates_missing_fields(self, make_record):
        record = LeadRecord(id="bare")
        assert filter_records([record], FilterCriteria(search="x"), now=NOW) == []
        assert filter_records([record], FilterCriteria(search=""), now=NOW) == [record]

    def test_added_by_filter(self, make_record):
        records = [make_record(added_by="Javi"), make_record(added_by="Iamiah")]
        result = filter_records(records, FilterCriteria(added_by="Javi"), now=NOW)
        assert [r.added_by for r in result] == ["Javi"]

    def test_assignee_filter_and_unassigned(self, make_record):
        mine = make_record(assigned_to="Sam Rep")
        open_lead = make_record(assigned_to=None)
        other = make_record(assigned_to="Someone")
        records = [mine, open_lead, other]

        assert filter_records(records, FilterCriteria(assigned_to="Sam Rep"), now=NOW) == [mine]
        assert filter_records(records, FilterCriteria(assigned_to="unassigned"), now=NOW) == [open_lead]

    def test_week_filter_uses_last_updated_then_added_at(self, make_record):
        fresh = make_record(last_updated=NOW - 2 * DAY_MS)
        stale = make_record(last_updated=NOW - 9 * DAY_MS, added_at=NOW - 9 * DAY_MS)
        created_only = make_record(last_updated=None, added_at=NOW - DAY_MS)
        result = filter_records([fresh, stale, created_only], FilterCriteria(date="week"), now=NOW)
        assert _ids(result) == [fresh.id, created_only.id]

    def test_today_filter(self, make_record):
        now_lead = make_record(last_updated=NOW)
        old = make_record(last_updated=NOW - 2 * DAY_MS)
        result = filter_records([now_lead, old], FilterCriteria(date="today"), now=NOW)
        assert result == [now_lead]

    def test_month_is_rolling_thirty_days(self):
        assert date_threshold("month", NOW) == NOW - 30 * DAY_MS
        assert date_threshold("all", NOW) == 0

    def test_invalid_date_filter_rejected(self):
        with pytest.raises(ValueError):
            FilterCriteria.from_dict({"date": "fortnight"})

    def test_filters_only_narrow(self, ten_leads):
        criteria = [
            FilterCriteria(status="NEW"),
            FilterCriteria(search="Lead 1"),
            FilterCriteria(status="NEW", search="Lead 1"),
            FilterCriteria(date="week"),
        ]
        ids = set(_ids(ten_leads))
        for c in criteria:
            assert set(_ids(filter_records(ten_leads, c, now=NOW))) <= ids

    def test_adding_a_filter_never_grows_the_result(self, ten_leads):
        broad = apply_view(ten_leads, FilterCriteria(status="NEW"), now=NOW)
        narrow = apply_view(ten_leads, FilterCriteria(status="NEW", search="Lead 10"), now=NOW)
        assert set(_ids(narrow)) <= set(_ids(broad))

    def test_team_members_in_first_seen_order(self, make_record):
        records = [make_record(added_by="B"), make_record(added_by="A"),
                   make_record(added_by="B"), make_record(added_by=None)]
        assert team_members(records) == ["B", "A"]


class TestSort:

    def test_toggle_same_key_flips_direction(self):
        spec = SortSpec(key="name", direction="asc")
        assert spec.toggle("name") == SortSpec(key="name", direction="desc")
        assert spec.toggle("name").toggle("name") == SortSpec(key="name", direction="asc")

    def test_toggle_new_key_starts_ascending(self):
        spec = SortSpec(key="name", direction="desc")
        assert spec.toggle("phone") == SortSpec(key="phone", direction="asc")

    def test_default_is_last_updated_desc(self, ten_leads):
        result = apply_view(ten_leads, now=NOW)
        stamps = [r.last_updated for r in result]
        assert stamps == sorted(stamps, reverse=True)

    def test_text_sort_ignores_case(self, make_record):
        records = [make_record(name="cherry"), make_record(name="Banana"), make_record(name="apple")]
        result = sort_records(records, SortSpec(key="name", direction="asc"))
        assert [r.name for r in result] == ["apple", "Banana", "cherry"]

    def test_ascending_mirrors_descending(self, make_record):
        records = [make_record(name=n) for n in ("delta", "alpha", "echo", "charlie", "bravo")]
        asc = sort_records(records, SortSpec(key="name", direction="asc"))
        desc = sort_records(records, SortSpec(key="name", direction="desc"))
        assert _ids(asc) == list(reversed(_ids(desc)))

    def test_missing_numeric_values_sort_as_zero(self, make_record):
        paid = make_record(total_paid=50.0)
        unpaid = make_record(total_paid=None)
        result = sort_records([paid, unpaid], SortSpec(key="total_paid", direction="asc"))
        assert result == [unpaid, paid]

    def test_missing_text_values_sort_first(self, make_record):
        named = make_record(phone="555")
        blank = make_record(phone=None)
        result = sort_records([named, blank], SortSpec(key="phone", direction="asc"))
        assert result == [blank, named]

    def test_activity_count_sort_key(self, make_record):
        busy = make_record(activities=[
            Activity(id="a1", type="CALL", timestamp=1),
            Activity(id="a2", type="EMAIL", timestamp=2),
        ])
        quiet = make_record(activities=[])
        for key in ("activities", "calls"):
            result = sort_records([busy, quiet], SortSpec(key=key, direction="desc"))
            assert result == [busy, quiet]

    def test_camel_case_key_accepted(self, make_record):
        a = make_record(added_at=NOW - 10)
        b = make_record(added_at=NOW - 20)
        result = sort_records([a, b], SortSpec(key="addedAt", direction="asc"))
        assert result == [b, a]

    def test_extra_key_sort(self, make_record):
        low = make_record(extra={"rating": 3.5})
        high = make_record(extra={"rating": 4.8})
        none = make_record()
        result = sort_records([high, none, low], SortSpec(key="rating", direction="asc"))
        assert result == [none, low, high]

    def test_invalid_direction_rejected(self):
        with pytest.raises(ValueError):
            SortSpec.from_dict({"key": "name", "direction": "sideways"})


class TestApplyView:

    def test_idempotent(self, ten_leads):
        criteria = FilterCriteria(status="NEW")
        sort = SortSpec(key="name", direction="asc")
        once = apply_view(ten_leads, criteria, sort, now=NOW)
        twice = apply_view(once, criteria, sort, now=NOW)
        assert _ids(once) == _ids(twice)

    def test_input_not_mutated(self, ten_leads):
        before = _ids(ten_leads)
        apply_view(ten_leads, FilterCriteria(status="CLOSED"), SortSpec(key="name"), now=NOW)
        assert _ids(ten_leads) == before

    def test_criteria_round_trip_through_session_dict(self):
        criteria = FilterCriteria(search="pizza", status="NEW", date="week")
        assert FilterCriteria.from_dict(criteria.to_dict()) == criteria
