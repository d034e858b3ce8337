"""Grid service — editable team-sheet state.

GridController owns the transient per-user state of the sheet:
- at most one active edit (lead id + field) with its staged value
- the selection set
and turns gestures into record-store calls. The store then pushes a new
snapshot; the controller never merges edits into its own copy.

Edit lifecycle:
    idle --start_edit--> editing --commit_edit / blur--> idle  (write if changed)
                                 --cancel_edit-------> idle  (no write)
Starting an edit on another cell commits the current one first.

LeadSheet ties one member's session together:
snapshot -> permission gate -> apply_view -> controller.
"""

import logging

from app.models.records import LEAD_STATUSES, now_ms
from app.services import role_service
from app.services.lead_view import FilterCriteria, SortSpec, apply_view

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "phone", "address", "notes")


class ConfirmationRequired(Exception):
    """A destructive operation was not confirmed by the user."""


def _stored_text(record, field):
    value = getattr(record, field, None)
    return "" if value is None else str(value)


class GridController:

    def __init__(self, store, clock=now_ms):
        self.store = store
        self.clock = clock
        self.records = {}
        self.visible_ids = []
        self.editing = None  # (lead_id, field)
        self.staged_value = ""
        self.selected = set()

    # ── Snapshot / view ──

    def on_snapshot(self, records):
        """Replace the held record set with a new full snapshot."""
        self.records = {r.id: r for r in records}

    def set_visible(self, records):
        self.visible_ids = [r.id for r in records]

    # ── Editing ──

    @property
    def is_editing(self):
        return self.editing is not None

    def start_edit(self, lead_id, field):
        """Open a cell for editing, committing any other open cell first.

        Returns (staged_value, previous) where previous is the
        (wrote, error) of that implicit commit, or None if no other cell
        was open.
        """
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{field}' is not editable")
        record = self.records.get(lead_id)
        if record is None:
            raise KeyError(lead_id)

        previous = None
        if self.editing is not None and self.editing != (lead_id, field):
            previous = self.commit_edit()

        if self.editing != (lead_id, field):
            self.editing = (lead_id, field)
            self.staged_value = _stored_text(record, field)
        return self.staged_value, previous

    def stage(self, value):
        if self.editing is None:
            raise ValueError("No cell is being edited")
        self.staged_value = "" if value is None else str(value)

    def commit_edit(self):
        """Write the staged value if it differs from the stored one.

        Returns (wrote: bool, error: str|None). A lead that disappeared
        from the snapshot while being edited is discarded silently.
        """
        if self.editing is None:
            return False, None

        lead_id, field = self.editing
        value = self.staged_value
        self._reset_edit()

        record = self.records.get(lead_id)
        if record is None or _stored_text(record, field) == value:
            return False, None

        ok, error = self.store.write(lead_id, {
            field: value,
            "last_updated": self.clock(),
        })
        if not ok:
            logger.warning(f"Cell edit failed for {lead_id}.{field}: {error}")
        return ok, error

    def blur(self):
        """Focus left the cell: same as committing."""
        return self.commit_edit()

    def cancel_edit(self):
        self._reset_edit()

    def _reset_edit(self):
        self.editing = None
        self.staged_value = ""

    # ── Selection ──

    def toggle_selection(self, lead_id):
        if lead_id in self.selected:
            self.selected.discard(lead_id)
        else:
            self.selected.add(lead_id)
        return lead_id in self.selected

    def select_all(self):
        """Toggle between every visible lead and nothing."""
        visible = set(self.visible_ids)
        if self.selected == visible:
            self.selected = set()
        else:
            self.selected = visible
        return self.selected

    def clear_selection(self):
        self.selected = set()

    # ── Status ──

    def update_status(self, lead_id, status):
        if status not in LEAD_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        return self.store.write(lead_id, {
            "status": status,
            "last_updated": self.clock(),
        })

    # ── Bulk operations (best-effort, no rollback) ──

    def bulk_status_change(self, status):
        """One write per selected lead. Returns [(lead_id, ok, error)]."""
        if status not in LEAD_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        results = []
        for lead_id in sorted(self.selected):
            ok, error = self.store.write(lead_id, {
                "status": status,
                "last_updated": self.clock(),
            })
            if not ok:
                logger.warning(f"Bulk status change failed for {lead_id}: {error}")
            results.append((lead_id, ok, error))
        return results

    def bulk_delete(self, confirm):
        """Delete every selected lead after confirm(message) returns True.

        Clears the selection once all deletes were issued, whether or not
        each one succeeded. Raises ConfirmationRequired when not confirmed.
        """
        if not self.selected:
            return []
        if not confirm(f"Delete {len(self.selected)} leads?"):
            raise ConfirmationRequired("Bulk delete was not confirmed")

        results = []
        for lead_id in sorted(self.selected):
            ok, error = self.store.delete(lead_id)
            if not ok:
                logger.warning(f"Bulk delete failed for {lead_id}: {error}")
            results.append((lead_id, ok, error))
        self.clear_selection()
        return results

    def delete_lead(self, lead_id, confirm):
        record = self.records.get(lead_id)
        label = (record.name if record else None) or lead_id
        if not confirm(f"Delete {label}?"):
            raise ConfirmationRequired("Delete was not confirmed")
        ok, error = self.store.delete(lead_id)
        if ok:
            self.selected.discard(lead_id)
            if self.editing and self.editing[0] == lead_id:
                self._reset_edit()
        return ok, error

    # ── Session state ──

    def to_state(self):
        editing = None
        if self.editing is not None:
            editing = {
                "id": self.editing[0],
                "field": self.editing[1],
                "value": self.staged_value,
            }
        return {"editing": editing, "selected": sorted(self.selected)}

    def load_state(self, state):
        state = state or {}
        editing = state.get("editing")
        if editing and editing.get("field") in EDITABLE_FIELDS:
            self.editing = (editing["id"], editing["field"])
            self.staged_value = editing.get("value") or ""
        else:
            self._reset_edit()
        self.selected = set(state.get("selected") or [])


class LeadSheet:
    """One member's view of the sheet: gated, filtered, sorted, editable."""

    def __init__(self, store, member, criteria=None, sort=None, state=None,
                 clock=now_ms):
        self.store = store
        self.member = member
        self.criteria = criteria or FilterCriteria()
        self.sort = sort or SortSpec()
        self.clock = clock
        self.controller = GridController(store, clock=clock)
        self.controller.load_state(state)
        self.rows = []
        self._unsubscribe = None

    def open(self, live=False):
        """Load the current snapshot, or subscribe for pushes when live."""
        if live:
            self._unsubscribe = self.store.subscribe(self.on_snapshot)
        else:
            self.on_snapshot(self.store.snapshot())
        return self

    def close(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_snapshot(self, records):
        readable = role_service.visible_records(self.member, records)
        self.controller.on_snapshot(readable)
        self.refresh()

    def refresh(self, now=None):
        self.rows = apply_view(
            list(self.controller.records.values()), self.criteria, self.sort, now=now,
        )
        self.controller.set_visible(self.rows)
        # Selected leads that vanished from the snapshot can't be acted on
        self.controller.selected &= set(self.controller.records)
        return self.rows

    def set_criteria(self, criteria):
        self.criteria = criteria
        return self.refresh()

    def sort_by(self, key):
        self.sort = self.sort.toggle(key)
        return self.refresh()

    def record(self, lead_id):
        return self.controller.records.get(lead_id)

    def to_state(self):
        return {
            "filters": self.criteria.to_dict(),
            "sort": self.sort.to_dict(),
            "grid": self.controller.to_state(),
        }
