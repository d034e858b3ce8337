"""Role service — static role -> permission table and lead access checks.

Every check is recomputed from the member's role on each call; nothing is
cached or stored. A missing member (not logged in) has no permissions.
Lead assignment is matched on the member's display name.
"""

ROLES = {
    "admin": {
        "label": "Admin",
        "permissions": frozenset([
            "view_all_leads",
            "edit_all_leads",
            "delete_leads",
            "assign_leads",
            "view_dashboard",
            "manage_team",
            "export_data",
            "access_settings",
            "view_billing",
            "manage_subscriptions",
        ]),
    },
    "sales_rep": {
        "label": "Sales Rep",
        "permissions": frozenset([
            "view_assigned_leads",
            "view_unassigned_leads",
            "edit_assigned_leads",
            "log_activities",
            "view_dashboard",
            "export_own_data",
        ]),
    },
}


def _authenticated(member):
    return member is not None and getattr(member, "is_authenticated", True)


def has_permission(member, permission):
    if not _authenticated(member):
        return False
    role = ROLES.get(getattr(member, "role", None))
    return bool(role) and permission in role["permissions"]


def is_admin(member):
    return _authenticated(member) and member.role == "admin"


def _is_assignee(member, record):
    return bool(record.assigned_to) and record.assigned_to == member.name


def can_view_lead(member, record):
    if not _authenticated(member):
        return False
    if has_permission(member, "view_all_leads"):
        return True
    if has_permission(member, "view_assigned_leads") and _is_assignee(member, record):
        return True
    if has_permission(member, "view_unassigned_leads") and not record.assigned_to:
        return True
    return False


def can_edit_lead(member, record):
    if not _authenticated(member):
        return False
    if has_permission(member, "edit_all_leads"):
        return True
    return has_permission(member, "edit_assigned_leads") and _is_assignee(member, record)


def can_delete_lead(member):
    return has_permission(member, "delete_leads")


def can_log_activity(member, record):
    """Admins may log on any lead; reps on leads they can see."""
    if has_permission(member, "edit_all_leads"):
        return True
    return has_permission(member, "log_activities") and can_view_lead(member, record)


def visible_records(member, records):
    return [r for r in records if can_view_lead(member, r)]
