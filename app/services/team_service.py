"""Team service — add, update and remove team members.

The member performing the change is passed in explicitly; nobody can
remove themself or change their own role. Names are fixed once created:
lead assignment and the role gate match on them.
"""

import logging
import re

from werkzeug.security import generate_password_hash

from app.extensions import db
from app.models.team_member import TeamMember

logger = logging.getLogger(__name__)

DEFAULT_TEAM = [
    {"name": "Javi", "role": "admin", "avatar": "👨‍💼"},
    {"name": "Iamiah", "role": "admin", "avatar": "👨‍💻"},
]

UPDATABLE_FIELDS = ("role", "email", "avatar")


def member_id_for(name):
    """Slug used as the member id: lowercase, whitespace -> underscores."""
    return re.sub(r"\s+", "_", (name or "").strip().lower())


def add_team_member(name, role="sales_rep", email=None, avatar=None, password=None):
    """Create a member. Returns (member, error)."""
    name = (name or "").strip()
    if not name:
        return None, "Name is required."
    role = role or "sales_rep"
    if role not in TeamMember.ROLES:
        return None, f"Invalid role: {role}"

    member_id = member_id_for(name)
    if db.session.get(TeamMember, member_id) is not None:
        return None, f"A team member named '{name}' already exists."

    member = TeamMember(
        id=member_id,
        name=name,
        role=role,
        email=(email or "").strip() or None,
        avatar=avatar or "👤",
        password_hash=generate_password_hash(password) if password else None,
    )
    db.session.add(member)
    db.session.commit()
    logger.info(f"Team member added: {member_id} ({role})")
    return member, None


def update_team_member(current, member_id, updates):
    """Apply updates to a member. Returns (member, error)."""
    member = db.session.get(TeamMember, member_id)
    if member is None:
        return None, "Team member not found."

    name = updates.get("name")
    if name is not None and str(name).strip() != member.name:
        return None, "Team member names cannot be changed."

    role = updates.get("role")
    if role is not None:
        if role not in TeamMember.ROLES:
            return None, f"Invalid role: {role}"
        if current is not None and current.id == member.id and role != member.role:
            return None, "You cannot change your own role."

    for key in UPDATABLE_FIELDS:
        value = updates.get(key)
        if value is None:
            continue
        setattr(member, key, value.strip() if isinstance(value, str) else value)
    if updates.get("password"):
        member.password_hash = generate_password_hash(updates["password"])

    db.session.commit()
    return member, None


def remove_team_member(current, member_id):
    """Delete a member. Returns (ok, error)."""
    if current is not None and current.id == member_id:
        return False, "You cannot remove yourself."

    member = db.session.get(TeamMember, member_id)
    if member is None:
        return False, "Team member not found."

    db.session.delete(member)
    db.session.commit()
    logger.info(f"Team member removed: {member_id}")
    return True, None


def seed_default_team(password=None):
    """Create the default admins if they don't exist. Returns created members."""
    created = []
    for entry in DEFAULT_TEAM:
        if db.session.get(TeamMember, member_id_for(entry["name"])) is not None:
            continue
        member, error = add_team_member(password=password, **entry)
        if member:
            created.append(member)
        else:
            logger.warning(f"Could not seed {entry['name']}: {error}")
    return created
