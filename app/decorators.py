"""
Custom route decorators for access control.

- permission_required: ensures a team member is logged in AND their role
  grants the named permission (see services/role_service.py).
- admin_required: shorthand for members with the admin role.
"""

from functools import wraps

from flask import abort
from flask_login import current_user, login_required

from app.services import role_service


def permission_required(permission):
    """Require login + a role permission."""

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            if not role_service.has_permission(current_user, permission):
                abort(403)
            return f(*args, **kwargs)

        return decorated

    return decorator


def admin_required(f):
    """Require login + admin role."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not role_service.is_admin(current_user):
            abort(403)
        return f(*args, **kwargs)

    return decorated
