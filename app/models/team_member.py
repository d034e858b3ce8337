"""Team member model.

A member's role picks a fixed permission set (see services/role_service.py).
Flask-Login integration via UserMixin.
"""

from flask_login import UserMixin

from app.extensions import db


class TeamMember(UserMixin, db.Model):
    __tablename__ = "team_members"

    ROLES = ["admin", "sales_rep"]

    id = db.Column(db.String(64), primary_key=True)  # slug of name
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="sales_rep", nullable=False)
    email = db.Column(db.String(255), nullable=True)
    avatar = db.Column(db.String(16), nullable=True)  # emoji marker
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "email": self.email or "",
            "avatar": self.avatar or "",
        }

    def __repr__(self):
        return f"<TeamMember {self.name} ({self.role})>"
