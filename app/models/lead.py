"""Lead model (team sheet rows).

Backs the SQL record store. Each row is one lead document; activities and
any extra document keys are kept in JSON columns so records written by
other store clients round-trip unchanged.
"""

from app.extensions import db
from app.models.records import Activity, LeadRecord


class Lead(db.Model):
    __tablename__ = "leads"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)  # free-form notes
    status = db.Column(db.String(20), default="NEW", nullable=False)
    added_by = db.Column(db.String(255), nullable=True)  # set once
    assigned_to = db.Column(db.String(255), nullable=True, index=True)
    added_at = db.Column(db.BigInteger, nullable=True)  # epoch ms
    last_updated = db.Column(db.BigInteger, nullable=True)  # epoch ms
    follow_up_date = db.Column(db.BigInteger, nullable=True)  # epoch ms
    activities = db.Column(db.JSON, default=list)
    stripe_customer_id = db.Column(db.String(255), nullable=True)
    stripe_subscription_status = db.Column(db.String(50), nullable=True)
    monthly_rate = db.Column(db.Float, nullable=True)
    total_paid = db.Column(db.Float, nullable=True)
    extra = db.Column(db.JSON, default=dict)  # website, rating, lat/lng, ...

    def to_record(self):
        return LeadRecord(
            id=self.id,
            name=self.name,
            phone=self.phone,
            address=self.address,
            notes=self.notes,
            status=self.status or "NEW",
            added_by=self.added_by,
            assigned_to=self.assigned_to,
            added_at=self.added_at,
            last_updated=self.last_updated,
            activities=[Activity.from_document(a) for a in (self.activities or [])],
            follow_up_date=self.follow_up_date,
            stripe_customer_id=self.stripe_customer_id,
            stripe_subscription_status=self.stripe_subscription_status,
            monthly_rate=self.monthly_rate,
            total_paid=self.total_paid,
            extra=dict(self.extra or {}),
        )

    def __repr__(self):
        return f"<Lead {self.name} ({self.status})>"


class LeadTombstone(db.Model):
    """Ids of deleted leads. A deleted id is never handed out or written again."""

    __tablename__ = "lead_tombstones"

    id = db.Column(db.String(64), primary_key=True)
    deleted_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<LeadTombstone {self.id}>"
