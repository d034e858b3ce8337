# Models package — import all models here so Alembic can discover them.

from app.models.team_member import TeamMember  # noqa: F401
from app.models.lead import Lead, LeadTombstone  # noqa: F401
from app.models.stripe_event import StripeEvent  # noqa: F401
