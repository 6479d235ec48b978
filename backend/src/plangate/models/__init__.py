"""SQLAlchemy ORM models for plan gating and the paid-seat waitlist."""
# Import all models here to ensure they are registered with Alembic

from plangate.models.base import Base
from plangate.models.user import User, UserRole
from plangate.models.plan import Plan, PlanTier
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.models.usage_log import UsageLog, UsageAction
from plangate.models.waitlist_entry import (
    ACTIVE_WAITLIST_STATUSES,
    WAITLIST_TRANSITIONS,
    WaitlistEntry,
    WaitlistStatus,
)

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Plan",
    "PlanTier",
    "Subscription",
    "SubscriptionStatus",
    "UsageLog",
    "UsageAction",
    "WaitlistEntry",
    "WaitlistStatus",
    "WAITLIST_TRANSITIONS",
    "ACTIVE_WAITLIST_STATUSES",
]
