"""Subscription model: a user's current plan and billing status."""
from sqlalchemy import Column, Boolean, Enum as SQLEnum, ForeignKey, DateTime, String, Uuid
from sqlalchemy.orm import relationship
import enum

from plangate.models.base import Base


class SubscriptionStatus(enum.Enum):
    """Subscription status as reported by the billing provider."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"


class Subscription(Base):
    """
    A user's plan assignment.

    Exactly one per user (unique ``user_id``). ``status`` is the only input
    deciding whether the subscription is usable right now.
    """

    __tablename__ = "subscriptions"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("plans.id"), nullable=False, index=True)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    stripe_customer_id = Column(String, nullable=True, unique=True)
    stripe_subscription_id = Column(String, nullable=True, unique=True)

    # Relationships
    user = relationship("User", back_populates="subscription")
    plan = relationship("Plan", back_populates="subscriptions")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Subscription(id={self.id}, user_id={self.user_id}, status={self.status.value})>"
