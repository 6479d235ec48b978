"""Plan model for subscription tiers and their feature flags."""
from sqlalchemy import Column, String, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from plangate.models.base import Base, JSONType


class PlanTier(enum.Enum):
    """Fixed set of subscription tiers."""

    FREE = "FREE"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class Plan(Base):
    """
    Subscription tier with its feature map and monthly request ceiling.

    ``features`` holds the flags read by the quota gate (allowProMode,
    allowImageGeneration, allowVideoGeneration, maxRequestsPerMonth,
    maxFileSize). ``max_requests_per_month`` is the column fallback when the
    map omits the limit; NULL means unlimited.
    """

    __tablename__ = "plans"

    name = Column(SQLEnum(PlanTier), nullable=False, unique=True, index=True)
    monthly_price = Column(Integer, nullable=False, default=0)  # Smallest currency unit
    stripe_price_id = Column(String, nullable=True, unique=True)
    features = Column(JSONType, nullable=False, default=dict)
    max_requests_per_month = Column(Integer, nullable=True)
    max_file_size = Column(Integer, nullable=False)  # Bytes

    # Relationships
    subscriptions = relationship("Subscription", back_populates="plan")

    @property
    def is_paid(self) -> bool:
        """Whether holding this plan occupies a paid seat."""
        return self.name != PlanTier.FREE

    def __repr__(self) -> str:
        """String representation."""
        return f"<Plan(id={self.id}, name={self.name.value}, monthly_price={self.monthly_price})>"
