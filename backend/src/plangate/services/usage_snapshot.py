"""Usage snapshot: current-month usage against the plan ceiling."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plangate.errors import NoSubscriptionError
from plangate.models.subscription import Subscription
from plangate.schemas.plan import PlanFeatures
from plangate.schemas.usage import UsageFigures, UsageSnapshot
from plangate.services.plan_catalog import features_of
from plangate.services.usage_ledger import UsageLedger

ADMIN_PLAN_NAME = "ADMIN"


def calculate_usage_percentage(current: int, limit: int | None) -> int | None:
    """
    Share of the monthly ceiling used, rounded half up and capped at 100.

    Returns:
        Percentage, or None for unlimited plans
    """
    if limit is None:
        return None
    if limit == 0:
        return 100
    return min(int(current * 100 / limit + 0.5), 100)


def admin_snapshot() -> UsageSnapshot:
    """Snapshot shown to administrators, who are never limited."""
    return UsageSnapshot(
        plan_name=ADMIN_PLAN_NAME,
        features=PlanFeatures(
            allow_pro_mode=True,
            allow_image_generation=True,
            allow_video_generation=True,
            max_requests_per_month=None,
        ),
        usage=UsageFigures(current=0),
        is_limit_reached=False,
        is_admin=True,
    )


class UsageSnapshotService:
    """Builds the usage overview for a user."""

    def __init__(self, db: AsyncSession, ledger: UsageLedger | None = None):
        self.db = db
        self.ledger = ledger or UsageLedger(db)

    async def snapshot(self, user_id: UUID, now: datetime | None = None) -> UsageSnapshot:
        """
        Get a user's plan, usage figures and reset date.

        Args:
            user_id: User UUID
            now: Reference time for the calendar month

        Returns:
            Usage snapshot

        Raises:
            NoSubscriptionError: User has no subscription
        """
        result = await self.db.execute(
            select(Subscription)
            .options(selectinload(Subscription.plan))
            .where(Subscription.user_id == user_id)
        )
        subscription = result.scalar_one_or_none()
        if subscription is None:
            raise NoSubscriptionError()

        features = features_of(subscription.plan)
        current = await self.ledger.monthly_usage_count(user_id, now)
        limit = features.max_requests_per_month

        return UsageSnapshot(
            plan_name=subscription.plan.name.value,
            features=features,
            usage=UsageFigures(
                current=current,
                limit=limit,
                percentage=calculate_usage_percentage(current, limit),
                remaining=None if limit is None else max(0, limit - current),
            ),
            is_limit_reached=limit is not None and current >= limit,
            reset_date=subscription.current_period_end,
            subscription_status=subscription.status,
        )
