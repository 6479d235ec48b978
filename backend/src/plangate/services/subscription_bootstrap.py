"""Default FREE subscription for new and legacy users."""
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plangate.metrics import subscriptions_bootstrapped_total
from plangate.models.plan import PlanTier
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.models.user import User
from plangate.services.plan_catalog import PlanCatalog

logger = structlog.get_logger(__name__)

DEFAULT_PERIOD_DAYS = 30


class SubscriptionBootstrap:
    """
    Creates the default FREE subscription a user needs before the quota gate
    will let them do anything.
    """

    def __init__(self, db: AsyncSession):
        """Initialize subscription bootstrap with database session."""
        self.db = db
        self.catalog = PlanCatalog(db)

    async def ensure_default_subscription(
        self,
        user_id: UUID,
        now: datetime | None = None,
    ) -> Subscription:
        """
        Return the user's subscription, creating an active FREE one if absent.

        Idempotent and safe under concurrent calls for the same user: a
        duplicate insert is rolled back to a savepoint and the row that won is
        returned.

        Args:
            user_id: User UUID
            now: Period start (defaults to the current UTC time)

        Returns:
            The user's subscription with its plan loaded

        Raises:
            PlanNotFoundError: If the FREE plan has not been seeded
        """
        existing = await self._find_subscription(user_id)
        if existing:
            subscriptions_bootstrapped_total.labels(outcome="existing").inc()
            return existing

        free_plan = await self.catalog.get_plan_by_name(PlanTier.FREE)

        now = now or datetime.utcnow()
        subscription = Subscription(
            user_id=user_id,
            plan_id=free_plan.id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=now,
            current_period_end=now + timedelta(days=DEFAULT_PERIOD_DAYS),
            cancel_at_period_end=False,
        )

        try:
            async with self.db.begin_nested():
                self.db.add(subscription)
                await self.db.flush()
        except IntegrityError:
            existing = await self._find_subscription(user_id)
            if existing is None:
                raise
            logger.info("subscription_bootstrap_duplicate", user_id=str(user_id))
            subscriptions_bootstrapped_total.labels(outcome="duplicate").inc()
            return existing

        subscriptions_bootstrapped_total.labels(outcome="created").inc()
        logger.info("subscription_bootstrapped", user_id=str(user_id), plan=PlanTier.FREE.value)

        await self.db.refresh(subscription, attribute_names=["plan"])
        return subscription

    async def backfill_missing_subscriptions(self) -> dict[str, int]:
        """
        Give every user without a subscription the default FREE one.

        A failure for one user is logged and counted; the rest still run.

        Returns:
            Dictionary with ``created`` and ``errors`` counts

        Raises:
            PlanNotFoundError: If the FREE plan has not been seeded
        """
        await self.catalog.get_plan_by_name(PlanTier.FREE)

        result = await self.db.execute(
            select(User.id, User.email)
            .outerjoin(Subscription, Subscription.user_id == User.id)
            .where(Subscription.id.is_(None))
        )
        users = result.all()

        logger.info("subscription_backfill_started", users_without_subscription=len(users))

        created = 0
        errors = 0
        for user_id, email in users:
            try:
                await self.ensure_default_subscription(user_id)
                created += 1
            except SQLAlchemyError as e:
                errors += 1
                logger.error("subscription_backfill_failed", user_id=str(user_id), email=email, error=str(e))

        logger.info("subscription_backfill_completed", created=created, errors=errors)
        return {"created": created, "errors": errors}

    async def _find_subscription(self, user_id: UUID) -> Subscription | None:
        result = await self.db.execute(
            select(Subscription)
            .options(selectinload(Subscription.plan))
            .where(Subscription.user_id == user_id)
        )
        return result.scalar_one_or_none()
