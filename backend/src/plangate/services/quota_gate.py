"""Quota gate: may a user perform an action right now?"""
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plangate.errors import (
    FeatureNotAllowedError,
    MonthlyLimitExceededError,
    NoSubscriptionError,
    QuotaError,
    SubscriptionNotActiveError,
)
from plangate.metrics import quota_decisions_total
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.models.usage_log import UsageAction
from plangate.schemas.plan import Plan as PlanSchema
from plangate.schemas.quota import GatedAction, QuotaDecision
from plangate.services.plan_catalog import features_of
from plangate.services.usage_ledger import UsageLedger

logger = structlog.get_logger(__name__)

# Feature flag each action requires; actions not listed need none
REQUIRED_FEATURE = {
    GatedAction.PRO_MODE: "allow_pro_mode",
    GatedAction.IMAGE_GENERATION: "allow_image_generation",
    GatedAction.VIDEO_GENERATION: "allow_video_generation",
}


def gated_action_for(action: UsageAction) -> GatedAction:
    """Gated action a recorded usage entry is charged against (``other`` counts as chat)."""
    if action == UsageAction.OTHER:
        return GatedAction.CHAT
    return GatedAction(action.value)


class QuotaGate:
    """
    Authorization decision for gated actions.

    The gate only reads: it never records usage. Callers record through
    ``UsageRecorder`` after the generation succeeds, so a failed generation
    never consumes quota. Role checks (the admin bypass) belong to the caller.
    """

    def __init__(self, db: AsyncSession, ledger: UsageLedger | None = None):
        """Initialize quota gate with database session and usage ledger."""
        self.db = db
        self.ledger = ledger or UsageLedger(db)

    async def evaluate(
        self,
        user_id: UUID,
        action: GatedAction | str,
        now: datetime | None = None,
    ) -> QuotaDecision:
        """
        Decide whether ``user_id`` may perform ``action``.

        Args:
            user_id: User UUID
            action: Gated action kind
            now: Decision time (defaults to the current UTC time)

        Returns:
            Allowed decision with plan, current month usage and limit

        Raises:
            NoSubscriptionError: User has no subscription
            SubscriptionNotActiveError: Subscription status is not active
            FeatureNotAllowedError: Plan does not include the action
            MonthlyLimitExceededError: Monthly ceiling reached
        """
        subscription = await self._load_subscription(user_id, lock=False)
        return await self._decide(user_id, GatedAction(action), subscription, now)

    async def evaluate_locked(
        self,
        user_id: UUID,
        action: GatedAction | str,
        now: datetime | None = None,
    ) -> QuotaDecision:
        """
        Same decision as ``evaluate``, holding a row lock on the subscription.

        The lock lasts until the surrounding transaction ends, so running this
        and the usage append in one transaction serializes them per user.
        """
        subscription = await self._load_subscription(user_id, lock=True)
        return await self._decide(user_id, GatedAction(action), subscription, now)

    async def _load_subscription(self, user_id: UUID, lock: bool) -> Subscription | None:
        query = (
            select(Subscription)
            .options(selectinload(Subscription.plan))
            .where(Subscription.user_id == user_id)
        )
        if lock:
            query = query.with_for_update(of=Subscription)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _decide(
        self,
        user_id: UUID,
        action: GatedAction,
        subscription: Subscription | None,
        now: datetime | None,
    ) -> QuotaDecision:
        try:
            if subscription is None:
                logger.error("quota_no_subscription", user_id=str(user_id), action=action.value)
                raise NoSubscriptionError()

            if subscription.status != SubscriptionStatus.ACTIVE:
                raise SubscriptionNotActiveError(subscription.status.value)

            plan = subscription.plan
            features = features_of(plan)

            flag = REQUIRED_FEATURE.get(action)
            if flag and not getattr(features, flag):
                raise FeatureNotAllowedError(action.value)

            usage_count = await self.ledger.monthly_usage_count(user_id, now)
            limit = features.max_requests_per_month

            if limit is not None and usage_count >= limit:
                raise MonthlyLimitExceededError()

        except QuotaError as e:
            quota_decisions_total.labels(action=action.value, outcome=e.code).inc()
            logger.info("quota_denied", user_id=str(user_id), action=action.value, reason=e.code)
            raise

        quota_decisions_total.labels(action=action.value, outcome="allowed").inc()
        logger.debug(
            "quota_allowed",
            user_id=str(user_id),
            action=action.value,
            usage_count=usage_count,
            limit=limit,
        )

        return QuotaDecision(
            allowed=True,
            plan=PlanSchema.model_validate(plan),
            usage_count=usage_count,
            limit=limit,
        )
