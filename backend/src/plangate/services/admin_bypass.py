"""Administrator bypass around the quota gate."""
from datetime import datetime
from uuid import UUID, uuid5, NAMESPACE_URL

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.models.plan import PlanTier
from plangate.models.user import UserRole
from plangate.schemas.plan import Plan as PlanSchema
from plangate.schemas.quota import GatedAction, QuotaDecision
from plangate.services.plan_catalog import DEFAULT_PLANS, PlanCatalog
from plangate.services.quota_gate import QuotaGate

logger = structlog.get_logger(__name__)

# Stable id for the stand-in plan used when ENTERPRISE is not seeded
FALLBACK_ADMIN_PLAN_ID = uuid5(NAMESPACE_URL, "plangate:admin-fallback-plan")


def fallback_admin_plan() -> PlanSchema:
    """Unlimited plan with every feature enabled."""
    features = dict(DEFAULT_PLANS[PlanTier.ENTERPRISE]["features"])
    epoch = datetime(1970, 1, 1)
    return PlanSchema(
        id=FALLBACK_ADMIN_PLAN_ID,
        name=PlanTier.ENTERPRISE,
        monthly_price=0,
        features=features,
        max_requests_per_month=None,
        max_file_size=features["maxFileSize"],
        created_at=epoch,
        updated_at=epoch,
    )


class AdminBypassQuotaGate:
    """
    Quota gate wrapper that lets administrators through unconditionally.

    Administrators get an unlimited decision on the ENTERPRISE plan without
    the wrapped gate being consulted. Everyone else goes through the gate.
    """

    def __init__(self, db: AsyncSession, gate: QuotaGate | None = None, strict: bool = False):
        """
        Initialize the bypass wrapper.

        Args:
            db: Database session
            gate: Wrapped quota gate
            strict: Use the row-locking evaluation for non-admin callers
        """
        self.db = db
        self.gate = gate or QuotaGate(db)
        self.strict = strict

    async def evaluate(
        self,
        user_id: UUID,
        role: UserRole | str,
        action: GatedAction | str,
        now: datetime | None = None,
    ) -> QuotaDecision:
        """Evaluate ``action`` for a caller with the given role."""
        if role in (UserRole.ADMIN, UserRole.ADMIN.value):
            logger.debug("quota_admin_bypass", user_id=str(user_id), action=GatedAction(action).value)
            return QuotaDecision(allowed=True, plan=await self._admin_plan(), usage_count=0, limit=None)

        if self.strict:
            return await self.gate.evaluate_locked(user_id, action, now)
        return await self.gate.evaluate(user_id, action, now)

    async def _admin_plan(self) -> PlanSchema:
        plan = await PlanCatalog(self.db).find_plan_by_name(PlanTier.ENTERPRISE)
        if plan is None:
            return fallback_admin_plan()
        return PlanSchema.model_validate(plan)
