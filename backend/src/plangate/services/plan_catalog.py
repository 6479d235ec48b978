"""Plan catalog: read access to plan tiers and their feature flags."""
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.errors import PlanNotFoundError
from plangate.models.plan import Plan, PlanTier
from plangate.schemas.plan import PlanFeatures

logger = structlog.get_logger(__name__)

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

# Default tiers seeded by operators; prices in the smallest currency unit
DEFAULT_PLANS = {
    PlanTier.FREE: {
        "monthly_price": 0,
        "features": {
            "allowProMode": False,
            "allowImageGeneration": False,
            "allowVideoGeneration": False,
            "maxRequestsPerMonth": 100,
            "maxFileSize": 5 * 1024 * 1024,
        },
    },
    PlanTier.PRO: {
        "monthly_price": 3000,
        "features": {
            "allowProMode": True,
            "allowImageGeneration": True,
            "allowVideoGeneration": False,
            "maxRequestsPerMonth": 1000,
            "maxFileSize": MAX_FILE_SIZE_BYTES,
        },
    },
    PlanTier.ENTERPRISE: {
        "monthly_price": 30000,
        "features": {
            "allowProMode": True,
            "allowImageGeneration": True,
            "allowVideoGeneration": True,
            "maxRequestsPerMonth": None,
            "maxFileSize": 50 * 1024 * 1024,
        },
    },
}


def features_of(plan: Plan | None) -> PlanFeatures:
    """
    Resolve the feature flags and monthly ceiling of a plan.

    Missing boolean flags read as disabled. When the features map has no
    ``maxRequestsPerMonth`` key at all, the plan's own
    ``max_requests_per_month`` column is used instead.

    Args:
        plan: Plan row

    Returns:
        Parsed plan features

    Raises:
        PlanNotFoundError: If no plan is given or its feature map is malformed
    """
    if plan is None:
        raise PlanNotFoundError("Plan not found")

    raw = dict(plan.features or {})
    if "maxRequestsPerMonth" not in raw:
        raw["maxRequestsPerMonth"] = plan.max_requests_per_month
    if raw.get("maxFileSize") is None:
        raw["maxFileSize"] = plan.max_file_size

    try:
        return PlanFeatures.model_validate(raw)
    except ValidationError as e:
        logger.error("plan_features_invalid", plan_id=str(plan.id), error=str(e))
        raise PlanNotFoundError(f"Plan {plan.name.value} has an invalid feature configuration") from e


class PlanCatalog:
    """Service layer for plan lookups."""

    def __init__(self, db: AsyncSession):
        """Initialize plan catalog with database session."""
        self.db = db

    async def get_plan(self, plan_id: UUID) -> Plan:
        """
        Get plan by ID.

        Raises:
            PlanNotFoundError: If plan not found
        """
        result = await self.db.execute(select(Plan).where(Plan.id == plan_id))
        plan = result.scalar_one_or_none()
        if not plan:
            raise PlanNotFoundError(f"Plan {plan_id} not found")
        return plan

    async def get_plan_by_name(self, tier: PlanTier) -> Plan:
        """
        Get plan by tier name.

        Raises:
            PlanNotFoundError: If the tier has not been seeded
        """
        result = await self.db.execute(select(Plan).where(Plan.name == tier))
        plan = result.scalar_one_or_none()
        if not plan:
            raise PlanNotFoundError(f"{tier.value} plan not found. Seed the plan catalog first.")
        return plan

    async def find_plan_by_name(self, tier: PlanTier) -> Plan | None:
        """Get plan by tier name, or None if it does not exist."""
        result = await self.db.execute(select(Plan).where(Plan.name == tier))
        return result.scalar_one_or_none()

    async def list_plans(self) -> list[Plan]:
        """List all plans, cheapest first."""
        result = await self.db.execute(select(Plan).order_by(Plan.monthly_price))
        return list(result.scalars().all())

    async def seed_default_plans(self) -> list[Plan]:
        """
        Insert the default tiers that do not exist yet.

        Safe to call multiple times; existing plans are left untouched.

        Returns:
            Plans created by this call
        """
        created = []
        for tier, config in DEFAULT_PLANS.items():
            if await self.find_plan_by_name(tier):
                continue

            features = dict(config["features"])
            plan = Plan(
                name=tier,
                monthly_price=config["monthly_price"],
                features=features,
                max_requests_per_month=features["maxRequestsPerMonth"],
                max_file_size=features["maxFileSize"],
            )
            self.db.add(plan)
            created.append(plan)

        if created:
            await self.db.flush()
            logger.info("plans_seeded", plans=[p.name.value for p in created])

        return created
