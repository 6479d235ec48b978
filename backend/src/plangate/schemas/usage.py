"""Pydantic schemas for usage logging and usage snapshots."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from plangate.models.subscription import SubscriptionStatus
from plangate.models.usage_log import UsageAction
from plangate.schemas.plan import PlanFeatures


class UsageLogCreate(BaseModel):
    """Schema for recording one successful generation."""

    action: UsageAction = Field(..., description="Kind of billable action")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form context (mode, resourceType, promptLength, isEditing, ...)",
    )


class UsageLog(BaseModel):
    """Schema for returning usage log data."""

    id: UUID
    user_id: UUID
    action: UsageAction
    resource_type: str | None = None
    extra_metadata: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsageLogList(BaseModel):
    """Schema for paginated usage log list."""

    items: list[UsageLog]
    total: int
    page: int
    page_size: int


class UsageFigures(BaseModel):
    """Current-month usage against the plan ceiling."""

    current: int
    limit: int | None = None
    percentage: int | None = Field(default=None, description="0-100, None for unlimited")
    remaining: int | None = Field(default=None, description="None for unlimited")


class UsageSnapshot(BaseModel):
    """Schema for the usage overview returned to the user."""

    plan_name: str
    features: PlanFeatures
    usage: UsageFigures
    is_limit_reached: bool
    is_admin: bool = False
    reset_date: datetime | None = None
    subscription_status: SubscriptionStatus | None = None
