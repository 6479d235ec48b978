"""Pydantic schemas for quota gate decisions."""
from enum import Enum

from pydantic import BaseModel, Field

from plangate.schemas.plan import Plan


class GatedAction(str, Enum):
    """Actions that pass through the quota gate before generation."""

    CHAT = "chat"
    SEARCH = "search"
    PRO_MODE = "pro_mode"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"


class QuotaDecision(BaseModel):
    """Successful gate outcome with the usage snapshot it was based on."""

    allowed: bool = True
    plan: Plan
    usage_count: int = Field(..., ge=0, description="Billable actions so far this calendar month")
    limit: int | None = Field(default=None, description="Monthly ceiling (None for unlimited)")


class QuotaCheckRequest(BaseModel):
    """Schema for asking the gate about an action."""

    action: GatedAction = Field(..., description="Action the caller is about to perform")
