"""Pydantic schemas for Plan model."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from plangate.models.plan import PlanTier


class PlanFeatures(BaseModel):
    """Feature flags and limits read from a plan's ``features`` map."""

    model_config = ConfigDict(populate_by_name=True)

    allow_pro_mode: bool = Field(default=False, alias="allowProMode")
    allow_image_generation: bool = Field(default=False, alias="allowImageGeneration")
    allow_video_generation: bool = Field(default=False, alias="allowVideoGeneration")
    max_requests_per_month: int | None = Field(
        default=None,
        ge=0,
        alias="maxRequestsPerMonth",
        description="Monthly request ceiling (None for unlimited)",
    )
    max_file_size: int | None = Field(default=None, ge=0, alias="maxFileSize", description="Upload ceiling in bytes")

    @property
    def is_unlimited(self) -> bool:
        """Whether the plan has no monthly request ceiling."""
        return self.max_requests_per_month is None


class Plan(BaseModel):
    """Schema for returning plan data."""

    id: UUID
    name: PlanTier
    monthly_price: int
    stripe_price_id: str | None = None
    features: dict[str, Any]
    max_requests_per_month: int | None = None
    max_file_size: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
