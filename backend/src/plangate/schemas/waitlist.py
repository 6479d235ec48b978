"""Pydantic schemas for the paid-seat waitlist."""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from plangate.models.waitlist_entry import WaitlistStatus

ALREADY_ON_WAITLIST = "ALREADY_ON_WAITLIST"


class WaitlistJoin(BaseModel):
    """Schema for registering on the waitlist.

    Example:
        ```json
        {"email": "someone@example.com", "name": "Someone"}
        ```
    """

    email: EmailStr = Field(..., description="Contact email for the seat notification")
    name: str | None = Field(default=None, max_length=100, description="Display name")


class WaitlistRegistration(BaseModel):
    """Outcome of a registration attempt."""

    success: bool
    position: int | None = Field(default=None, description="1-based queue position among pending entries")
    error: str | None = None


class WaitlistStats(BaseModel):
    """Seat capacity and queue size."""

    paid_users_count: int
    max_paid_users: int
    available_slots: int
    waitlist_count: int
    is_capacity_reached: bool


class WaitlistEntry(BaseModel):
    """Schema for returning a waitlist entry with its live position."""

    id: UUID
    email: str
    name: str | None = None
    status: WaitlistStatus
    position: int | None = None
    registered_at: datetime
    notified_at: datetime | None = None
    notification_expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class WaitlistEntryList(BaseModel):
    """Schema for the admin waitlist listing."""

    entries: list[WaitlistEntry]
    total: int
    stats: WaitlistStats


class WaitlistStatusResponse(BaseModel):
    """Public waitlist status with an optional position lookup."""

    stats: WaitlistStats
    position: int | None = None


class WaitlistAdminAction(BaseModel):
    """Schema for admin actions on the queue."""

    action: Literal["notify", "expire"]
    count: int = Field(default=1, ge=1, le=1000, description="Entries to notify (notify action only)")


class CheckoutEligibility(BaseModel):
    """Whether the caller may start a paid checkout right now."""

    eligible: bool
    stats: WaitlistStats | None = None
