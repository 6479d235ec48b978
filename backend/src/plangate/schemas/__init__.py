"""Pydantic schemas for API request/response validation."""

from plangate.schemas.error import ErrorDetail, ErrorResponse
from plangate.schemas.plan import Plan, PlanFeatures
from plangate.schemas.quota import GatedAction, QuotaCheckRequest, QuotaDecision
from plangate.schemas.usage import (
    UsageFigures,
    UsageLog,
    UsageLogCreate,
    UsageLogList,
    UsageSnapshot,
)
from plangate.schemas.waitlist import (
    ALREADY_ON_WAITLIST,
    CheckoutEligibility,
    WaitlistAdminAction,
    WaitlistEntry,
    WaitlistEntryList,
    WaitlistJoin,
    WaitlistRegistration,
    WaitlistStats,
    WaitlistStatusResponse,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "Plan",
    "PlanFeatures",
    "GatedAction",
    "QuotaCheckRequest",
    "QuotaDecision",
    "UsageFigures",
    "UsageLog",
    "UsageLogCreate",
    "UsageLogList",
    "UsageSnapshot",
    "ALREADY_ON_WAITLIST",
    "CheckoutEligibility",
    "WaitlistAdminAction",
    "WaitlistEntry",
    "WaitlistEntryList",
    "WaitlistJoin",
    "WaitlistRegistration",
    "WaitlistStats",
    "WaitlistStatusResponse",
]
