"""Typed gating errors.

Every condition the gates can report is its own class carrying a stable
machine-readable ``code`` and the HTTP status the adapter maps it to.
"""
from typing import Optional


class GatingError(Exception):
    """Base class for plan gating and waitlist errors."""

    code = "gating_error"
    status_code = 400

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code


class PlanNotFoundError(GatingError):
    code = "plan_not_found"
    status_code = 404


class QuotaError(GatingError):
    """Raised by the quota gate when an action may not proceed."""

    status_code = 403


class NoSubscriptionError(QuotaError):
    """The user has no subscription row. Bootstrap should have created one."""

    code = "no_subscription"

    def __init__(self) -> None:
        super().__init__("No subscription found")


class SubscriptionNotActiveError(QuotaError):
    code = "subscription_not_active"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Subscription is {status}")


_FEATURE_LABELS = {
    "pro_mode": "Pro mode",
    "image_generation": "Image generation",
    "video_generation": "Video generation",
}


class FeatureNotAllowedError(QuotaError):
    code = "feature_not_allowed"

    def __init__(self, action: str):
        self.action = action
        label = _FEATURE_LABELS.get(action, action.replace("_", " ").capitalize())
        super().__init__(f"{label} not available in current plan")


class MonthlyLimitExceededError(QuotaError):
    """Carries no usage numbers; callers re-query for the response body."""

    code = "monthly_limit_exceeded"
    status_code = 429

    def __init__(self) -> None:
        super().__init__("Monthly request limit exceeded")


class AlreadyOnWaitlistError(GatingError):
    code = "already_on_waitlist"
    status_code = 409

    def __init__(self, position: Optional[int] = None):
        self.position = position
        super().__init__("Already registered on the waitlist")


class CapacityCheckFailedError(GatingError):
    """Seat capacity could not be determined. Distinct from being at capacity."""

    code = "capacity_check_failed"
    status_code = 503

    def __init__(self, message: str = "Unable to determine paid seat capacity"):
        super().__init__(message)


class InvalidWaitlistTransitionError(GatingError):
    code = "invalid_state_transition"
    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move waitlist entry from {current} to {requested}")
