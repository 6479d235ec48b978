"""Checkout admission endpoint."""
import structlog
from fastapi import APIRouter, Depends, Request, status

from plangate.api.deps import current_user_id, get_current_user, get_waitlist_service
from plangate.api.responses import error_response
from plangate.auth.rbac import is_admin
from plangate.schemas.error import ErrorCode
from plangate.schemas.waitlist import CheckoutEligibility
from plangate.services.waitlist_service import WaitlistService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.get("/eligibility", response_model=CheckoutEligibility)
async def get_checkout_eligibility(
    request: Request,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: dict = Depends(get_current_user),
):
    """
    Check the paid-seat ceiling before creating a checkout session.

    Returns 403 with seat statistics when every paid seat is taken, and 503
    when capacity could not be determined.
    """
    if is_admin(current_user):
        return CheckoutEligibility(eligible=True)

    user_id = current_user_id(current_user)
    if await service.can_upgrade_to_paid_plan(user_id):
        return CheckoutEligibility(eligible=True)

    stats = await service.get_waitlist_stats()
    logger.info("checkout_blocked_capacity_reached", user_id=str(user_id))
    return error_response(
        request,
        status.HTTP_403_FORBIDDEN,
        ErrorCode.CAPACITY_REACHED,
        "Paid plans are at capacity",
        stats=stats.model_dump(mode="json"),
    )
