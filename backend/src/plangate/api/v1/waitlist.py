"""Public waitlist API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import EmailStr

from plangate.api.deps import get_current_user, get_waitlist_service
from plangate.api.responses import error_response
from plangate.auth.rbac import is_admin
from plangate.errors import AlreadyOnWaitlistError
from plangate.schemas.error import ErrorCode
from plangate.schemas.waitlist import WaitlistJoin, WaitlistRegistration, WaitlistStatusResponse
from plangate.services.waitlist_service import WaitlistService, normalize_email

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


@router.get("", response_model=WaitlistStatusResponse)
async def get_waitlist_status(
    email: EmailStr | None = Query(None, description="Look up the queue position of this email"),
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistStatusResponse:
    """Seat capacity, queue size and optionally one email's live position."""
    stats = await service.get_waitlist_stats()
    position = await service.get_waitlist_position(email) if email else None
    return WaitlistStatusResponse(stats=stats, position=position)


@router.post("", response_model=WaitlistRegistration, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    registration: WaitlistJoin,
    request: Request,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Register for a paid seat.

    Only accepted while every paid seat is taken. Returns 409 with the
    current position if the email is already pending or notified.
    """
    stats = await service.get_waitlist_stats()
    if not stats.is_capacity_reached:
        return error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.WAITLIST_NOT_REQUIRED,
            "Paid seats are available. Upgrade directly instead of joining the waitlist.",
            available_slots=stats.available_slots,
        )

    result = await service.add_to_waitlist(registration.email, registration.name)
    if not result.success:
        raise AlreadyOnWaitlistError(position=result.position)

    return result


@router.delete("")
async def cancel_waitlist_registration(
    email: EmailStr = Query(..., description="Email whose registration to cancel"),
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: dict = Depends(get_current_user),
) -> dict[str, bool]:
    """Cancel a registration. Users may cancel their own; administrators any."""
    own_email = current_user.get("email")
    if not is_admin(current_user) and (
        not own_email or normalize_email(own_email) != normalize_email(email)
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only cancel your own waitlist registration",
        )

    if not await service.cancel_registration(email):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active waitlist registration found for this email",
        )

    return {"success": True}
