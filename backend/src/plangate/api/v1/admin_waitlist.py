"""Administrator waitlist endpoints."""
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query

from plangate.api.deps import get_current_user, get_waitlist_service
from plangate.auth.rbac import require_roles
from plangate.models.user import UserRole
from plangate.models.waitlist_entry import WaitlistStatus
from plangate.schemas.waitlist import WaitlistAdminAction, WaitlistEntryList
from plangate.services.waitlist_service import WaitlistService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin/waitlist", tags=["Admin"])


@router.get("", response_model=WaitlistEntryList)
@require_roles(UserRole.ADMIN)
async def list_waitlist(
    status: WaitlistStatus | None = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: dict = Depends(get_current_user),
) -> WaitlistEntryList:
    """Waitlist entries in queue order with live positions and seat statistics."""
    entries, total = await service.list_entries(status=status, limit=limit, offset=offset)
    stats = await service.get_waitlist_stats()
    return WaitlistEntryList(entries=entries, total=total, stats=stats)


@router.post("")
@require_roles(UserRole.ADMIN)
async def run_waitlist_action(
    action: WaitlistAdminAction,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Run a queue action.

    - **notify**: offer seats to the ``count`` oldest pending entries
    - **expire**: expire notified entries whose offer window has passed
    """
    logger.info("admin_waitlist_action", action=action.action, count=action.count, admin_id=current_user.get("sub"))

    if action.action == "notify":
        notified = await service.notify_next_in_waitlist(action.count)
        return {"success": True, "message": f"{notified} users notified", "notified_count": notified}

    expired = await service.expire_old_notifications()
    return {"success": True, "message": f"{expired} notifications expired", "expired_count": expired}
