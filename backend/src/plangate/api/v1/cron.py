"""Endpoints for external schedulers."""
import hmac
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status

from plangate.api.deps import get_waitlist_service
from plangate.config import settings
from plangate.services.waitlist_service import WaitlistService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


def verify_cron_secret(x_cron_secret: str | None = Header(None)) -> None:
    """
    Require the shared scheduler secret.

    Raises:
        HTTPException: 401 if no secret is configured or the header does not match
    """
    if not settings.cron_secret or not x_cron_secret or not hmac.compare_digest(
        x_cron_secret, settings.cron_secret
    ):
        logger.warning("cron_unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("/expire-waitlist", dependencies=[Depends(verify_cron_secret)])
async def expire_waitlist(
    service: WaitlistService = Depends(get_waitlist_service),
) -> dict:
    """Expire lapsed waitlist offers. Schedule daily at 00:00 UTC."""
    expired = await service.expire_old_notifications()
    logger.info("cron_waitlist_expired", expired_count=expired)
    return {
        "success": True,
        "expired_count": expired,
        "timestamp": datetime.utcnow().isoformat(),
    }
