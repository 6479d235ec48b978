"""
Background worker expiring lapsed waitlist offers.

Notified entries whose offer window has passed move to ``expired``, which
frees the email to register again.

Schedule: daily at 00:00 UTC

Usage (with ARQ):
    arq plangate.workers.waitlist_expiry.WorkerSettings
"""
import structlog
from sqlalchemy.exc import SQLAlchemyError

from plangate.database import AsyncSessionLocal
from plangate.services.waitlist_service import WaitlistService

logger = structlog.get_logger(__name__)


async def expire_waitlist_notifications(ctx: dict) -> dict:
    """
    Expire lapsed waitlist notifications in a session of its own.

    Args:
        ctx: ARQ context; a ``session_factory`` entry overrides the default sessionmaker

    Returns:
        Dict with the number of expired entries and the job status
    """
    session_factory = ctx.get("session_factory", AsyncSessionLocal)
    logger.info("waitlist_expiry_started")

    try:
        async with session_factory() as db:
            expired = await WaitlistService(db).expire_old_notifications()
            await db.commit()
    except SQLAlchemyError as e:
        logger.exception("waitlist_expiry_failed", error=str(e))
        return {"status": "failed", "error": str(e)}

    logger.info("waitlist_expiry_completed", expired_count=expired)
    return {"status": "success", "expired_count": expired}


class WorkerSettings:
    """
    ARQ worker settings for waitlist maintenance.

    Usage:
        arq plangate.workers.waitlist_expiry.WorkerSettings
    """

    functions = [expire_waitlist_notifications]

    cron_jobs = [
        {
            "function": expire_waitlist_notifications,
            "cron": "0 0 * * *",  # Daily at 00:00 UTC
            "timeout": 300,
        },
    ]

    max_jobs = 1
    job_timeout = 300
