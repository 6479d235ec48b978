"""Usage ledger: append-only log of billable actions and period counting."""
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.models.usage_log import UsageLog, UsageAction


def month_start(now: datetime | None = None) -> datetime:
    """
    First instant of the server-local calendar month containing ``now``.

    ``now`` and the result are naive UTC like the stored timestamps; only the
    month boundary is taken from the server's local time zone. This is not
    the subscription's billing-period anchor.
    """
    now = now or datetime.utcnow()
    local_now = now.replace(tzinfo=timezone.utc).astimezone()
    # Re-localize midnight on the 1st so its own UTC offset applies across DST changes
    local_start = local_now.replace(
        day=1, hour=0, minute=0, second=0, microsecond=0, tzinfo=None
    ).astimezone()
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


class UsageLedger:
    """Reads and appends against the usage log."""

    def __init__(self, db: AsyncSession):
        """Initialize usage ledger with database session."""
        self.db = db

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        """
        Count a user's entries created at or after ``since``.

        Args:
            user_id: User UUID
            since: Inclusive lower bound on ``created_at``

        Returns:
            Number of usage log entries
        """
        result = await self.db.execute(
            select(func.count())
            .select_from(UsageLog)
            .where(
                UsageLog.user_id == user_id,
                UsageLog.created_at >= since,
            )
        )
        return result.scalar() or 0

    async def monthly_usage_count(self, user_id: UUID, now: datetime | None = None) -> int:
        """Count a user's entries in the current calendar month."""
        return await self.count_since(user_id, month_start(now))

    async def append(
        self,
        user_id: UUID,
        action: UsageAction,
        metadata: dict[str, Any] | None = None,
        resource_type: str | None = None,
    ) -> UsageLog:
        """
        Append one entry.

        Args:
            user_id: User UUID
            action: Kind of billable action
            metadata: Free-form context stored with the entry
            resource_type: Optional resource classification

        Returns:
            Created usage log entry
        """
        entry = UsageLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            extra_metadata=metadata or {},
        )

        self.db.add(entry)
        await self.db.flush()
        await self.db.refresh(entry)

        return entry

    async def list_for_user(
        self,
        user_id: UUID,
        since: datetime | None = None,
        page: int = 1,
        page_size: int = 100,
    ) -> tuple[list[UsageLog], int]:
        """
        List a user's entries, newest first.

        Args:
            user_id: User UUID
            since: Optional inclusive lower bound on ``created_at``
            page: Page number (1-indexed)
            page_size: Items per page

        Returns:
            Tuple of (entries, total_count)
        """
        query = select(UsageLog).where(UsageLog.user_id == user_id)
        if since:
            query = query.where(UsageLog.created_at >= since)

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query)

        query = query.order_by(UsageLog.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0
