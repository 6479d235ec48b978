"""Usage recorder: the ledger write path after a successful generation."""
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.metrics import usage_recorded_total
from plangate.models.usage_log import UsageLog, UsageAction
from plangate.services.usage_ledger import UsageLedger

logger = structlog.get_logger(__name__)


class UsageRecorder:
    """
    Appends one usage entry per successful generation.

    Only call this once the gated action has actually succeeded. A caller
    that evaluated the gate and then aborted must not record.
    """

    def __init__(self, db: AsyncSession, ledger: UsageLedger | None = None):
        """Initialize usage recorder with database session."""
        self.db = db
        self.ledger = ledger or UsageLedger(db)

    async def record(
        self,
        user_id: UUID,
        action: UsageAction | str,
        metadata: dict[str, Any] | None = None,
    ) -> UsageLog:
        """
        Record one billable action.

        A ``resourceType`` key in ``metadata`` is stored in its own column and
        removed from the stored metadata.

        Args:
            user_id: User UUID
            action: Kind of billable action
            metadata: Free-form context (mode, prompt length, editing flag, ...)

        Returns:
            Created usage log entry
        """
        action = UsageAction(action)
        clean_metadata = dict(metadata or {})
        resource_type = clean_metadata.pop("resourceType", None)

        entry = await self.ledger.append(
            user_id,
            action,
            metadata=clean_metadata,
            resource_type=resource_type,
        )

        usage_recorded_total.labels(action=action.value).inc()
        logger.info(
            "usage_recorded",
            user_id=str(user_id),
            action=action.value,
            resource_type=resource_type,
            usage_log_id=str(entry.id),
        )

        return entry
