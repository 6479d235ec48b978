"""Waitlist admission: paid-seat ceiling and the FIFO queue in front of it."""
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from plangate.config import settings
from plangate.errors import CapacityCheckFailedError, InvalidWaitlistTransitionError
from plangate.integrations.notification_service import NotificationService
from plangate.metrics import (
    paid_seats_in_use,
    waitlist_notification_failures_total,
    waitlist_transitions_total,
)
from plangate.models.plan import Plan, PlanTier
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.models.user import User, UserRole
from plangate.models.waitlist_entry import (
    ACTIVE_WAITLIST_STATUSES,
    WAITLIST_TRANSITIONS,
    WaitlistEntry,
    WaitlistStatus,
)
from plangate.schemas.waitlist import (
    ALREADY_ON_WAITLIST,
    WaitlistEntry as WaitlistEntrySchema,
    WaitlistRegistration,
    WaitlistStats,
)

logger = structlog.get_logger(__name__)

# Queue order: oldest registration first, entry id breaks ties
QUEUE_ORDER = (
    WaitlistEntry.registered_at.asc(),
    WaitlistEntry.queue_number.asc(),
    WaitlistEntry.id.asc(),
)


def normalize_email(email: str) -> str:
    """Canonical form used for waitlist lookups."""
    return email.strip().lower()


def transition(entry: WaitlistEntry, new_status: WaitlistStatus) -> None:
    """
    Move an entry to ``new_status`` if the state machine allows it.

    Raises:
        InvalidWaitlistTransitionError: If the transition is not allowed
    """
    allowed = WAITLIST_TRANSITIONS.get(entry.status, frozenset())
    if new_status not in allowed:
        raise InvalidWaitlistTransitionError(entry.status.value, new_status.value)

    entry.status = new_status
    waitlist_transitions_total.labels(status=new_status.value).inc()


class WaitlistService:
    """
    Enforces the paid-seat ceiling and manages the waitlist queue.

    Seat counts and queue positions are always recomputed from the store.
    ``can_upgrade_to_paid_plan`` is checked when checkout starts and can race
    with concurrent checkouts near the ceiling; the billing provider's webhook
    is the source of truth and corrects over-admission out of band.
    """

    def __init__(
        self,
        db: AsyncSession,
        max_paid_users: int | None = None,
        notification_expiry_days: int | None = None,
        notifier: NotificationService | None = None,
    ):
        """
        Initialize waitlist service.

        Args:
            db: Database session
            max_paid_users: Seat ceiling (defaults to settings)
            notification_expiry_days: Offer window (defaults to settings)
            notifier: Sends the seat-available email when entries are notified
        """
        self.db = db
        self.max_paid_users = settings.max_paid_users if max_paid_users is None else max_paid_users
        expiry_days = (
            settings.waitlist_notification_expiry_days
            if notification_expiry_days is None
            else notification_expiry_days
        )
        self.notification_window = timedelta(days=expiry_days)
        self.notifier = notifier

    # Capacity

    async def paid_users_count(self) -> int:
        """
        Count users holding a paid seat.

        A seat is an active subscription on any non-FREE plan. Administrators
        never occupy a seat.
        """
        result = await self.db.execute(
            select(func.count())
            .select_from(Subscription)
            .join(Plan, Subscription.plan_id == Plan.id)
            .join(User, Subscription.user_id == User.id)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Plan.name != PlanTier.FREE,
                User.role != UserRole.ADMIN,
            )
        )
        count = result.scalar() or 0
        paid_seats_in_use.set(count)
        return count

    async def is_capacity_reached(self) -> bool:
        """Whether every paid seat is taken."""
        return await self.paid_users_count() >= self.max_paid_users

    async def can_upgrade_to_paid_plan(self, user_id: UUID) -> bool:
        """
        Check whether a user may start a paid checkout.

        Users already holding a paid seat may always change plans; everyone
        else needs a free seat.

        Args:
            user_id: User UUID

        Returns:
            True if checkout may proceed, False if capacity is reached

        Raises:
            CapacityCheckFailedError: If the store could not be read
        """
        try:
            result = await self.db.execute(
                select(Subscription)
                .options(selectinload(Subscription.plan))
                .where(Subscription.user_id == user_id)
            )
            subscription = result.scalar_one_or_none()

            if (
                subscription is not None
                and subscription.status == SubscriptionStatus.ACTIVE
                and subscription.plan.is_paid
            ):
                return True

            paid_users = await self.paid_users_count()
        except SQLAlchemyError as e:
            logger.error("capacity_check_failed", user_id=str(user_id), error=str(e))
            raise CapacityCheckFailedError() from e

        allowed = paid_users < self.max_paid_users
        if not allowed:
            logger.info(
                "upgrade_blocked_capacity_reached",
                user_id=str(user_id),
                paid_users=paid_users,
                max_paid_users=self.max_paid_users,
            )
        return allowed

    async def get_waitlist_stats(self) -> WaitlistStats:
        """Seat usage and queue size."""
        paid_users = await self.paid_users_count()
        waitlist_count = await self.db.scalar(
            select(func.count())
            .select_from(WaitlistEntry)
            .where(WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES))
        )

        available_slots = max(0, self.max_paid_users - paid_users)
        return WaitlistStats(
            paid_users_count=paid_users,
            max_paid_users=self.max_paid_users,
            available_slots=available_slots,
            waitlist_count=waitlist_count or 0,
            is_capacity_reached=available_slots == 0,
        )

    # Registration

    async def add_to_waitlist(
        self,
        email: str,
        name: str | None = None,
        now: datetime | None = None,
    ) -> WaitlistRegistration:
        """
        Register an email on the waitlist.

        Args:
            email: Contact email
            name: Optional display name
            now: Registration time (defaults to the current UTC time)

        Returns:
            Registration with the new queue position, or
            ``success=False, error=ALREADY_ON_WAITLIST`` and the current
            position when the email is already pending or notified
        """
        email = normalize_email(email)

        existing = await self._find_active_entry(email)
        if existing:
            return await self._already_registered(existing)

        entry = WaitlistEntry(
            email=email,
            name=name,
            status=WaitlistStatus.PENDING,
            registered_at=now or datetime.utcnow(),
            queue_number=await self._next_queue_number(),
        )

        try:
            async with self.db.begin_nested():
                self.db.add(entry)
                await self.db.flush()
        except IntegrityError:
            # A concurrent registration for the same email won the insert
            existing = await self._find_active_entry(email)
            if existing is None:
                raise
            logger.info("waitlist_registration_race_lost", email=email)
            return await self._already_registered(existing)

        waitlist_transitions_total.labels(status=WaitlistStatus.PENDING.value).inc()
        position = await self._position_of(entry)

        logger.info("waitlist_registered", email=email, position=position)
        return WaitlistRegistration(success=True, position=position)

    async def get_waitlist_position(self, email: str) -> int | None:
        """
        Live 1-based position of an email's pending entry.

        Returns:
            Position, or None if the email has no pending entry
        """
        entry = await self._find_active_entry(normalize_email(email))
        if entry is None:
            return None
        return await self._position_of(entry)

    async def cancel_registration(self, email: str) -> bool:
        """
        Cancel an email's pending or notified registration.

        Returns:
            True if an entry was cancelled, False if none was active
        """
        entry = await self._find_active_entry(normalize_email(email))
        if entry is None:
            return False

        transition(entry, WaitlistStatus.CANCELLED)
        await self.db.flush()

        logger.info("waitlist_cancelled", email=entry.email, entry_id=str(entry.id))
        return True

    async def mark_converted(self, email: str, now: datetime | None = None) -> bool:
        """
        Record that a notified user completed checkout within the window.

        Returns:
            True if an entry was converted, False if there was no notified
            entry or its window had already lapsed
        """
        now = now or datetime.utcnow()
        entry = await self._find_active_entry(normalize_email(email))

        if entry is None or entry.status != WaitlistStatus.NOTIFIED:
            return False
        if entry.notification_expires_at is not None and entry.notification_expires_at <= now:
            logger.info("waitlist_conversion_after_expiry", email=entry.email, entry_id=str(entry.id))
            return False

        transition(entry, WaitlistStatus.CONVERTED)
        await self.db.flush()

        logger.info("waitlist_converted", email=entry.email, entry_id=str(entry.id))
        return True

    # Queue processing

    async def notify_next_in_waitlist(self, count: int, now: datetime | None = None) -> int:
        """
        Offer open seats to the oldest pending entries.

        A failed seat-available email is logged and counted; it does not undo
        the notification or stop the remaining sends.

        Args:
            count: Maximum number of entries to notify
            now: Notification time (defaults to the current UTC time)

        Returns:
            Number of entries notified (fewer than ``count`` if the queue is
            shorter)

        Raises:
            ValueError: If count is negative
        """
        if count < 0:
            raise ValueError("count must be non-negative")
        if count == 0:
            return 0

        now = now or datetime.utcnow()
        expires_at = now + self.notification_window

        result = await self.db.execute(
            select(WaitlistEntry)
            .where(WaitlistEntry.status == WaitlistStatus.PENDING)
            .order_by(*QUEUE_ORDER)
            .limit(count)
            .with_for_update(skip_locked=True)
        )
        entries = list(result.scalars().all())

        for entry in entries:
            transition(entry, WaitlistStatus.NOTIFIED)
            entry.notified_at = now
            entry.notification_expires_at = expires_at

        await self.db.flush()

        failed = 0
        if self.notifier:
            for entry in entries:
                try:
                    await self.notifier.send_seat_available(entry.email, entry.name, expires_at)
                except Exception as e:
                    # The entry stays notified; its offer window runs regardless
                    failed += 1
                    waitlist_notification_failures_total.inc()
                    logger.exception(
                        "waitlist_notification_failed",
                        email=entry.email,
                        entry_id=str(entry.id),
                        exc_info=e,
                    )

        logger.info("waitlist_notified", requested=count, notified=len(entries), send_failures=failed)
        return len(entries)

    async def expire_old_notifications(self, now: datetime | None = None) -> int:
        """
        Expire notified entries whose offer window has passed.

        Returns:
            Number of entries expired
        """
        now = now or datetime.utcnow()

        result = await self.db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.status == WaitlistStatus.NOTIFIED,
                WaitlistEntry.notification_expires_at < now,
            )
            .with_for_update(skip_locked=True)
        )
        entries = list(result.scalars().all())

        for entry in entries:
            transition(entry, WaitlistStatus.EXPIRED)

        await self.db.flush()

        logger.info("waitlist_notifications_expired", expired=len(entries))
        return len(entries)

    async def list_entries(
        self,
        status: WaitlistStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[WaitlistEntrySchema], int]:
        """
        List entries in queue order with live positions.

        Positions come from one ordered scan of pending ids rather than a
        count query per entry.

        Args:
            status: Optional status filter
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (entries, total_count)
        """
        query = select(WaitlistEntry)
        if status:
            query = query.where(WaitlistEntry.status == status)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(query.order_by(*QUEUE_ORDER).offset(offset).limit(limit))
        entries = list(result.scalars().all())

        positions: dict[UUID, int] = {}
        if status in (None, WaitlistStatus.PENDING):
            pending_ids = await self.db.execute(
                select(WaitlistEntry.id)
                .where(WaitlistEntry.status == WaitlistStatus.PENDING)
                .order_by(*QUEUE_ORDER)
            )
            positions = {entry_id: index for index, entry_id in enumerate(pending_ids.scalars().all(), start=1)}

        items = []
        for entry in entries:
            item = WaitlistEntrySchema.model_validate(entry)
            item.position = positions.get(entry.id)
            items.append(item)

        return items, total or 0

    # Helpers

    async def _find_active_entry(self, email: str) -> WaitlistEntry | None:
        result = await self.db.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.email == email,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        return result.scalar_one_or_none()

    async def _next_queue_number(self) -> int:
        """Next insertion sequence number, ordering registrations with equal timestamps."""
        current = await self.db.scalar(select(func.coalesce(func.max(WaitlistEntry.queue_number), 0)))
        return current + 1

    async def _position_of(self, entry: WaitlistEntry) -> int | None:
        if entry.status != WaitlistStatus.PENDING:
            return None

        ahead = await self.db.scalar(
            select(func.count())
            .select_from(WaitlistEntry)
            .where(
                WaitlistEntry.status == WaitlistStatus.PENDING,
                or_(
                    WaitlistEntry.registered_at < entry.registered_at,
                    and_(
                        WaitlistEntry.registered_at == entry.registered_at,
                        or_(
                            WaitlistEntry.queue_number < entry.queue_number,
                            and_(
                                WaitlistEntry.queue_number == entry.queue_number,
                                WaitlistEntry.id < entry.id,
                            ),
                        ),
                    ),
                ),
            )
        )
        return (ahead or 0) + 1

    async def _already_registered(self, entry: WaitlistEntry) -> WaitlistRegistration:
        return WaitlistRegistration(
            success=False,
            position=await self._position_of(entry),
            error=ALREADY_ON_WAITLIST,
        )
