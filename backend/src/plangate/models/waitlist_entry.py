"""Waitlist entry model for the paid-seat queue."""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, Index, String, Enum as SQLEnum, text
import enum

from plangate.models.base import Base


class WaitlistStatus(enum.Enum):
    """Waitlist entry lifecycle status."""

    PENDING = "pending"
    NOTIFIED = "notified"
    CONVERTED = "converted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


ACTIVE_WAITLIST_STATUSES = (WaitlistStatus.PENDING, WaitlistStatus.NOTIFIED)

# Allowed transitions; statuses without an entry are terminal
WAITLIST_TRANSITIONS: dict[WaitlistStatus, frozenset[WaitlistStatus]] = {
    WaitlistStatus.PENDING: frozenset({WaitlistStatus.NOTIFIED, WaitlistStatus.CANCELLED}),
    WaitlistStatus.NOTIFIED: frozenset(
        {WaitlistStatus.CONVERTED, WaitlistStatus.EXPIRED, WaitlistStatus.CANCELLED}
    ),
}

_ACTIVE_STATUS_CLAUSE = text("status IN ('PENDING', 'NOTIFIED')")


class WaitlistEntry(Base):
    """
    A registration waiting for a paid seat.

    A new row is written per registration. At most one row per email may be
    pending or notified at a time (partial unique index). Queue order is
    ``registered_at`` ascending, then ``queue_number`` (insertion sequence),
    then ``id``.
    """

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index(
            "uq_waitlist_entries_active_email",
            "email",
            unique=True,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
        ),
        Index("ix_waitlist_entries_status_registered_at", "status", "registered_at"),
    )

    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    status = Column(SQLEnum(WaitlistStatus), nullable=False, default=WaitlistStatus.PENDING)
    registered_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    queue_number = Column(BigInteger, nullable=False)
    notified_at = Column(DateTime, nullable=True)
    notification_expires_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<WaitlistEntry(id={self.id}, email={self.email}, status={self.status.value})>"
