"""Usage log model: append-only ledger of billable generation actions."""
from sqlalchemy import Column, String, ForeignKey, Index, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from plangate.models.base import Base, JSONType


class UsageAction(enum.Enum):
    """Kind of billable action recorded in the ledger."""

    CHAT = "chat"
    PRO_MODE = "pro_mode"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"
    OTHER = "other"


class UsageLog(Base):
    """
    One successful generation event.

    Rows are never updated or deleted by normal flows; ``created_at`` decides
    which calendar month an entry counts toward.
    """

    __tablename__ = "usage_logs"
    __table_args__ = (Index("ix_usage_logs_user_id_created_at", "user_id", "created_at"),)

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(SQLEnum(UsageAction), nullable=False, index=True)
    resource_type = Column(String, nullable=True)
    extra_metadata = Column(JSONType, nullable=False, default=dict)

    # Relationships
    user = relationship("User", back_populates="usage_logs")

    def __repr__(self) -> str:
        """String representation."""
        return f"<UsageLog(id={self.id}, user_id={self.user_id}, action={self.action.value})>"
