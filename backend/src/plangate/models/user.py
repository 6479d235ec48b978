"""User model: the owner of subscriptions and usage logs."""
from sqlalchemy import Column, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from plangate.models.base import Base


class UserRole(enum.Enum):
    """Application role assigned by the auth provider."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """
    Application user.

    Authentication lives with the auth provider; this row only anchors
    subscriptions and usage, and records the role used for seat counting.
    """

    __tablename__ = "users"

    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER)

    # Relationships
    subscription = relationship("Subscription", back_populates="user", uselist=False)
    usage_logs = relationship("UsageLog", back_populates="user")

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
