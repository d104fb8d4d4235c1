"""User model."""
import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, as_utc


class Role(str, enum.Enum):
    """Capability tiers, lowest first."""
    
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(Base):
    """User model for authentication and authorization."""
    
    __tablename__ = "users"
    
    name: Mapped[str] = mapped_column(String(40), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg", nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value, nullable=False)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)
    
    # Only loaded when a query asks for it explicitly
    password_hash: Mapped[str] = mapped_column(
        String(255), nullable=False, deferred=True, deferred_raiseload=True
    )
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    
    # Pending reset: sha256 of the emailed token plus its expiry, set and cleared together
    password_reset_token: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, index=True
    )
    password_reset_expires: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    
    def changed_password_after(self, issued_at: float) -> bool:
        """Whether the password changed after a token issued at `issued_at` (epoch seconds)."""
        changed_at = as_utc(self.password_changed_at)
        if changed_at is None:
            return False
        return issued_at < changed_at.timestamp()
    
    def clear_password_reset(self) -> None:
        """Drop any pending reset token."""
        self.password_reset_token = None
        self.password_reset_expires = None
    
    def __repr__(self) -> str:
        return f"<User(email={self.email}, role={self.role})>"
