from sqlalchemy import Column, String, DateTime
import enum

from assetdesk.database import Base, utcnow


class UserRole(str, enum.Enum):
    """User role used for routing approval notifications."""
    USER = "user"  # Regular user - can submit approval requests
    MANAGER = "manager"  # First-level reviewer, scoped to a department
    ADMIN = "admin"  # Final approver


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AppUser(Base):
    __tablename__ = "app_users"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(32), nullable=False, default=UserRole.USER.value, index=True)
    department = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default=UserStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def is_active(self) -> bool:
        return (self.status or "").lower() == UserStatus.ACTIVE.value
