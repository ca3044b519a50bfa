"""User directory schemas."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from assetdesk.models.user import UserRole, UserStatus


class UserCreate(BaseModel):
    """Schema for creating a directory entry."""
    id: Optional[str] = None
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: UserRole = UserRole.USER
    department: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE


class UserResponse(BaseModel):
    """Schema for a directory entry; also the shape cached in the local mirror."""
    id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    status: str = UserStatus.ACTIVE.value

    model_config = ConfigDict(from_attributes=True)

    def is_active(self) -> bool:
        return (self.status or "").lower() == UserStatus.ACTIVE.value

    def has_role(self, role: UserRole) -> bool:
        return (self.role or "").lower() == role.value
