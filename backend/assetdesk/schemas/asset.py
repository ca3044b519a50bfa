"""Asset schemas."""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class AssetCreate(BaseModel):
    """Schema for registering an asset."""
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str
    property_code: Optional[str] = None
    department: Optional[str] = None
    quantity: int = Field(1, ge=0)
    condition: Optional[str] = None
    status: str = "active"
    location: Optional[str] = None
    description: Optional[str] = None
    serial_number: Optional[str] = None


class AssetUpdate(BaseModel):
    """
    Typed partial update for an asset.

    This is also what an approved edit's patch must validate against, so a patch
    naming an unknown column is rejected instead of written.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    type: Optional[str] = None
    property_code: Optional[str] = None
    department: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    condition: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    serial_number: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class AssetResponse(BaseModel):
    """Schema for asset response."""
    id: str
    name: str
    type: str
    property_code: Optional[str] = None
    department: Optional[str] = None
    quantity: int
    condition: Optional[str] = None
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    serial_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
