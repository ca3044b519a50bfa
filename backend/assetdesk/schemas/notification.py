"""In-app notification schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class NotificationCreate(BaseModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    title: str
    message: str
    type: str = "system"
    read: bool = False


class NotificationResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarkAllReadRequest(BaseModel):
    user_id: str


class MarkAllReadResponse(BaseModel):
    user_id: str
    updated: int
