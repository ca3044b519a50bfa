"""Database models"""
from assetdesk.models.user import AppUser, UserRole, UserStatus
from assetdesk.models.asset import Asset
from assetdesk.models.approval import (
    Approval,
    ApprovalEvent,
    ApprovalAction,
    ApprovalStatus,
    ApprovalEventType,
)
from assetdesk.models.notification import Notification

__all__ = [
    "AppUser",
    "UserRole",
    "UserStatus",
    "Asset",
    "Approval",
    "ApprovalEvent",
    "ApprovalAction",
    "ApprovalStatus",
    "ApprovalEventType",
    "Notification",
]
