"""
In-app notification endpoints.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from assetdesk.database import get_db
from assetdesk.models.notification import Notification
from assetdesk.schemas.notification import (
    NotificationCreate,
    NotificationResponse,
    MarkAllReadRequest,
    MarkAllReadResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(
    user_id: Optional[str] = Query(None, description="Filter by recipient"),
    limit: int = Query(50, ge=1, le=200, description="Max notifications to return"),
    db: AsyncSession = Depends(get_db)
):
    """List notifications, newest first."""
    query = select(Notification)
    if user_id:
        query = query.where(Notification.user_id == user_id)
    query = query.order_by(Notification.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=NotificationResponse, status_code=201)
async def create_notification(
    request: NotificationCreate,
    db: AsyncSession = Depends(get_db)
):
    notification = Notification(
        id=request.id or f"NTF-{uuid.uuid4().hex[:12].upper()}",
        user_id=request.user_id,
        title=request.title,
        message=request.message,
        type=request.type,
        read=request.read,
    )
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return notification


@router.put("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(
    request: MarkAllReadRequest,
    db: AsyncSession = Depends(get_db)
):
    """Mark every unread notification of a user as read."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == request.user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()

    logger.info(f"Marked {result.rowcount} notifications read for user {request.user_id}")
    return MarkAllReadResponse(user_id=request.user_id, updated=result.rowcount or 0)
