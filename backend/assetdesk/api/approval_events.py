"""
Approval events API endpoints.
Append-only audit trail for approval requests.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from assetdesk.database import get_db, utcnow
from assetdesk.models.approval import Approval, ApprovalEvent
from assetdesk.schemas.approval import ApprovalEventCreate, ApprovalEventResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[ApprovalEventResponse])
async def list_approval_events(
    approval_id: Optional[str] = Query(None, alias="approvalId", description="Filter by approval"),
    db: AsyncSession = Depends(get_db)
):
    """List events ordered by created_at ASC (oldest first)."""
    query = select(ApprovalEvent)
    if approval_id:
        query = query.where(ApprovalEvent.approval_id == approval_id)
    query = query.order_by(ApprovalEvent.created_at.asc())

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=ApprovalEventResponse, status_code=201)
async def create_approval_event(
    event: ApprovalEventCreate,
    db: AsyncSession = Depends(get_db)
):
    """Append an event to an approval's audit trail."""
    if not event.approval_id:
        raise HTTPException(status_code=400, detail="approval_id is required")

    if not await db.get(Approval, event.approval_id):
        raise HTTPException(status_code=404, detail=f"Approval {event.approval_id} not found")

    row = ApprovalEvent(
        id=event.id or f"AEV-{uuid.uuid4().hex[:12].upper()}",
        approval_id=event.approval_id,
        event_type=event.event_type.value,
        author=event.author,
        message=event.message,
        created_at=event.created_at or utcnow(),
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)

    logger.info(f"Approval {row.approval_id} event: {row.event_type} by {row.author}")
    return row
