"""
Approvals API endpoints.
Stores approval requests and enforces the approval state machine on writes.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func

from assetdesk.database import get_db, utcnow
from assetdesk.models.approval import Approval, ApprovalEvent, ApprovalStatus
from assetdesk.services.state_machine import validate_transition, InvalidTransitionError
from assetdesk.schemas.approval import (
    ApprovalCreate,
    ApprovalUpdate,
    ApprovalResponse,
    ApprovalEventCreate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _build_event(approval_id: str, event: ApprovalEventCreate) -> ApprovalEvent:
    return ApprovalEvent(
        id=event.id or f"AEV-{uuid.uuid4().hex[:12].upper()}",
        approval_id=approval_id,
        event_type=event.event_type.value,
        author=event.author,
        message=event.message,
        created_at=event.created_at or utcnow(),
    )


# Endpoints
@router.get("/", response_model=list[ApprovalResponse])
async def list_approvals(
    status: Optional[ApprovalStatus] = Query(None, description="Filter by status"),
    department: Optional[str] = Query(None, description="Filter by department (case-insensitive)"),
    requested_by: Optional[str] = Query(None, alias="requestedBy", description="Filter by requester (case-insensitive)"),
    asset_ids: Optional[list[str]] = Query(None, alias="assetId", description="Filter by asset, repeatable"),
    db: AsyncSession = Depends(get_db)
):
    """
    List approval requests with optional equality filters.

    Returns requests ordered by requested_at DESC (newest first).
    """
    query = select(Approval)
    filters = []

    if status:
        filters.append(Approval.status == status.value)
    if department:
        filters.append(func.lower(Approval.department) == department.strip().lower())
    if requested_by:
        filters.append(func.lower(Approval.requested_by) == requested_by.strip().lower())
    if asset_ids:
        filters.append(func.lower(Approval.asset_id).in_([a.lower() for a in asset_ids]))

    if filters:
        query = query.where(and_(*filters))

    query = query.order_by(Approval.requested_at.desc())

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{approval_id}", response_model=ApprovalResponse)
async def get_approval(
    approval_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get an approval request by ID."""
    approval = await db.get(Approval, approval_id)
    if not approval:
        raise HTTPException(status_code=404, detail=f"Approval {approval_id} not found")
    return approval


@router.post("/", response_model=ApprovalResponse, status_code=201)
async def create_approval(
    request: ApprovalCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Create an approval request.

    New requests always start in pending_manager; requested_at defaults to now.
    An embedded event (normally 'submitted') is written in the same transaction.
    """
    approval_id = request.id or f"APR-{uuid.uuid4().hex[:12].upper()}"

    if await db.get(Approval, approval_id):
        raise HTTPException(status_code=409, detail=f"Approval {approval_id} already exists")

    approval = Approval(
        id=approval_id,
        asset_id=request.asset_id,
        action=request.action.value,
        status=ApprovalStatus.PENDING_MANAGER.value,
        requested_by=request.requested_by,
        requested_at=request.requested_at or utcnow(),
        notes=request.notes,
        patch=request.patch,
        department=(request.department or "").strip() or None,
    )
    db.add(approval)

    if request.event:
        db.add(_build_event(approval_id, request.event))

    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating approval {approval_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create approval")

    await db.refresh(approval)
    logger.info(f"Created approval {approval.id} for asset {approval.asset_id} ({approval.action})")
    return approval


@router.put("/{approval_id}", response_model=ApprovalResponse)
async def update_approval(
    approval_id: str,
    update: ApprovalUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Partially update an approval request.

    Only the fields present in the body are written. A status change must be a
    valid state machine move (409 otherwise). The row update and an embedded
    event commit together or not at all.
    """
    changes = update.changes()
    if not changes and update.event is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    approval = await db.get(Approval, approval_id)
    if not approval:
        raise HTTPException(status_code=404, detail=f"Approval {approval_id} not found")

    new_status = changes.get("status")
    if new_status and new_status != approval.status:
        try:
            # The server accepts the override shortcut; who may use it is the caller's concern
            validate_transition(ApprovalStatus(approval.status), ApprovalStatus(new_status), override=True)
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    for field, value in changes.items():
        setattr(approval, field, value)
    approval.updated_at = utcnow()

    if update.event:
        db.add(_build_event(approval_id, update.event))

    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating approval {approval_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update approval")

    await db.refresh(approval)
    logger.info(f"Updated approval {approval_id}: {sorted(changes)}", extra={"status": approval.status})
    return approval
