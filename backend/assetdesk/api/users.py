"""
User directory endpoints.
The approval workflow reads this to route notifications and resolve departments.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from assetdesk.database import get_db
from assetdesk.models.user import AppUser
from assetdesk.schemas.user import UserCreate, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    """List all users ordered by name."""
    result = await db.execute(select(AppUser).order_by(AppUser.name))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await db.get(AppUser, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return user


@router.post("/", response_model=UserResponse, status_code=201)
async def create_user(request: UserCreate, db: AsyncSession = Depends(get_db)):
    """Create a directory entry. Emails are unique (case-insensitive)."""
    existing = await db.execute(
        select(AppUser).where(func.lower(AppUser.email) == request.email.strip().lower())
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"User {request.email} already exists")

    user = AppUser(
        id=request.id or str(uuid.uuid4()),
        name=request.name,
        email=request.email.strip(),
        role=request.role.value,
        department=(request.department or "").strip() or None,
        status=request.status.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created user {user.email} ({user.role})")
    return user
