"""
Asset endpoints.
PUT is the asset-update collaborator used when an approved edit is applied.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from assetdesk.database import get_db, utcnow
from assetdesk.models.asset import Asset
from assetdesk.schemas.asset import AssetCreate, AssetUpdate, AssetResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[AssetResponse])
async def list_assets(db: AsyncSession = Depends(get_db)):
    """List assets, newest first."""
    result = await db.execute(select(Asset).order_by(Asset.created_at.desc()))
    return result.scalars().all()


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(asset_id: str, db: AsyncSession = Depends(get_db)):
    asset = await db.get(Asset, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail=f"Asset {asset_id} not found")
    return asset


@router.post("/", response_model=AssetResponse, status_code=201)
async def create_asset(request: AssetCreate, db: AsyncSession = Depends(get_db)):
    if await db.get(Asset, request.id):
        raise HTTPException(status_code=409, detail=f"Asset {request.id} already exists")

    asset = Asset(**request.model_dump())
    db.add(asset)
    await db.commit()
    await db.refresh(asset)

    logger.info(f"Created asset {asset.id} ({asset.name})")
    return asset


@router.put("/{asset_id}", response_model=AssetResponse)
async def update_asset(
    asset_id: str,
    update: AssetUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Partially update an asset. Only explicitly sent fields are written."""
    changes = update.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    asset = await db.get(Asset, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail=f"Asset {asset_id} not found")

    for field, value in changes.items():
        setattr(asset, field, value)
    asset.updated_at = utcnow()

    await db.commit()
    await db.refresh(asset)

    logger.info(f"Updated asset {asset_id}: {sorted(changes)}")
    return asset
