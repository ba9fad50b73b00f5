"""
Asset endpoints: registration, tags, status and assignment by asset
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.api.deps import bounded, get_current_principal, get_db, get_session_factory
from custodian.core.permissions import Principal, Role, require_role
from custodian.schemas.asset import AssetCreate, AssetResponse, AssetStatusUpdate, AssetUpdate, TagResponse
from custodian.schemas.assignment import (
    AssignmentEnvelope,
    AssignmentResponse,
    AssignRequest,
    ReturnRequest,
)
from custodian.schemas.common import MessageResponse
from custodian.services import assets, assignments, tags

router = APIRouter()


@router.get("/next-tag", response_model=TagResponse)
async def get_next_tag(
    category: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Issue the next asset tag for a category"""
    allocation = await bounded(tags.next_tag(session_factory, category, principal))
    return TagResponse.model_validate(allocation)


@router.post("", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def create_asset(
    payload: AssetCreate,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Register a new asset"""
    asset = await bounded(
        assets.create_asset(session_factory, principal, payload.model_dump(exclude_none=True))
    )
    return AssetResponse.model_validate(asset)


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    asset = await assets.get_asset(db, asset_id)
    return AssetResponse.model_validate(asset)


@router.put("/{asset_id}", response_model=AssetResponse)
async def update_asset(
    asset_id: int,
    payload: AssetUpdate,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Edit an asset's descriptive fields"""
    asset = await bounded(
        assets.update_asset(session_factory, asset_id, principal, payload.model_dump(exclude_unset=True))
    )
    return AssetResponse.model_validate(asset)


@router.patch("/{asset_id}/status", response_model=AssetResponse)
async def change_asset_status(
    asset_id: int,
    payload: AssetStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Move an asset into or out of maintenance, repair, retirement..."""
    asset = await bounded(
        assets.change_status(session_factory, asset_id, payload.status, principal, notes=payload.notes)
    )
    return AssetResponse.model_validate(asset)


@router.delete("/{asset_id}", response_model=MessageResponse)
async def delete_asset(
    asset_id: int,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    await bounded(assets.soft_delete_asset(session_factory, asset_id, principal))
    return MessageResponse(message="Asset deleted successfully", id=str(asset_id))


@router.post("/{asset_id}/assign", response_model=AssignmentEnvelope, status_code=status.HTTP_201_CREATED)
async def assign_asset(
    asset_id: int,
    payload: AssignRequest,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Assign an available asset to a user"""
    options = assignments.AssignOptions(
        purpose=payload.purpose,
        expected_return_at=payload.expected_return_at,
        notes=payload.notes,
    )
    details = await bounded(
        assignments.assign(session_factory, asset_id, payload.user_id, principal, options)
    )
    return AssignmentEnvelope(assignment=AssignmentResponse.from_details(details))


@router.post("/{asset_id}/return", response_model=AssignmentEnvelope)
async def return_asset(
    asset_id: int,
    payload: Optional[ReturnRequest] = None,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Return the asset from whoever currently holds it"""
    payload = payload or ReturnRequest()
    details = await bounded(
        assignments.return_asset(
            session_factory,
            asset_id,
            principal,
            assignments.ReturnDetails(
                return_notes=payload.return_notes,
                actual_return_condition=payload.actual_return_condition,
            ),
        )
    )
    return AssignmentEnvelope(assignment=AssignmentResponse.from_details(details))


@router.get("/{asset_id}/assignments", response_model=List[AssignmentResponse])
async def get_asset_assignments(
    asset_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Assignment history of an asset, oldest first"""
    require_role(principal, Role.MANAGER, "view assignment history")
    history = await assignments.assignment_history_for_asset(db, asset_id)
    return [AssignmentResponse.from_details(details) for details in history]
