"""
User management endpoints
"""

from typing import Any, Dict, List
from fastapi import APIRouter, Depends, status
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.api.deps import bounded, get_current_principal, get_db, get_session_factory
from custodian.core.database import run_in_transaction
from custodian.core.errors import ValidationError
from custodian.core.permissions import Principal
from custodian.schemas.assignment import AssignmentResponse
from custodian.schemas.bulk import BulkResultResponse, BulkUserRequest
from custodian.schemas.common import MessageResponse
from custodian.schemas.user import DeletionCheckResponse, UserCreate, UserUpdate
from custodian.services import bulk, users

router = APIRouter()


def _visible(user, principal: Principal) -> Dict[str, Any]:
    return _camel(users.visible_record(principal, user))


def _camel(record: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(key): value for key, value in record.items()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Register a user ahead of their first sign-in"""
    user = await bounded(
        run_in_transaction(session_factory, users.create_user, principal, payload.model_dump(exclude_none=True))
    )
    return _visible(user, principal)


@router.post("/bulk", response_model=BulkResultResponse)
async def bulk_users(
    payload: BulkUserRequest,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Apply one operation to up to BULK_MAX_ITEMS users"""
    operation = bulk.parse_operation(payload.operation)
    if operation not in bulk.USER_OPERATIONS:
        raise ValidationError(f"Invalid bulk user operation: {operation.value}", field="operation")
    result = await bulk.run(session_factory, operation, payload.user_ids, payload.data, principal)
    return BulkResultResponse.model_validate(result)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """User profile, limited to the fields the caller may see"""
    return _camel(await users.get_user_profile(db, principal, user_id))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    user = await bounded(
        run_in_transaction(
            session_factory, users.update_user_profile, principal, user_id, payload.model_dump(exclude_unset=True)
        )
    )
    return _visible(user, principal)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    await bounded(run_in_transaction(session_factory, users.delete_user, principal, user_id))
    return MessageResponse(message="User deleted successfully", id=user_id)


@router.get("/{user_id}/can-delete", response_model=DeletionCheckResponse)
async def can_delete_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Why a user could not be deleted right now, if anything"""
    check = await users.deletion_check(db, principal, user_id)
    return DeletionCheckResponse.model_validate(check)


@router.get("/{user_id}/assets", response_model=List[AssignmentResponse])
async def get_user_assets(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Assets the user currently holds"""
    held = await users.assets_held_by(db, principal, user_id)
    return [AssignmentResponse.from_details(details) for details in held]
