"""
Audit trail endpoints
"""

from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from custodian.api.deps import get_current_principal, get_db
from custodian.core.permissions import Principal, Role, require_role
from custodian.schemas.audit import AuditEntryResponse
from custodian.services import audit

router = APIRouter()

# Entity types managers may inspect; everything else needs an admin
MANAGER_VISIBLE_ENTITIES = frozenset({"asset", "assignment", "asset_counter"})


@router.get("", response_model=List[AuditEntryResponse])
async def get_audit_history(
    entity_type: str = Query(..., alias="entityType", min_length=1),
    entity_id: str = Query(..., alias="entityId", min_length=1),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """History of one entity, oldest first"""
    if entity_type in MANAGER_VISIBLE_ENTITIES:
        require_role(principal, Role.MANAGER, "view audit history")
    else:
        require_role(principal, Role.ADMIN, "view audit history")
    entries = await audit.query_history(db, entity_type, entity_id)
    return [AuditEntryResponse.model_validate(entry) for entry in entries]
