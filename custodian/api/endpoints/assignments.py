"""
Assignment endpoints: lookups, returns, loss reports and bulk return
"""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.api.deps import bounded, get_current_principal, get_db, get_session_factory
from custodian.core.errors import PermissionDeniedError
from custodian.core.permissions import Principal, Role, has_role
from custodian.schemas.assignment import (
    AssignmentEnvelope,
    AssignmentResponse,
    BulkReturnRequest,
    LostRequest,
    ReturnRequest,
)
from custodian.schemas.bulk import BulkResultResponse
from custodian.services import assignments, bulk

router = APIRouter()


@router.post("/bulk-return", response_model=BulkResultResponse)
async def bulk_return(
    payload: BulkReturnRequest,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Return many assignments; each one succeeds or fails on its own"""
    result = await bulk.run(
        session_factory,
        bulk.BulkOperation.RETURN_ASSIGNMENTS,
        payload.assignment_ids,
        {"return_notes": payload.return_notes},
        principal,
    )
    return BulkResultResponse.model_validate(result)


@router.get("/{assignment_id}", response_model=AssignmentEnvelope)
async def get_assignment(
    assignment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    details = await assignments.get_assignment(db, assignment_id)
    if details.assignment.user_id != principal.id and not has_role(principal, Role.MANAGER):
        raise PermissionDeniedError("Insufficient permissions to view this assignment")
    return AssignmentEnvelope(assignment=AssignmentResponse.from_details(details))


@router.post("/{assignment_id}/return", response_model=AssignmentEnvelope)
async def return_assignment(
    assignment_id: int,
    payload: Optional[ReturnRequest] = None,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    payload = payload or ReturnRequest()
    details = await bounded(
        assignments.return_assignment(
            session_factory,
            assignment_id,
            principal,
            assignments.ReturnDetails(
                return_notes=payload.return_notes,
                actual_return_condition=payload.actual_return_condition,
            ),
        )
    )
    return AssignmentEnvelope(assignment=AssignmentResponse.from_details(details))


@router.post("/{assignment_id}/lost", response_model=AssignmentEnvelope)
async def report_lost(
    assignment_id: int,
    payload: Optional[LostRequest] = None,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Close an assignment as lost; the asset is marked lost too"""
    notes = payload.notes if payload else None
    details = await bounded(assignments.report_lost(session_factory, assignment_id, principal, notes))
    return AssignmentEnvelope(assignment=AssignmentResponse.from_details(details))
