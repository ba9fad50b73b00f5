"""
Assignment schemas for validation
"""

from typing import Optional, List
from datetime import datetime
from pydantic import Field

from custodian.schemas.common import CamelModel


class AssignRequest(CamelModel):
    """Assign an asset to a user"""
    user_id: str = Field(..., min_length=1, max_length=255)
    purpose: Optional[str] = Field(None, max_length=255)
    expected_return_at: Optional[datetime] = None
    notes: Optional[str] = None


class ReturnRequest(CamelModel):
    """Return an assigned asset"""
    return_notes: Optional[str] = None
    actual_return_condition: Optional[str] = Field(
        None, pattern="^(new|excellent|good|fair|poor|damaged)$"
    )


class LostRequest(CamelModel):
    notes: Optional[str] = None


class BulkReturnRequest(CamelModel):
    assignment_ids: List[int] = Field(default_factory=list)
    return_notes: Optional[str] = None


class AssignmentResponse(CamelModel):
    """Assignment with display fields of its asset and holder"""
    id: int
    asset_id: int
    user_id: str
    status: str
    is_overdue: bool = False
    assigned_at: datetime
    expected_return_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    returned_by: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    return_notes: Optional[str] = None
    actual_return_condition: Optional[str] = None
    asset_name: Optional[str] = None
    asset_tag: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    @classmethod
    def from_details(cls, details) -> "AssignmentResponse":
        assignment = details.assignment
        return cls(
            id=assignment.id,
            asset_id=assignment.asset_id,
            user_id=assignment.user_id,
            status=details.effective_status,
            is_overdue=details.is_overdue,
            assigned_at=assignment.assigned_at,
            expected_return_at=assignment.expected_return_at,
            returned_at=assignment.returned_at,
            assigned_by=assignment.assigned_by,
            returned_by=assignment.returned_by,
            purpose=assignment.purpose,
            notes=assignment.notes,
            return_notes=assignment.return_notes,
            actual_return_condition=assignment.actual_return_condition,
            asset_name=details.asset_name,
            asset_tag=details.asset_tag,
            user_name=details.user_name,
            user_email=details.user_email,
        )


class AssignmentEnvelope(CamelModel):
    assignment: AssignmentResponse
