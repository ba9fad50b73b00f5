"""
Pydantic schemas for request/response validation
"""

from custodian.schemas.asset import (
    AssetCreate,
    AssetResponse,
    AssetStatusUpdate,
    AssetUpdate,
    TagResponse
)
from custodian.schemas.assignment import (
    AssignRequest,
    AssignmentEnvelope,
    AssignmentResponse,
    BulkReturnRequest,
    LostRequest,
    ReturnRequest
)
from custodian.schemas.audit import AuditEntryResponse
from custodian.schemas.bulk import (
    BulkResultResponse,
    BulkUserRequest
)
from custodian.schemas.common import (
    CamelModel,
    ErrorResponse,
    MessageResponse
)
from custodian.schemas.user import (
    DeletionCheckResponse,
    UserCreate,
    UserUpdate
)

__all__ = [
    "AssetCreate",
    "AssetResponse",
    "AssetStatusUpdate",
    "AssetUpdate",
    "TagResponse",
    "AssignRequest",
    "AssignmentEnvelope",
    "AssignmentResponse",
    "BulkReturnRequest",
    "LostRequest",
    "ReturnRequest",
    "AuditEntryResponse",
    "BulkResultResponse",
    "BulkUserRequest",
    "CamelModel",
    "ErrorResponse",
    "MessageResponse",
    "DeletionCheckResponse",
    "UserCreate",
    "UserUpdate"
]
