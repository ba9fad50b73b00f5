"""
Bulk operation schemas
"""

from typing import Any, Dict, List, Optional
from pydantic import Field

from custodian.schemas.common import CamelModel


class BulkUserRequest(CamelModel):
    """Apply one operation to many users"""
    operation: str
    user_ids: List[str] = Field(default_factory=list)
    data: Optional[Dict[str, Any]] = None


class BulkItemError(CamelModel):
    id: str
    error: str


class BulkResultResponse(CamelModel):
    """Result of a bulk operation"""
    total_requested: int
    processed: int
    successful_count: int
    failed_count: int
    errors: List[BulkItemError] = Field(default_factory=list)
    summary_recorded: bool
