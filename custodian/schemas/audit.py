"""
Audit trail schemas
"""

from typing import Any, List, Optional
from datetime import datetime

from custodian.schemas.common import CamelModel


class AuditEntryResponse(CamelModel):
    id: int
    action: str
    entity_type: str
    entity_id: str
    actor_id: Optional[str] = None
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    changed_fields: Optional[List[str]] = None
    description: Optional[str] = None
    extra_data: Optional[Any] = None
    timestamp: datetime
