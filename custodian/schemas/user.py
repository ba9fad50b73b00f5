"""
User schemas for validation
"""

from typing import List, Optional
from pydantic import Field

from custodian.schemas.common import CamelModel

ROLE_PATTERN = "^(viewer|user|manager|admin|super_admin)$"


class UserCreate(CamelModel):
    """User creation schema"""
    id: Optional[str] = Field(None, min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = Field(None, max_length=255)
    role: str = Field(default="user", pattern=ROLE_PATTERN)
    department: Optional[str] = Field(None, max_length=100)
    job_title: Optional[str] = Field(None, max_length=100)
    employee_id: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)


class UserUpdate(CamelModel):
    """User update schema (all fields optional)"""
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: Optional[str] = Field(None, pattern=ROLE_PATTERN)
    department: Optional[str] = Field(None, max_length=100)
    job_title: Optional[str] = Field(None, max_length=100)
    employee_id: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class DeletionCheckResponse(CamelModel):
    user_id: str
    can_delete: bool
    reasons: List[str]
    active_assignments: int
