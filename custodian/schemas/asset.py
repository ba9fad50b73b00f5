"""
Asset schemas for validation
"""

from typing import Optional
from datetime import datetime
from pydantic import Field

from custodian.schemas.common import CamelModel

CONDITION_PATTERN = "^(new|excellent|good|fair|poor|damaged)$"


class AssetCreate(CamelModel):
    """Asset creation schema; the tag is issued when omitted"""
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=50)
    asset_tag: Optional[str] = Field(None, max_length=50)
    serial_number: Optional[str] = Field(None, max_length=255)
    manufacturer: Optional[str] = Field(None, max_length=255)
    model: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    department: Optional[str] = Field(None, max_length=100)
    condition: Optional[str] = Field(None, pattern=CONDITION_PATTERN)


class AssetUpdate(CamelModel):
    """Partial asset edit; status and deletion have their own endpoints"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    asset_tag: Optional[str] = Field(None, min_length=1, max_length=50)
    serial_number: Optional[str] = Field(None, max_length=255)
    manufacturer: Optional[str] = Field(None, max_length=255)
    model: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    department: Optional[str] = Field(None, max_length=100)
    condition: Optional[str] = Field(None, pattern=CONDITION_PATTERN)
    # Accepted only so the service can refuse them
    status: Optional[str] = None
    is_deleted: Optional[bool] = None


class AssetStatusUpdate(CamelModel):
    status: str = Field(..., pattern="^(available|assigned|maintenance|repair|retired|lost|stolen)$")
    notes: Optional[str] = None


class AssetResponse(CamelModel):
    """Asset response schema"""
    id: int
    asset_tag: str
    serial_number: Optional[str] = None
    name: str
    category: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    status: str
    condition: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TagResponse(CamelModel):
    """Next asset tag for a category"""
    asset_tag: str
    next_number: int
    category: str
    prefix: str
