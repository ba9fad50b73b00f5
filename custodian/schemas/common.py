"""
Common schemas used across the application
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase field names"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Body returned for every handled error"""
    detail: str
    error: str


class MessageResponse(CamelModel):
    message: str
    id: Optional[str] = None
