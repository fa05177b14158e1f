"""
Common schema types used across the API.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelSchema(BaseModel):
    """Schema serialized with camelCase keys while keeping snake_case attributes."""
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Error body for 4xx/5xx responses. ``field`` names the rejected query field, if any."""
    detail: str
    field: Optional[str] = None
