"""
Base schema classes.

All response schemas that read from ORM rows inherit from BaseResponseSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas built from ORM models.

    UUIDs and datetimes serialize to strings in JSON mode.
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Create/input schemas; unknown fields are ignored."""
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """Update schemas; every field optional for partial updates."""
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )
