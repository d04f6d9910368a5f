"""Common Pydantic models used across the API."""

from pydantic import BaseModel, ConfigDict


class RosterDeskBaseModel(BaseModel):
    """Base model with common configuration.

    Field aliases carry the camelCase names the dashboard frontend uses.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class SuccessResponse(RosterDeskBaseModel):
    success: bool = True


class ErrorResponse(RosterDeskBaseModel):
    error: str
