"""Batch action, report and holiday models."""

from pydantic import Field

from .common import RosterDeskBaseModel


class BatchActionRequest(RosterDeskBaseModel):
    """POST /api/batch-action body.

    Fields are optional here; missing or empty values are rejected by the
    batch processor with a single "Missing data" style error.
    """

    target_ids: list[str] | None = Field(default=None, alias="targetIds")
    type: str | None = None
    reason: str | None = None


class FailureView(RosterDeskBaseModel):
    target_id: str = Field(alias="targetId")
    code: str
    message: str


class BatchActionResponse(RosterDeskBaseModel):
    success: bool = True
    message: str
    success_count: int = Field(alias="successCount")
    # null when every target succeeded
    errors: list[str] | None = None
    failures: list[FailureView] = Field(default_factory=list)


class BatchActionError(RosterDeskBaseModel):
    error: str
    errors: list[str] = Field(default_factory=list)
    failures: list[FailureView] = Field(default_factory=list)


class ReportRequest(RosterDeskBaseModel):
    type: str | None = None
    description: str | None = None


class HolidayRequest(RosterDeskBaseModel):
    end_date: str | None = Field(default=None, alias="endDate")
    reason: str | None = None
