"""Action router: batch role actions, reports and holiday requests.

Consumers:
    Dashboard (public/index.html):
        POST /api/batch-action    apply one action to the selected members
        POST /api/mia-action      legacy path of the same endpoint
        POST /api/send-report     shift report to the report channel
        POST /api/holiday         holiday request to the holiday channel

Changes to response shapes must be coordinated with the dashboard.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from rosterdesk.auth.sessions import Session
from rosterdesk.errors import InvalidRequest
from rosterdesk.logging_config import get_logger
from rosterdesk.services.audit_service import (
    HOLIDAY_DESTINATION,
    REPORT_DESTINATION,
    AuditNotifier,
    build_holiday_embed,
    build_report_embed,
    log_audit_event,
)
from rosterdesk.services.batch_actions import BatchActionProcessor, BatchResult

from ..dependencies import (
    get_current_session,
    get_notifier,
    get_processor,
    require_action_permission,
)
from ..models.actions import (
    BatchActionError,
    BatchActionRequest,
    BatchActionResponse,
    FailureView,
    HolidayRequest,
    ReportRequest,
)
from ..models.common import SuccessResponse

router = APIRouter(prefix="/api", tags=["actions"])
logger = get_logger(__name__)

DEFAULT_REPORT_TYPE = "Inne"


def _failure_views(result: BatchResult) -> list[FailureView]:
    return [
        FailureView(target_id=f.target_id, code=f.code.value, message=f.message)
        for f in result.failures
    ]


@router.post(
    "/batch-action",
    response_model=BatchActionResponse,
    responses={400: {"model": BatchActionError}},
)
@router.post("/mia-action", response_model=BatchActionResponse, include_in_schema=False)
async def batch_action(
    body: BatchActionRequest,
    session: Session = Depends(require_action_permission),
    processor: BatchActionProcessor = Depends(get_processor),
) -> BatchActionResponse | JSONResponse:
    """Apply one action to every target.

    Succeeds when at least one target succeeded; per-target failures are
    listed either way.
    """
    result = await processor.apply(body.target_ids, body.type, body.reason, session.actor)

    if not result.ok:
        error = BatchActionError(
            error="Failed",
            errors=result.error_messages,
            failures=_failure_views(result),
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error.model_dump(mode="json", by_alias=True),
        )

    return BatchActionResponse(
        message=f"OK: {result.success_count}",
        success_count=result.success_count,
        errors=result.error_messages or None,
        failures=_failure_views(result),
    )


@router.post("/send-report", response_model=SuccessResponse)
async def send_report(
    body: ReportRequest,
    session: Session = Depends(get_current_session),
    notifier: AuditNotifier = Depends(get_notifier),
) -> SuccessResponse:
    """Post a shift report to the report channel."""
    if not body.description:
        raise InvalidRequest("No description")

    report_type = body.type or DEFAULT_REPORT_TYPE
    embed = build_report_embed(
        report_type=report_type,
        description=body.description,
        actor=session.actor,
        when=datetime.now(UTC),
        style=notifier.style,
    )
    delivered = await notifier.notify(REPORT_DESTINATION, embed)
    log_audit_event(
        event_type="report",
        action="send_report",
        actor_id=session.user_id,
        details={"type": report_type, "delivered": delivered},
    )
    return SuccessResponse()


@router.post("/holiday", response_model=SuccessResponse)
async def request_holiday(
    body: HolidayRequest,
    session: Session = Depends(get_current_session),
    notifier: AuditNotifier = Depends(get_notifier),
) -> SuccessResponse:
    """Post a holiday request to the holiday channel."""
    embed = build_holiday_embed(
        end_date=body.end_date,
        reason=body.reason,
        actor=session.actor,
        when=datetime.now(UTC),
        style=notifier.style,
    )
    delivered = await notifier.notify(HOLIDAY_DESTINATION, embed)
    log_audit_event(
        event_type="holiday",
        action="request_holiday",
        actor_id=session.user_id,
        details={"end_date": body.end_date, "delivered": delivered},
    )
    return SuccessResponse()
