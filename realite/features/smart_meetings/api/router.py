"""
Smart-meeting routes: create a plan, list the caller's plans and answer an
invitation.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from realite.auth.verify import current_user_id
from realite.exceptions import NotFoundError, ValidationError
from realite.features.smart_meetings.domain import PlanDraft
from realite.features.smart_meetings.domain.shortcuts import parse_shortcuts
from realite.features.smart_meetings.services.negotiation_service import smart_meeting_service
from realite.infrastructure.observability.logging import get_logger

from .schemas import (
    CreateSmartMeetingRequest,
    RespondRequest,
    SmartMeetingListResponse,
    SmartMeetingResponse,
    SmartMeetingResultResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/smart-meetings", tags=["smart-meetings"])

DEFAULT_MIN_ACCEPTED = 2
DEFAULT_SEARCH_WINDOW_HOURS = 7 * 24


def get_smart_meeting_service():
    return smart_meeting_service


def draft_from_request(request: CreateSmartMeetingRequest, user_id: str) -> PlanDraft:
    """Explicit fields win over title shortcuts, shortcuts win over defaults."""
    shortcuts = parse_shortcuts(request.title)
    title = shortcuts.cleaned_title or request.title

    def pick(explicit, shortcut, default=None):
        if explicit is not None:
            return explicit
        return shortcut if shortcut is not None else default

    search_window_end = request.search_window_end
    if search_window_end is None:
        hours = pick(None, shortcuts.search_window_hours, DEFAULT_SEARCH_WINDOW_HOURS)
        search_window_end = request.search_window_start + timedelta(hours=hours)

    return PlanDraft(
        group_id=request.group_id,
        created_by=user_id,
        title=title,
        duration_minutes=request.duration_minutes,
        min_accepted_participants=pick(
            request.min_accepted_participants, shortcuts.min_accepted_participants, DEFAULT_MIN_ACCEPTED
        ),
        search_window_start=request.search_window_start,
        search_window_end=search_window_end,
        response_window_hours=pick(request.response_window_hours, shortcuts.response_window_hours),
        slot_interval_minutes=pick(request.slot_interval_minutes, shortcuts.slot_interval_minutes),
        max_attempts=pick(request.max_attempts, shortcuts.max_attempts),
        description=request.description,
        location=request.location,
        tags=request.tags,
    )


@router.post("", response_model=SmartMeetingResultResponse, status_code=status.HTTP_201_CREATED)
async def create_smart_meeting(
    request: CreateSmartMeetingRequest,
    user_id: str = Depends(current_user_id),
    service=Depends(get_smart_meeting_service),
):
    """Create a plan and open its first attempt."""
    try:
        result = await service.create_plan(draft_from_request(request, user_id))
    except ValidationError as e:
        logger.info("Smart meeting rejected", user_id=user_id, field=e.field, reason=e.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return SmartMeetingResultResponse.from_domain(result)


@router.get("", response_model=SmartMeetingListResponse)
async def list_smart_meetings(
    user_id: str = Depends(current_user_id),
    service=Depends(get_smart_meeting_service),
):
    plans = await service.list_plans(user_id)
    return SmartMeetingListResponse(
        plans=[SmartMeetingResponse.from_domain(plan) for plan in plans],
        total_count=len(plans),
    )


@router.post("/{plan_id}/responses", response_model=SmartMeetingResultResponse)
async def respond_to_smart_meeting(
    plan_id: str,
    request: RespondRequest,
    user_id: str = Depends(current_user_id),
    service=Depends(get_smart_meeting_service),
):
    """Accept or decline the slot proposed in an attempt."""
    try:
        result = await service.record_response(plan_id, request.attempt_index, user_id, request.accepted)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return SmartMeetingResultResponse.from_domain(result)
