"""
Suggestion routes: run the matcher, list suggestions, record decisions and
show what has been learned so far.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from realite.auth.verify import current_user_id
from realite.db.helpers import DatabaseError
from realite.exceptions import NotFoundError
from realite.features.suggestions.domain import Decision
from realite.features.suggestions.services.suggestion_engine import suggestion_engine
from realite.infrastructure.observability.logging import get_logger

from .schemas import (
    DecisionRequest,
    DecisionResponse,
    EffectResponse,
    LearningSummaryResponse,
    SuggestionListResponse,
    SuggestionResponse,
    SuggestionRunResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


def get_suggestion_engine():
    return suggestion_engine


@router.post("/run", response_model=SuggestionRunResponse)
async def run_suggestions(
    user_id: str = Depends(current_user_id),
    engine=Depends(get_suggestion_engine),
):
    """Run the matcher for the authenticated user."""
    try:
        result = await engine.generate_suggestions(user_id)
    except DatabaseError as e:
        logger.error("Suggestion run failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Suggestions temporarily unavailable"
        )

    return SuggestionRunResponse(
        suggestions=[SuggestionResponse.from_domain(s) for s in result.suggestions],
        effects=[EffectResponse.from_domain(e) for e in result.effects],
        warnings=result.warnings,
    )


@router.get("", response_model=SuggestionListResponse)
async def list_suggestions(
    user_id: str = Depends(current_user_id),
    engine=Depends(get_suggestion_engine),
):
    suggestions = await engine.list_suggestions(user_id)
    return SuggestionListResponse(
        suggestions=[SuggestionResponse.from_domain(s) for s in suggestions],
        total_count=len(suggestions),
    )


@router.get("/learning", response_model=LearningSummaryResponse)
async def get_learning_summary(
    user_id: str = Depends(current_user_id),
    engine=Depends(get_suggestion_engine),
):
    """Strongest learned likes and dislikes."""
    summary = await engine.learning_summary(user_id)
    return LearningSummaryResponse.from_domain(summary)


@router.post("/{suggestion_id}/decision", response_model=DecisionResponse)
async def decide_suggestion(
    suggestion_id: str,
    request: DecisionRequest,
    user_id: str = Depends(current_user_id),
    engine=Depends(get_suggestion_engine),
):
    try:
        result = await engine.apply_decision_feedback(
            user_id,
            suggestion_id,
            Decision(request.decision),
            reasons=[reason.value for reason in request.reasons or []],
            note=request.note,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return DecisionResponse(
        applied=result.applied,
        suggestion=SuggestionResponse.from_domain(result.suggestion),
        effects=[EffectResponse.from_domain(e) for e in result.effects],
    )
