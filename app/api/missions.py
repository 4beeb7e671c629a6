"""
Mission API endpoints.
Suggestion, explicit feedback, user edits, delayed outcomes and history.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_orchestrator
from app.core.exceptions import (
    InvalidRequestError,
    MissionNotFoundError,
    SeasonContentionError,
)
from app.schemas.mission_schemas import (
    ArmStateResponse,
    DelayedOutcomeRequest,
    DelayedOutcomeResponse,
    MissionEditRequest,
    MissionFeedbackRequest,
    MissionFeedbackResponse,
    MissionHistoryResponse,
    MissionResponse,
    MissionSuggestRequest,
    MissionSuggestResponse,
    PotentialBand,
)
from app.services.mission_orchestrator import MissionOrchestrator

router = APIRouter(prefix="/missions", tags=["Missions"])


@router.post(
    "/suggest",
    response_model=MissionSuggestResponse,
    summary="Get the current mission",
    description="Returns the user's mission for the current phase, "
                "creating the season and the mission if needed.",
)
async def suggest_mission(
    request: MissionSuggestRequest,
    orchestrator: MissionOrchestrator = Depends(get_orchestrator),
) -> MissionSuggestResponse:
    """Return the phase mission for a user."""
    try:
        suggestion = await orchestrator.get_suggestion(
            user_id=request.user_id,
            mode=request.mode,
            recent_history=request.history_texts(),
            score_total=request.score_total,
        )
    except SeasonContentionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    await orchestrator.db.commit()

    potential = None
    if suggestion.potential is not None:
        potential = PotentialBand(lower=suggestion.potential[0], upper=suggestion.potential[1])

    return MissionSuggestResponse(
        mission_id=suggestion.mission_id,
        action=suggestion.action,
        hint=suggestion.hint,
        arm_id=suggestion.arm_id,
        dimension=suggestion.dimension,
        mission_end_at=suggestion.mission_end_at,
        reused=suggestion.reused,
        is_default=suggestion.is_default,
        season=suggestion.season,
        phase=suggestion.phase.to_dict(),
        selection=suggestion.selection,
        potential=potential,
    )


@router.post(
    "/outcomes",
    response_model=DelayedOutcomeResponse,
    summary="Apply a finalized score",
    description="Called by the scoring pipeline once a period's score is final. "
                "The reward goes to the mission that was active before the window closed.",
)
async def apply_outcome(
    request: DelayedOutcomeRequest,
    orchestrator: MissionOrchestrator = Depends(get_orchestrator),
) -> DelayedOutcomeResponse:
    try:
        arm_id = await orchestrator.apply_delayed_outcome(
            user_id=request.user_id,
            evaluation_window_end=request.evaluation_window_end,
            finalized_score=request.finalized_score,
        )
    except InvalidRequestError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    await orchestrator.db.commit()

    return DelayedOutcomeResponse(
        user_id=request.user_id,
        applied=arm_id is not None,
        arm_id=arm_id,
    )


@router.get(
    "/history/{user_id}",
    response_model=MissionHistoryResponse,
    summary="Recent missions for a user",
)
async def get_mission_history(
    user_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    orchestrator: MissionOrchestrator = Depends(get_orchestrator),
) -> MissionHistoryResponse:
    missions = await orchestrator.list_missions(user_id, limit=limit)
    return MissionHistoryResponse(
        user_id=user_id,
        missions=[MissionResponse.model_validate(m) for m in missions],
        total=len(missions),
    )


@router.post(
    "/{mission_id}/feedback",
    response_model=MissionFeedbackResponse,
    summary="Rate a mission",
    description="Explicit 1-5 rating; updates the rated mission's arm immediately.",
)
async def submit_mission_feedback(
    mission_id: UUID,
    request: MissionFeedbackRequest,
    orchestrator: MissionOrchestrator = Depends(get_orchestrator),
) -> MissionFeedbackResponse:
    try:
        arm_state = await orchestrator.apply_explicit_feedback(
            user_id=request.user_id,
            mission_id=mission_id,
            rating=request.rating,
        )
    except MissionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidRequestError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    await orchestrator.db.commit()

    mission = await orchestrator.get_mission(request.user_id, mission_id)
    state_response = None
    if arm_state is not None:
        state_response = ArmStateResponse(
            arm_id=orchestrator.resolve_arm(mission),
            alpha=arm_state.alpha,
            beta=arm_state.beta,
            trials=arm_state.trials,
            mean_reward=arm_state.mean,
        )

    return MissionFeedbackResponse(
        mission_id=mission_id,
        rating=request.rating,
        reward=(request.rating - 1) / 4,
        arm_state=state_response,
    )


@router.patch(
    "/{mission_id}",
    response_model=MissionResponse,
    summary="Rewrite a mission",
    description="Overrides the mission copy. The reason is kept and shown to the "
                "generator next time; the bandit is not updated.",
)
async def edit_mission(
    mission_id: UUID,
    request: MissionEditRequest,
    orchestrator: MissionOrchestrator = Depends(get_orchestrator),
) -> MissionResponse:
    try:
        mission = await orchestrator.edit_mission(
            user_id=request.user_id,
            mission_id=mission_id,
            action=request.action,
            hint=request.hint,
            change_reason=request.change_reason,
        )
    except MissionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidRequestError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    await orchestrator.db.commit()
    return MissionResponse.model_validate(mission)
