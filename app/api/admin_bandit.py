"""
Admin Bandit API endpoints.
Read-only view of a user's arm posteriors for debugging recommendations.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.schemas.mission_schemas import BanditArmStatisticsResponse, UserBanditResponse
from app.services.bandit_brain import BanditBrain
from app.services.bandit_state_store import BanditStateStore


router = APIRouter(prefix="/admin/bandit", tags=["Admin - Bandit"])


@router.get(
    "/{user_id}",
    response_model=UserBanditResponse,
    summary="Get bandit statistics for a user",
    description="Posterior alpha/beta, trial counts and mean reward per arm, "
                "sorted by mean reward. Users without history show the prior.",
)
async def get_user_bandit(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> UserBanditResponse:
    settings = get_settings()
    store = BanditStateStore(
        db,
        prior_alpha=settings.bandit_prior_alpha,
        prior_beta=settings.bandit_prior_beta,
    )
    state = await store.get(user_id)
    stats = BanditBrain(settings=settings).arm_statistics(state)

    return UserBanditResponse(
        user_id=user_id,
        total_trials=state.total_trials,
        arms=[BanditArmStatisticsResponse(**s) for s in stats],
    )
