"""
Season API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_season_manager
from app.core.exceptions import SeasonContentionError
from app.database import utcnow
from app.schemas.mission_schemas import CurrentSeasonResponse
from app.services.season_manager import SeasonWindowManager, season_summary

router = APIRouter(prefix="/seasons", tags=["Seasons"])


@router.get(
    "/current",
    response_model=CurrentSeasonResponse,
    summary="Get the current season",
    description="Returns the org-wide season OKR and the current phase window, "
                "creating the season if none is active.",
)
async def get_current_season(
    season_manager: SeasonWindowManager = Depends(get_season_manager),
) -> CurrentSeasonResponse:
    now = utcnow()
    try:
        season = await season_manager.get_or_create_current_season(now=now)
    except SeasonContentionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    phase = season_manager.compute_phase_window(season, now)
    return CurrentSeasonResponse(
        season=season_summary(season),
        phase=phase.to_dict(),
        is_default=season.is_default,
    )
