"""
Pydantic schemas for the mission, season and bandit APIs.
"""

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.services.arm_catalog import Dimension, UserMode


class HistoryEntry(BaseModel):
    """One free-text activity log from the user."""
    text: str
    created_at: Optional[datetime] = None


class MissionSuggestRequest(BaseModel):
    """Request schema for POST /api/v1/missions/suggest."""
    user_id: UUID = Field(..., description="User UUID")
    mode: UserMode = Field(UserMode.TEAM, description="Usage mode: EARN, LEARN or TEAM")
    recent_history: List[Union[str, HistoryEntry]] = Field(
        default_factory=list,
        description="Recent activity logs, oldest first",
    )
    score_total: Optional[float] = Field(None, ge=0, le=100, description="Current total score 0-100")

    def history_texts(self) -> List[str]:
        return [h if isinstance(h, str) else h.text for h in self.recent_history]

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "550e8400-e29b-41d4-a716-446655440001",
                "mode": "LEARN",
                "recent_history": ["Shared the new checklist with the morning crew"],
                "score_total": 62,
            }
        }
    }


class SeasonSummary(BaseModel):
    """Season OKR surfaced alongside missions."""
    season_id: UUID
    target_dimension: Dimension
    objective: str
    key_result: str
    strategy: str
    message: Optional[str] = None
    icon_char: Optional[str] = None
    theme_color: Optional[str] = None
    start_at: datetime
    end_at: datetime


class PhaseResponse(BaseModel):
    phase_index: int
    phase_start_at: datetime
    phase_end_at: datetime
    phase_count: int


class ArmSelectionDiagnostics(BaseModel):
    """Score components behind an arm choice."""
    arm_id: Optional[str] = None
    dimension: Optional[Dimension] = None
    sample_value: Optional[float] = None
    ucb_bonus: Optional[float] = None
    context_boost: Optional[float] = None
    final_score: Optional[float] = None


class PotentialBand(BaseModel):
    lower: int
    upper: int


class MissionSuggestResponse(BaseModel):
    """Response for POST /api/v1/missions/suggest."""
    mission_id: UUID
    action: str
    hint: str
    arm_id: Optional[str] = None
    dimension: Optional[Dimension] = None
    mission_end_at: datetime
    reused: bool
    is_default: bool
    season: SeasonSummary
    phase: PhaseResponse
    selection: Optional[ArmSelectionDiagnostics] = None
    potential: Optional[PotentialBand] = None


class MissionFeedbackRequest(BaseModel):
    """Request schema for POST /api/v1/missions/{mission_id}/feedback."""
    user_id: UUID = Field(..., description="User UUID")
    rating: int = Field(..., ge=1, le=5, description="Mission rating 1-5")


class ArmStateResponse(BaseModel):
    arm_id: str
    alpha: float
    beta: float
    trials: int
    mean_reward: float


class MissionFeedbackResponse(BaseModel):
    mission_id: UUID
    rating: int
    reward: float
    arm_state: Optional[ArmStateResponse] = None
    message: str = "Feedback recorded"


class MissionEditRequest(BaseModel):
    """Request schema for PATCH /api/v1/missions/{mission_id}."""
    user_id: UUID
    action: str = Field(..., min_length=1, max_length=500)
    hint: str = Field(..., min_length=1, max_length=500)
    change_reason: str = Field(..., min_length=1, max_length=1000, description="Why the mission was rewritten")

    @field_validator("action", "hint", "change_reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class MissionResponse(BaseModel):
    """A stored mission."""
    id: UUID
    user_id: UUID
    season_id: Optional[UUID] = None
    phase_index: int
    arm_id: Optional[str] = None
    mode: Optional[UserMode] = None
    target_dimension: Dimension
    action: str
    hint: str
    is_default: bool
    original_action: Optional[str] = None
    original_hint: Optional[str] = None
    change_reason: Optional[str] = None
    edited_at: Optional[datetime] = None
    feedback_rating: Optional[int] = None
    feedback_at: Optional[datetime] = None
    mission_end_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class MissionHistoryResponse(BaseModel):
    user_id: UUID
    missions: List[MissionResponse]
    total: int


class DelayedOutcomeRequest(BaseModel):
    """Request schema for POST /api/v1/missions/outcomes."""
    user_id: UUID
    evaluation_window_end: datetime
    finalized_score: Dict[Dimension, Annotated[float, Field(ge=0, le=100, allow_inf_nan=False)]] = Field(
        ...,
        description="Finalized 0-100 scores keyed by dimension",
    )

    @field_validator("evaluation_window_end")
    @classmethod
    def strip_timezone(cls, v: datetime) -> datetime:
        # stored timestamps are naive UTC
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class DelayedOutcomeResponse(BaseModel):
    user_id: UUID
    applied: bool
    arm_id: Optional[str] = None


class CurrentSeasonResponse(BaseModel):
    """Response for GET /api/v1/seasons/current."""
    season: SeasonSummary
    phase: PhaseResponse
    is_default: bool


class BanditArmStatisticsResponse(BaseModel):
    """Posterior summary for one arm."""
    arm_id: str
    dimension: Dimension
    focus_label: str
    alpha: float
    beta: float
    trials: int
    mean_reward: float
    updated_at: Optional[datetime] = None


class UserBanditResponse(BaseModel):
    """Response for GET /api/v1/admin/bandit/{user_id}."""
    user_id: UUID
    total_trials: int
    arms: List[BanditArmStatisticsResponse]
