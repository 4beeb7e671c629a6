"""Schemas package initialization."""

from app.schemas.mission_schemas import (
    HistoryEntry,
    MissionSuggestRequest,
    MissionSuggestResponse,
    SeasonSummary,
    PhaseResponse,
    ArmSelectionDiagnostics,
    PotentialBand,
    MissionFeedbackRequest,
    MissionFeedbackResponse,
    ArmStateResponse,
    MissionEditRequest,
    MissionResponse,
    MissionHistoryResponse,
    DelayedOutcomeRequest,
    DelayedOutcomeResponse,
    CurrentSeasonResponse,
    BanditArmStatisticsResponse,
    UserBanditResponse,
)

__all__ = [
    "HistoryEntry",
    "MissionSuggestRequest",
    "MissionSuggestResponse",
    "SeasonSummary",
    "PhaseResponse",
    "ArmSelectionDiagnostics",
    "PotentialBand",
    "MissionFeedbackRequest",
    "MissionFeedbackResponse",
    "ArmStateResponse",
    "MissionEditRequest",
    "MissionResponse",
    "MissionHistoryResponse",
    "DelayedOutcomeRequest",
    "DelayedOutcomeResponse",
    "CurrentSeasonResponse",
    "BanditArmStatisticsResponse",
    "UserBanditResponse",
]
