"""
Test data generators and fake collaborators for mission engine tests.
"""

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from faker import Faker

from app.core.exceptions import TextGenerationError
from app.models import Mission, Season
from app.services.arm_catalog import Dimension, UserMode
from app.services.text_generator import MissionText, SeasonNarrative

fake = Faker()


def generate_activity_logs(count: int = 8) -> List[str]:
    """Free-text daily report entries."""
    return [fake.sentence(nb_words=10) for _ in range(count)]


def make_season(
    start_at: datetime,
    days: int = 42,
    target_dimension: Dimension = Dimension.Q,
) -> Season:
    return Season(
        id=uuid.uuid4(),
        target_dimension=target_dimension,
        objective="Raise first-time-right rate",
        key_result="Rework below 5%",
        strategy_name="Check before handover",
        narrative_text="Finish clean.",
        ai_message="Finish clean.",
        icon_char="construction",
        theme_color="#475569",
        is_default=False,
        start_at=start_at,
        end_at=start_at + timedelta(days=days),
    )


def make_mission(
    user_id: uuid.UUID,
    created_at: datetime,
    arm_id: Optional[str] = "Arm_Q",
    season_id: Optional[uuid.UUID] = None,
    target_dimension: Dimension = Dimension.Q,
) -> Mission:
    return Mission(
        id=uuid.uuid4(),
        user_id=user_id,
        season_id=season_id,
        phase_index=0,
        arm_id=arm_id,
        mode=UserMode.TEAM,
        target_dimension=target_dimension,
        action=fake.sentence(nb_words=8),
        hint=fake.sentence(nb_words=6),
        is_default=False,
        mission_end_at=created_at + timedelta(days=14),
        created_at=created_at,
    )


class FakeTextGenerator:
    """
    Stand-in for GeminiTextGenerator that counts calls.

    Yields to the event loop once per call so concurrent callers interleave.
    """

    def __init__(
        self,
        narrative: Optional[SeasonNarrative] = None,
        mission_text: Optional[MissionText] = None,
        fail_season: bool = False,
        fail_mission: bool = False,
    ):
        self.narrative = narrative or SeasonNarrative(
            objective="Grow a sharing culture",
            key_result="Every member shares one tip per week",
            strategy="Teach back",
            target_dimension=Dimension.LU,
            narrative_text="Knowledge grows when shared.",
            icon="school",
            color="#2563eb",
        )
        self.mission_text = mission_text or MissionText(
            action="Share one site tip in the morning meeting",
            hint="Short and concrete beats long and vague",
        )
        self.fail_season = fail_season
        self.fail_mission = fail_mission
        self.season_calls = 0
        self.mission_calls = 0
        self.mission_contexts: List[Dict[str, Any]] = []
        self.season_metrics: List[Dict[str, Any]] = []

    async def render_season_narrative(self, metrics: Dict[str, Any]) -> SeasonNarrative:
        self.season_calls += 1
        self.season_metrics.append(metrics)
        await asyncio.sleep(0)
        if self.fail_season:
            raise TextGenerationError("generator offline")
        return self.narrative

    async def render_mission_text(
        self,
        arm_focus: str,
        arm_description: str,
        user_context: Dict[str, Any],
    ) -> MissionText:
        self.mission_calls += 1
        self.mission_contexts.append(user_context)
        await asyncio.sleep(0)
        if self.fail_mission:
            raise TextGenerationError("generator offline")
        return self.mission_text


class FakeScoringClient:
    """In-memory scoring service."""

    def __init__(
        self,
        org_stats: Optional[Dict[str, float]] = None,
        user_scores: Optional[Dict[uuid.UUID, Optional[Dict[str, float]]]] = None,
        team_logs: Optional[List[str]] = None,
        ops_metrics: Optional[Dict[str, Any]] = None,
    ):
        self.org_stats = org_stats or {"LU": 55.0, "Q": 70.0, "O": 48.0}
        self.ops_metrics = ops_metrics or {"total_sales": 1250000.0, "site_count": 7}
        self.user_scores = user_scores or {}
        self.team_logs = team_logs if team_logs is not None else generate_activity_logs(5)
        self.closed = False

    async def get_aggregate_org_stats(self, period_start, period_end) -> Dict[str, float]:
        return dict(self.org_stats)

    async def get_ops_metrics(self, period_start, period_end) -> Dict[str, Any]:
        return dict(self.ops_metrics)

    async def get_recent_team_activity(self, limit: int = 40) -> List[str]:
        return self.team_logs[:limit]

    async def list_scored_users(self, period_start, period_end) -> List[uuid.UUID]:
        return list(self.user_scores)

    async def get_finalized_user_score(self, user_id, period_start, period_end):
        return self.user_scores.get(user_id)

    async def aclose(self) -> None:
        self.closed = True
