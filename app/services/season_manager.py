"""
Season and phase window management.

Exactly one season is current at any time. Creation is made safe across
workers by the partial unique index on active_seasons: a concurrent loser
gets an IntegrityError, rolls back its season and re-reads the winner's.
Phases are never stored; they are recomputed from the season timestamps.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings, get_settings
from app.core.exceptions import SeasonContentionError
from app.database import utcnow
from app.models.season import ActiveSeason, Season
from app.services.arm_catalog import Dimension
from app.services.text_generator import SeasonNarrative

logger = logging.getLogger(__name__)


DEFAULT_SEASON_NARRATIVE = SeasonNarrative(
    objective="Strengthen the organisational foundation",
    key_result="Average competency score of 80",
    strategy="Consistent fundamentals",
    target_dimension=Dimension.Q,
    narrative_text="Steady the footing before the next push.",
    icon="construction",
    color="#475569",
)


@dataclass(frozen=True)
class PhaseWindow:
    """A fixed-length slice of a season."""
    phase_index: int
    phase_start_at: datetime
    phase_end_at: datetime
    phase_count: int

    def contains(self, moment: datetime) -> bool:
        return self.phase_start_at <= moment < self.phase_end_at

    def to_dict(self) -> dict:
        return {
            "phase_index": self.phase_index,
            "phase_start_at": self.phase_start_at,
            "phase_end_at": self.phase_end_at,
            "phase_count": self.phase_count,
        }


def compute_phase_window(
    season: Any,
    now: datetime,
    phase_length: timedelta = timedelta(days=14),
) -> PhaseWindow:
    """
    Locate `now` within the season's phases.

    Pure: depends only on season.start_at, season.end_at, now and the
    phase length. The index is clamped to [0, phase_count - 1] and the last
    phase ends at season.end_at even when the season is not an exact
    multiple of the phase length.
    """
    if phase_length <= timedelta(0):
        raise ValueError("phase_length must be positive")

    total = season.end_at - season.start_at
    # ceil for timedeltas without going through floats
    phase_count = max(1, -((-total) // phase_length))

    phase_index = (now - season.start_at) // phase_length
    phase_index = max(0, min(phase_index, phase_count - 1))

    phase_start_at = season.start_at + phase_index * phase_length
    phase_end_at = min(phase_start_at + phase_length, season.end_at)

    return PhaseWindow(
        phase_index=phase_index,
        phase_start_at=phase_start_at,
        phase_end_at=phase_end_at,
        phase_count=phase_count,
    )


class SeasonWindowManager:
    """
    Owns the org-wide season lifecycle.

    Takes a session factory rather than a session: every attempt runs in
    its own short transaction so a lost race rolls back cleanly.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        text_generator: Any,
        scoring_client: Optional[Any] = None,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.text_generator = text_generator
        self.scoring_client = scoring_client
        self.settings = settings or get_settings()

    @property
    def phase_length(self) -> timedelta:
        return timedelta(days=self.settings.phase_length_days)

    @property
    def season_length(self) -> timedelta:
        return timedelta(days=self.settings.season_length_days)

    def compute_phase_window(self, season: Season, now: Optional[datetime] = None) -> PhaseWindow:
        return compute_phase_window(season, now or utcnow(), self.phase_length)

    async def _load_active_lock(self, db: AsyncSession) -> Optional[ActiveSeason]:
        result = await db.execute(
            select(ActiveSeason)
            .where(ActiveSeason.is_active == True)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_season(self, now: Optional[datetime] = None) -> Optional[Season]:
        """Return the current season without creating one."""
        now = now or utcnow()
        async with self.session_factory() as db:
            lock = await self._load_active_lock(db)
            if lock is not None and lock.expires_at > now:
                return lock.season
        return None

    async def get_or_create_current_season(
        self,
        trigger_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> Season:
        """
        Return the active season, creating one if none is active.

        Args:
            trigger_id: User whose request triggered creation (recorded only)
            now: Reference time, defaults to the current UTC time

        Raises:
            SeasonContentionError: every attempt lost the lock race
        """
        now = now or utcnow()
        max_attempts = max(1, self.settings.season_race_max_retries)

        for attempt in range(1, max_attempts + 1):
            # 1. Hot path: an unexpired lock
            async with self.session_factory() as db:
                lock = await self._load_active_lock(db)
                if lock is not None:
                    if lock.expires_at > now:
                        return lock.season
                    # 2. Expired: release it and fall through to creation
                    logger.info(f"Season {lock.season_id} expired at {lock.expires_at}")
                    lock.is_active = False
                    await db.commit()

            # 3. Generate outside any transaction; external calls are slow
            narrative, is_default = await self._generate_narrative(now)

            # 4. Persist season + lock; the unique index arbitrates the race
            async with self.session_factory() as db:
                season = self._build_season(narrative, is_default, trigger_id, now)
                db.add(season)
                try:
                    await db.flush()
                    db.add(ActiveSeason(
                        season_id=season.id,
                        expires_at=season.end_at,
                        is_active=True,
                    ))
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    logger.warning(
                        f"Race condition detected in season creation "
                        f"(attempt {attempt}/{max_attempts}); re-reading winner"
                    )
                    continue

            logger.info(
                f"Created season {season.id}: target={season.target_dimension.value} "
                f"default={is_default} ends={season.end_at}"
            )
            return season

        raise SeasonContentionError(
            f"Could not obtain the active season after {max_attempts} attempts"
        )

    def _build_season(
        self,
        narrative: SeasonNarrative,
        is_default: bool,
        trigger_id: Optional[uuid.UUID],
        now: datetime,
    ) -> Season:
        return Season(
            target_dimension=narrative.target_dimension,
            focus_kpi="custom_okr",
            objective=narrative.objective,
            key_result=narrative.key_result,
            strategy_name=narrative.strategy,
            narrative_text=narrative.narrative_text,
            ai_message=narrative.narrative_text,
            icon_char=narrative.icon or DEFAULT_SEASON_NARRATIVE.icon,
            theme_color=narrative.color or DEFAULT_SEASON_NARRATIVE.color,
            is_default=is_default,
            created_by=trigger_id,
            start_at=now,
            end_at=now + self.season_length,
        )

    async def _gather_metrics(self, now: datetime) -> Dict[str, Any]:
        """Ops KPIs and org stats for the current month plus recent team logs; empty on failure."""
        empty = {"ops_metrics": {}, "org_stats": {}, "team_logs": []}
        if self.scoring_client is None:
            return empty

        period_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        try:
            ops_metrics, org_stats, team_logs = await asyncio.wait_for(
                asyncio.gather(
                    self.scoring_client.get_ops_metrics(period_start, now),
                    self.scoring_client.get_aggregate_org_stats(period_start, now),
                    self.scoring_client.get_recent_team_activity(self.settings.team_activity_limit),
                ),
                timeout=self.settings.metrics_timeout_seconds,
            )
        except Exception as e:
            logger.warning(f"Season metrics unavailable, generating without them: {e}")
            return empty

        return {
            "ops_metrics": ops_metrics or {},
            "org_stats": org_stats or {},
            "team_logs": list(team_logs or []),
        }

    async def _generate_narrative(self, now: datetime) -> Tuple[SeasonNarrative, bool]:
        """Season OKR from the generator, or the fixed default on any failure."""
        metrics = await self._gather_metrics(now)
        try:
            narrative = await asyncio.wait_for(
                self.text_generator.render_season_narrative(metrics),
                timeout=self.settings.llm_timeout_seconds,
            )
            return narrative, False
        except Exception as e:
            logger.warning(f"Season narrative generation failed, using default season: {e}")
            return DEFAULT_SEASON_NARRATIVE, True


def season_summary(season: Season) -> Dict[str, Any]:
    """OKR fields surfaced alongside missions."""
    return {
        "season_id": season.id,
        "target_dimension": season.target_dimension.value,
        "objective": season.objective,
        "key_result": season.key_result,
        "strategy": season.strategy_name,
        "message": season.ai_message,
        "icon_char": season.icon_char,
        "theme_color": season.theme_color,
        "start_at": season.start_at,
        "end_at": season.end_at,
    }
