"""
Mission orchestration: season/phase resolution, phase-scoped mission
caching, arm selection and the two learning paths.

Explicit ratings update the arm of the rated mission immediately.
Delayed outcomes look back to the mission that was in force before the
evaluation window closed, not the one in force now.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.exceptions import InvalidFeedbackError, InvalidRequestError, MissionNotFoundError
from app.database import utcnow
from app.models.mission import Mission
from app.models.season import Season
from app.services.arm_catalog import LEGACY_ARM_ALIASES, Dimension, UserMode
from app.services.bandit_brain import ArmSelectionResult, BanditBrain
from app.services.bandit_state_store import BanditArmState, BanditStateStore
from app.services.season_manager import PhaseWindow, SeasonWindowManager, season_summary
from app.services.text_generator import MissionText

logger = logging.getLogger(__name__)


DEFAULT_MISSION_TEXT = MissionText(
    action="Record your contribution to the team strategy in your daily report",
    hint="Keep the team objective in mind",
)


@dataclass
class MissionSuggestion:
    """Mission returned for a suggestion request, new or reused."""
    mission_id: uuid.UUID
    action: str
    hint: str
    arm_id: Optional[str]
    dimension: Optional[Dimension]
    mission_end_at: datetime
    season: Dict[str, Any]
    phase: PhaseWindow
    reused: bool
    is_default: bool
    selection: Optional[Dict[str, Any]] = None
    potential: Optional[Tuple[int, int]] = None


def recent_texts(history: Optional[List[Any]], window: int) -> List[str]:
    """Last `window` non-empty texts from a list of strings or {"text": ...} dicts."""
    texts = []
    for entry in history or []:
        text = entry.get("text") if isinstance(entry, dict) else entry
        if text:
            texts.append(str(text))
    return texts[-window:] if window > 0 else []


class MissionOrchestrator:
    """
    Top-level coordinator for mission suggestions and bandit feedback.

    Works inside the caller's session; flushes but never commits.
    """

    def __init__(
        self,
        db: AsyncSession,
        season_manager: SeasonWindowManager,
        text_generator: Any,
        brain: Optional[BanditBrain] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.season_manager = season_manager
        self.text_generator = text_generator
        self.brain = brain or BanditBrain(settings=self.settings)
        self.store = BanditStateStore(
            db,
            prior_alpha=self.settings.bandit_prior_alpha,
            prior_beta=self.settings.bandit_prior_beta,
        )

    # ------------------------------------------------------------------
    # Suggestion
    # ------------------------------------------------------------------

    async def get_suggestion(
        self,
        user_id: uuid.UUID,
        mode: UserMode,
        recent_history: Optional[List[Any]] = None,
        score_total: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> MissionSuggestion:
        """
        Return the user's mission for the current phase.

        A mission created in this phase window for the current season is
        returned verbatim; otherwise an arm is selected, rendered and stored.
        """
        now = now or utcnow()
        mode = UserMode(mode)

        season = await self.season_manager.get_or_create_current_season(user_id, now=now)
        phase = self.season_manager.compute_phase_window(season, now)
        history = recent_texts(recent_history, self.settings.history_window)
        potential = (
            self.brain.calculate_potential(score_total, len(recent_history or []))
            if score_total is not None else None
        )

        existing = await self._latest_mission_in_window(user_id, phase)
        if existing is not None and existing.season_id == season.id:
            logger.debug(f"Reusing mission {existing.id} for user {user_id}")
            return self._to_suggestion(existing, season, phase, reused=True, potential=potential)

        logger.info(f"Generating new mission for user {user_id} (phase {phase.phase_index})")
        state = await self.store.get(user_id)
        selection = self.brain.select_arm(mode, state, season.target_dimension)
        text, is_default = await self._render(user_id, selection, season, history)

        mission = Mission(
            user_id=user_id,
            season_id=season.id,
            phase_index=phase.phase_index,
            arm_id=selection.arm_id,
            mode=mode,
            target_dimension=season.target_dimension,
            sample_value=selection.sample_value,
            ucb_bonus=selection.ucb_bonus,
            context_boost=selection.context_boost,
            final_score=selection.final_score,
            action=text.action,
            hint=text.hint,
            is_default=is_default,
            mission_end_at=phase.phase_end_at,
            created_at=now,
        )
        self.db.add(mission)
        await self.db.flush()

        return self._to_suggestion(
            mission, season, phase, reused=False, selection=selection, potential=potential,
        )

    async def _latest_mission_in_window(self, user_id: uuid.UUID, phase: PhaseWindow) -> Optional[Mission]:
        result = await self.db.execute(
            select(Mission)
            .where(Mission.user_id == user_id)
            .where(Mission.created_at >= phase.phase_start_at)
            .where(Mission.created_at < phase.phase_end_at)
            .order_by(Mission.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _rejection_reasons(self, user_id: uuid.UUID, limit: int = 5) -> List[str]:
        """Recent user rewrites, fed back to the generator as things to avoid."""
        result = await self.db.execute(
            select(Mission)
            .where(Mission.user_id == user_id)
            .where(Mission.change_reason.isnot(None))
            .order_by(Mission.edited_at.desc())
            .limit(limit)
        )
        return [
            f"{m.original_action or m.action} (reason: {m.change_reason})"
            for m in result.scalars().all()
        ]

    async def _render(
        self,
        user_id: uuid.UUID,
        selection: ArmSelectionResult,
        season: Season,
        history: List[str],
    ) -> Tuple[MissionText, bool]:
        """Mission copy from the generator, or the default copy on any failure."""
        context = {
            "dimension": selection.dimension.value,
            "objective": season.objective,
            "key_result": season.key_result,
            "strategy": season.strategy_name,
            "recent_logs": history,
            "rejections": await self._rejection_reasons(user_id),
        }
        try:
            text = await asyncio.wait_for(
                self.text_generator.render_mission_text(
                    selection.arm.focus_label,
                    selection.arm.description,
                    context,
                ),
                timeout=self.settings.llm_timeout_seconds,
            )
            return text, False
        except Exception as e:
            logger.warning(f"Mission text generation failed, using default mission: {e}")
            return DEFAULT_MISSION_TEXT, True

    def _to_suggestion(
        self,
        mission: Mission,
        season: Season,
        phase: PhaseWindow,
        reused: bool,
        selection: Optional[ArmSelectionResult] = None,
        potential: Optional[Tuple[int, int]] = None,
    ) -> MissionSuggestion:
        dimension = self.brain.get_dimension_for_arm(mission.arm_id) if mission.arm_id else None

        if selection is not None:
            diagnostics = selection.to_dict()
        elif mission.final_score is not None:
            diagnostics = {
                "arm_id": mission.arm_id,
                "dimension": dimension.value if dimension else None,
                "sample_value": mission.sample_value,
                "ucb_bonus": mission.ucb_bonus,
                "context_boost": mission.context_boost,
                "final_score": mission.final_score,
            }
        else:
            diagnostics = None

        return MissionSuggestion(
            mission_id=mission.id,
            action=mission.action,
            hint=mission.hint,
            arm_id=mission.arm_id,
            dimension=dimension,
            mission_end_at=phase.phase_end_at,
            season=season_summary(season),
            phase=phase,
            reused=reused,
            is_default=mission.is_default,
            selection=diagnostics,
            potential=potential,
        )

    # ------------------------------------------------------------------
    # Learning paths
    # ------------------------------------------------------------------

    def resolve_arm(self, mission: Mission) -> str:
        """The mission's arm, or the dimension fallback for legacy rows."""
        if mission.arm_id:
            return LEGACY_ARM_ALIASES.get(mission.arm_id, mission.arm_id)
        arm_id = self.brain.get_arm_for_dimension(mission.target_dimension)
        logger.warning(
            f"Mission {mission.id} has no arm recorded; "
            f"falling back to {arm_id} for dimension {mission.target_dimension.value}"
        )
        return arm_id

    async def get_mission(self, user_id: uuid.UUID, mission_id: uuid.UUID) -> Mission:
        result = await self.db.execute(
            select(Mission).where(Mission.id == mission_id)
        )
        mission = result.scalar_one_or_none()
        if mission is None or mission.user_id != user_id:
            raise MissionNotFoundError(f"Mission {mission_id} not found for user {user_id}")
        return mission

    async def apply_explicit_feedback(
        self,
        user_id: uuid.UUID,
        mission_id: uuid.UUID,
        rating: int,
    ) -> Optional[BanditArmState]:
        """
        Learn from a 1-5 rating of a mission.

        reward = (rating - 1) / 4, applied as the raw-score equivalent
        reward * 100. Returns the updated arm state, or None if the arm
        could not be updated.

        Raises:
            InvalidFeedbackError: rating is not an integer in 1..5
            MissionNotFoundError: mission missing or owned by another user
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidFeedbackError(f"rating must be an integer between 1 and 5, got {rating!r}")
        if mission_id is None:
            raise InvalidFeedbackError("mission_id is required")

        mission = await self.get_mission(user_id, mission_id)
        arm_id = self.resolve_arm(mission)

        reward = (rating - 1) / 4
        state = await self.store.get(user_id)
        new_state = self.brain.update_state(state, arm_id, reward * 100)

        mission.feedback_rating = rating
        mission.feedback_at = utcnow()

        if new_state is state:
            await self.db.flush()
            return None

        await self.store.save(user_id, new_state)
        logger.info(f"Learned from rating: user={user_id} arm={arm_id} rating={rating} reward={reward:.2f}")
        return new_state.get(arm_id)

    async def apply_delayed_outcome(
        self,
        user_id: uuid.UUID,
        evaluation_window_end: datetime,
        finalized_score: Mapping[Any, float],
    ) -> Optional[str]:
        """
        Learn from a finalized periodic score.

        The reward goes to the most recent mission created strictly before
        evaluation_window_end. Returns the arm id that was updated, or None
        when there was nothing to learn from. A mission is credited at most
        once per evaluation window, so a window ending within
        outcome_lookback_days of the one last applied is skipped.

        Raises:
            InvalidRequestError: a score is not a finite number in [0, 100]
        """
        scores = {}
        for key, value in finalized_score.items():
            try:
                value = float(value)
            except (TypeError, ValueError) as e:
                raise InvalidRequestError(f"Score for {key} is not a number: {value!r}") from e
            if not math.isfinite(value) or not 0.0 <= value <= 100.0:
                raise InvalidRequestError(f"Score for {key} must be within 0-100, got {value}")
            scores[key.value if isinstance(key, Dimension) else str(key)] = value

        result = await self.db.execute(
            select(Mission)
            .where(Mission.user_id == user_id)
            .where(Mission.created_at < evaluation_window_end)
            .order_by(Mission.created_at.desc())
            .limit(1)
        )
        mission = result.scalar_one_or_none()

        if mission is None:
            logger.info(f"No mission before {evaluation_window_end} for user {user_id}, skipping learning")
            return None

        window = timedelta(days=self.settings.outcome_lookback_days)
        last_applied = mission.last_outcome_window_end
        if last_applied is not None and last_applied > evaluation_window_end - window:
            logger.info(
                f"Outcome for window ending {last_applied} already applied to mission {mission.id}, "
                f"skipping window ending {evaluation_window_end}"
            )
            return None

        dimension = mission.target_dimension
        raw_score = scores.get(dimension.value)
        if raw_score is None:
            logger.warning(
                f"Finalized score for user {user_id} has no {dimension.value} value; skipping learning"
            )
            return None

        arm_id = self.resolve_arm(mission)
        state = await self.store.get(user_id)
        new_state = self.brain.update_state(state, arm_id, raw_score)
        if new_state is state:
            return None

        await self.store.save(user_id, new_state)
        mission.last_outcome_window_end = evaluation_window_end
        await self.db.flush()

        logger.info(
            f"Learned from outcome: user={user_id} arm={arm_id} "
            f"{dimension.value}={raw_score} window_end={evaluation_window_end}"
        )
        return arm_id

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    async def edit_mission(
        self,
        user_id: uuid.UUID,
        mission_id: uuid.UUID,
        action: str,
        hint: str,
        change_reason: str,
    ) -> Mission:
        """
        Override a mission's copy in place.

        The first original action/hint is preserved across repeated edits.
        Edits are not rewards and never touch the bandit state.
        """
        if not change_reason or not change_reason.strip():
            raise InvalidRequestError("change_reason is required when editing a mission")
        if not action or not action.strip() or not hint or not hint.strip():
            raise InvalidRequestError("action and hint must not be empty")

        mission = await self.get_mission(user_id, mission_id)

        if mission.original_action is None:
            mission.original_action = mission.action
            mission.original_hint = mission.hint
        mission.action = action.strip()
        mission.hint = hint.strip()
        mission.change_reason = change_reason.strip()
        mission.edited_at = utcnow()

        await self.db.flush()
        logger.info(f"Mission {mission.id} edited by user {user_id}: {mission.change_reason}")
        return mission

    async def list_missions(self, user_id: uuid.UUID, limit: int = 10) -> List[Mission]:
        result = await self.db.execute(
            select(Mission)
            .where(Mission.user_id == user_id)
            .order_by(Mission.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
