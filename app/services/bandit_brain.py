"""
Mission bandit: UCB-adjusted Thompson Sampling over the arm catalog.

Selection score per arm:
    final = Beta(alpha, beta) draw
          + c * sqrt(2 * ln(total_trials + 1) / (trials + 1))
          + mode boost + season alignment boost

Rewards are raw 0-100 dimension scores shaped through a rescaled sigmoid.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from app.config import Settings, get_settings
from app.database import utcnow
from app.services.arm_catalog import (
    ARM_CATALOG,
    MODE_BOOSTS,
    Arm,
    Dimension,
    UserMode,
    get_arm,
)
from app.services.bandit_state_store import BanditArmState, UserBanditState
from app.services.random_variates import RandomVariateSampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArmSelectionResult:
    """Chosen arm plus the score components that explain the choice."""
    arm: Arm
    sample_value: float
    ucb_bonus: float
    context_boost: float
    final_score: float

    @property
    def arm_id(self) -> str:
        return self.arm.id

    @property
    def dimension(self) -> Dimension:
        return self.arm.dimension

    def to_dict(self) -> dict:
        return {
            "arm_id": self.arm_id,
            "dimension": self.dimension.value,
            "sample_value": self.sample_value,
            "ucb_bonus": self.ucb_bonus,
            "context_boost": self.context_boost,
            "final_score": self.final_score,
        }


class BanditBrain:
    """
    Stateless decision logic for mission arms.

    All per-user state is passed in and returned; nothing is mutated.
    """

    def __init__(
        self,
        sampler: Optional[RandomVariateSampler] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.sampler = sampler or RandomVariateSampler()
        self.arms = ARM_CATALOG

    @property
    def prior(self) -> BanditArmState:
        return BanditArmState(
            alpha=self.settings.bandit_prior_alpha,
            beta=self.settings.bandit_prior_beta,
            trials=0,
        )

    def get_arm_for_dimension(self, dimension: Dimension) -> str:
        """Deterministic fallback: first catalog arm on the given dimension."""
        dimension = Dimension(dimension)
        for arm in self.arms:
            if arm.dimension == dimension:
                return arm.id
        raise ValueError(f"No arm registered for dimension {dimension}")

    def get_dimension_for_arm(self, arm_id: str) -> Optional[Dimension]:
        arm = get_arm(arm_id)
        return arm.dimension if arm else None

    def _score_arms(
        self,
        mode: UserMode,
        state: UserBanditState,
        target_dimension: Optional[Dimension],
    ) -> List[ArmSelectionResult]:
        mode_boosts = MODE_BOOSTS.get(UserMode(mode), {})
        total_trials = state.total_trials
        results = []

        for arm in self.arms:
            arm_state = state.get(arm.id) or self.prior

            sample_value = self.sampler.beta(arm_state.alpha, arm_state.beta)

            ucb_bonus = self.settings.ucb_exploration_weight * math.sqrt(
                2 * math.log(total_trials + 1) / (arm_state.trials + 1)
            )

            context_boost = mode_boosts.get(arm.dimension, 0.0)
            if target_dimension is not None and arm.dimension == target_dimension:
                context_boost += self.settings.season_alignment_boost

            results.append(ArmSelectionResult(
                arm=arm,
                sample_value=sample_value,
                ucb_bonus=ucb_bonus,
                context_boost=context_boost,
                final_score=sample_value + ucb_bonus + context_boost,
            ))

        return results

    def select_arm(
        self,
        mode: UserMode,
        state: UserBanditState,
        target_dimension: Optional[Dimension] = None,
    ) -> ArmSelectionResult:
        """
        Select the arm with the highest final score.

        Args:
            mode: Current usage mode of the user
            state: The user's bandit state (may be empty)
            target_dimension: Season focus; arms on it get an alignment boost

        Returns:
            ArmSelectionResult; ties go to the earlier catalog arm
        """
        results = self._score_arms(mode, state, target_dimension)

        best = results[0]
        for result in results[1:]:
            if result.final_score > best.final_score:
                best = result

        logger.debug(
            f"Selected {best.arm_id}: sample={best.sample_value:.3f} "
            f"ucb={best.ucb_bonus:.3f} boost={best.context_boost:.3f} final={best.final_score:.3f}"
        )
        return best

    def select_arms(
        self,
        mode: UserMode,
        state: UserBanditState,
        count: int = 3,
        target_dimension: Optional[Dimension] = None,
    ) -> List[ArmSelectionResult]:
        """Rank arms by final score from a single draw each and return the top `count`."""
        results = self._score_arms(mode, state, target_dimension)
        # sorted() is stable, so equal scores keep catalog order
        ranked = sorted(results, key=lambda r: r.final_score, reverse=True)
        return ranked[:count]

    def sigmoid_reward(self, raw_score: float, dimension: Optional[Dimension] = None) -> float:
        """
        Map a 0-100 score to a reward in [0, 1].

        Logistic curve around the dimension midpoint, rescaled so the
        endpoints land exactly on 0 and 1. Steepness and midpoints are
        configuration, not constants of nature.
        """
        steepness = self.settings.reward_sigmoid_steepness
        midpoints = self.settings.reward_sigmoid_midpoints
        midpoint = midpoints.get(Dimension(dimension).value, 50.0) if dimension else 50.0

        x = max(0.0, min(100.0, float(raw_score)))

        def logistic(value: float) -> float:
            return 1.0 / (1.0 + math.exp(-steepness * (value - midpoint)))

        low = logistic(0.0)
        high = logistic(100.0)
        if high == low:
            return x / 100.0
        reward = (logistic(x) - low) / (high - low)
        return max(0.0, min(1.0, reward))

    def update_state(
        self,
        state: UserBanditState,
        arm_id: str,
        raw_score: float,
    ) -> UserBanditState:
        """
        Apply one Bayesian update and return the new state.

        alpha += reward, beta += 1 - reward, trials += 1. An arm id that is
        not in the catalog is logged and the input state is returned as is.
        """
        arm = get_arm(arm_id)
        if arm is None:
            logger.warning(f"Ignoring bandit update for unknown arm {arm_id!r}")
            return state

        reward = self.sigmoid_reward(raw_score, arm.dimension)
        current = state.get(arm_id) or self.prior

        updated = replace(
            current,
            alpha=current.alpha + reward,
            beta=current.beta + (1.0 - reward),
            trials=current.trials + 1,
            updated_at=utcnow(),
        )
        return state.with_arm(arm_id, updated)

    def calculate_potential(self, current_score: float, logs_count: int) -> Tuple[int, int]:
        """
        Plausible score band given how much evidence the user has logged.
        Fewer logs mean a wider band, skewed upward.
        """
        uncertainty = max(5, 30 - logs_count * 2)
        lower = max(0, int(current_score - math.floor(uncertainty * 0.4)))
        upper = min(100, int(current_score + math.floor(uncertainty * 0.6)))
        return lower, upper

    def arm_statistics(self, state: UserBanditState) -> List[dict]:
        """Posterior summary per catalog arm, sorted by mean."""
        stats = []
        for arm in self.arms:
            arm_state = state.get(arm.id) or self.prior
            stats.append({
                "arm_id": arm.id,
                "dimension": arm.dimension.value,
                "focus_label": arm.focus_label,
                "alpha": arm_state.alpha,
                "beta": arm_state.beta,
                "trials": arm_state.trials,
                "mean_reward": arm_state.mean,
                "updated_at": arm_state.updated_at,
            })
        return sorted(stats, key=lambda x: x["mean_reward"], reverse=True)
