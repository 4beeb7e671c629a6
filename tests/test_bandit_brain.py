"""
Tests for BanditBrain UCB-adjusted Thompson Sampling.
"""

import math

import pytest

from app.config import Settings
from app.services import bandit_brain as bandit_brain_module
from app.services.arm_catalog import ARM_CATALOG, Dimension, UserMode
from app.services.bandit_brain import BanditBrain
from app.services.bandit_state_store import BanditArmState, UserBanditState
from app.services.random_variates import RandomVariateSampler


class ConstantSampler:
    """Returns the same Beta draw for every arm."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def beta(self, alpha: float, beta: float) -> float:
        return self.value


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def flat_brain(settings):
    return BanditBrain(sampler=ConstantSampler(), settings=settings)


class TestSelectArm:
    """Tests for arm selection."""

    def test_empty_state_selects_catalog_arm(self, brain):
        result = brain.select_arm(UserMode.TEAM, UserBanditState())
        assert result.arm_id in {arm.id for arm in ARM_CATALOG}
        assert result.final_score == pytest.approx(
            result.sample_value + result.ucb_bonus + result.context_boost
        )

    def test_no_ucb_bonus_without_history(self, brain):
        """ln(0 + 1) = 0, so a brand-new user gets no exploration bonus."""
        for result in brain.select_arms(UserMode.EARN, UserBanditState()):
            assert result.ucb_bonus == 0.0

    def test_ucb_bonus_formula(self, flat_brain):
        state = UserBanditState(arms={
            "Arm_LU": BanditArmState(alpha=3.0, beta=2.0, trials=3),
            "Arm_Q": BanditArmState(alpha=2.5, beta=2.5, trials=1),
        })
        results = {r.arm_id: r for r in flat_brain.select_arms(UserMode.EARN, state)}

        total = 4
        assert results["Arm_LU"].ucb_bonus == pytest.approx(0.5 * math.sqrt(2 * math.log(total + 1) / 4))
        assert results["Arm_Q"].ucb_bonus == pytest.approx(0.5 * math.sqrt(2 * math.log(total + 1) / 2))
        assert results["Arm_O"].ucb_bonus == pytest.approx(0.5 * math.sqrt(2 * math.log(total + 1) / 1))

    @pytest.mark.parametrize("mode,expected", [
        (UserMode.EARN, "Arm_Q"),
        (UserMode.LEARN, "Arm_LU"),
        (UserMode.TEAM, "Arm_O"),
    ])
    def test_mode_boost_decides_on_equal_samples(self, flat_brain, mode, expected):
        assert flat_brain.select_arm(mode, UserBanditState()).arm_id == expected

    def test_season_alignment_boost(self, flat_brain):
        """TEAM favours O by 0.1 over LU; a LU season adds 0.2 to LU."""
        result = flat_brain.select_arm(UserMode.TEAM, UserBanditState(), target_dimension=Dimension.LU)
        assert result.arm_id == "Arm_LU"
        assert result.context_boost == pytest.approx(0.4)

    def test_ties_go_to_first_catalog_arm(self, flat_brain, monkeypatch):
        monkeypatch.setattr(bandit_brain_module, "MODE_BOOSTS", {})
        result = flat_brain.select_arm(UserMode.TEAM, UserBanditState())
        assert result.arm_id == ARM_CATALOG[0].id

    def test_select_arms_ranked(self, brain):
        results = brain.select_arms(UserMode.LEARN, UserBanditState(), count=3)
        assert len(results) == 3
        scores = [r.final_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(brain.select_arms(UserMode.LEARN, UserBanditState(), count=1)) == 1

    def test_learned_preference_dominates_mode_boost(self, settings):
        """An arm with a strong posterior is chosen despite the mode favouring another."""
        brain = BanditBrain(sampler=RandomVariateSampler(seed=99), settings=settings)
        state = UserBanditState(arms={
            "Arm_LU": BanditArmState(alpha=32.0, beta=2.0, trials=30),
            "Arm_Q": BanditArmState(alpha=2.0, beta=32.0, trials=30),
            "Arm_O": BanditArmState(alpha=2.0, beta=32.0, trials=30),
        })
        picks = [brain.select_arm(UserMode.EARN, state).arm_id for _ in range(200)]
        assert picks.count("Arm_LU") > 180


class TestSigmoidReward:
    """Tests for reward shaping."""

    def test_endpoints_exact(self, flat_brain):
        assert flat_brain.sigmoid_reward(0) == 0.0
        assert flat_brain.sigmoid_reward(100) == 1.0

    def test_midpoint(self, flat_brain):
        assert flat_brain.sigmoid_reward(50, Dimension.Q) == pytest.approx(0.5)

    def test_out_of_range_clamped(self, flat_brain):
        assert flat_brain.sigmoid_reward(-20) == 0.0
        assert flat_brain.sigmoid_reward(140) == 1.0

    def test_monotonic(self, flat_brain):
        rewards = [flat_brain.sigmoid_reward(x) for x in range(0, 101, 5)]
        assert rewards == sorted(rewards)

    def test_midpoint_is_configurable(self):
        brain = BanditBrain(
            sampler=ConstantSampler(),
            settings=Settings(reward_sigmoid_midpoints={"LU": 70.0, "Q": 50.0, "O": 50.0}),
        )
        assert brain.sigmoid_reward(60, Dimension.LU) < brain.sigmoid_reward(60, Dimension.Q)


class TestUpdateState:
    """Tests for the Bayesian update."""

    def test_full_reward_moves_alpha_only(self, flat_brain):
        state = UserBanditState()
        new_state = flat_brain.update_state(state, "Arm_Q", 100)

        arm = new_state.get("Arm_Q")
        assert arm.alpha == 3.0
        assert arm.beta == 2.0
        assert arm.trials == 1
        assert arm.updated_at is not None

    def test_zero_reward_moves_beta_only(self, flat_brain):
        new_state = flat_brain.update_state(UserBanditState(), "Arm_LU", 0)
        arm = new_state.get("Arm_LU")
        assert arm.alpha == 2.0
        assert arm.beta == 3.0

    def test_alpha_beta_sum_grows_by_one(self, flat_brain):
        state = UserBanditState(arms={"Arm_O": BanditArmState(alpha=4.2, beta=3.1, trials=5)})
        arm = flat_brain.update_state(state, "Arm_O", 63).get("Arm_O")
        assert arm.alpha + arm.beta == pytest.approx(8.3)
        assert arm.trials == 6

    def test_input_state_not_mutated(self, flat_brain):
        state = UserBanditState()
        flat_brain.update_state(state, "Arm_Q", 80)
        assert state.get("Arm_Q") is None
        assert state.total_trials == 0

    def test_unknown_arm_ignored(self, flat_brain):
        state = UserBanditState()
        assert flat_brain.update_state(state, "Arm_Nope", 80) is state


class TestHelpers:
    """Tests for catalog lookups, potential and statistics."""

    @pytest.mark.parametrize("dimension,arm_id", [
        (Dimension.LU, "Arm_LU"),
        (Dimension.Q, "Arm_Q"),
        (Dimension.O, "Arm_O"),
    ])
    def test_arm_for_dimension(self, flat_brain, dimension, arm_id):
        assert flat_brain.get_arm_for_dimension(dimension) == arm_id
        assert flat_brain.get_dimension_for_arm(arm_id) == dimension

    def test_dimension_for_unknown_arm(self, flat_brain):
        assert flat_brain.get_dimension_for_arm("Arm_Speed") is None

    @pytest.mark.parametrize("score,logs,expected", [
        (60, 0, (48, 78)),
        (60, 20, (58, 63)),
        (2, 0, (0, 20)),
        (95, 0, (83, 100)),
    ])
    def test_calculate_potential(self, flat_brain, score, logs, expected):
        assert flat_brain.calculate_potential(score, logs) == expected

    def test_arm_statistics_prior(self, flat_brain):
        stats = flat_brain.arm_statistics(UserBanditState())
        assert [s["arm_id"] for s in stats] == [arm.id for arm in ARM_CATALOG]
        assert all(s["mean_reward"] == 0.5 for s in stats)

    def test_arm_statistics_sorted_by_mean(self, flat_brain):
        state = UserBanditState(arms={"Arm_O": BanditArmState(alpha=9.0, beta=1.0, trials=8)})
        stats = flat_brain.arm_statistics(state)
        assert stats[0]["arm_id"] == "Arm_O"
        assert stats[0]["mean_reward"] == pytest.approx(0.9)
