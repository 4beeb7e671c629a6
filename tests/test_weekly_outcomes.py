"""
Tests for the weekly delayed-outcome batch job.
"""

import uuid
from datetime import datetime, timedelta

import pytest

from app.config import Settings
from app.core.exceptions import ScoringUnavailableError
from app.database import utcnow
from app.services.arm_catalog import Dimension
from app.services.bandit_state_store import BanditStateStore
from cron.weekly_outcomes import WeeklyOutcomePipeline, latest_window_end
from tests.fixtures.test_data import FakeScoringClient, make_mission


WINDOW_END = datetime(2026, 3, 9, 4, 0, 0)


class TestWeeklyOutcomePipeline:

    @pytest.mark.asyncio
    async def test_applies_finalized_scores(self, db_session, settings):
        with_mission = uuid.uuid4()
        without_mission = uuid.uuid4()
        not_final = uuid.uuid4()

        db_session.add(make_mission(
            with_mission, WINDOW_END - timedelta(days=3), arm_id="Arm_O", target_dimension=Dimension.O,
        ))
        await db_session.commit()

        scoring = FakeScoringClient(user_scores={
            with_mission: {"LU": 40.0, "Q": 55.0, "O": 90.0},
            without_mission: {"LU": 70.0, "Q": 70.0, "O": 70.0},
            not_final: None,
        })
        pipeline = WeeklyOutcomePipeline(db_session, scoring, settings=settings)
        metrics = await pipeline.run(window_end=WINDOW_END)

        assert metrics["users_processed"] == 3
        assert metrics["updates_applied"] == 1
        assert metrics["skipped"] == 2
        assert metrics["errors"] == []

        state = await BanditStateStore(db_session).get(with_mission)
        assert state.get("Arm_O").trials == 1
        assert state.get("Arm_O").alpha > 2.0

    @pytest.mark.asyncio
    async def test_rerun_does_not_double_count(self, db_session, settings):
        user_id = uuid.uuid4()
        db_session.add(make_mission(user_id, WINDOW_END - timedelta(days=1), arm_id="Arm_Q"))
        await db_session.commit()

        scoring = FakeScoringClient(user_scores={user_id: {"Q": 75.0}})
        await WeeklyOutcomePipeline(db_session, scoring, settings=settings).run(window_end=WINDOW_END)
        metrics = await WeeklyOutcomePipeline(db_session, scoring, settings=settings).run(window_end=WINDOW_END)

        assert metrics["updates_applied"] == 0
        assert (await BanditStateStore(db_session).get(user_id)).get("Arm_Q").trials == 1

    @pytest.mark.asyncio
    async def test_one_user_failure_does_not_stop_batch(self, db_session, settings):
        ok_user = uuid.uuid4()
        bad_user = uuid.uuid4()
        db_session.add(make_mission(ok_user, WINDOW_END - timedelta(days=2), arm_id="Arm_LU",
                                    target_dimension=Dimension.LU))
        await db_session.commit()

        class FlakyScoring(FakeScoringClient):
            async def get_finalized_user_score(self, user_id, period_start, period_end):
                if user_id == bad_user:
                    raise ScoringUnavailableError("timeout")
                return await super().get_finalized_user_score(user_id, period_start, period_end)

        scoring = FlakyScoring(user_scores={bad_user: {"LU": 50.0}, ok_user: {"LU": 50.0}})
        metrics = await WeeklyOutcomePipeline(db_session, scoring, settings=settings).run(window_end=WINDOW_END)

        assert metrics["updates_applied"] == 1
        assert len(metrics["errors"]) == 1

    @pytest.mark.asyncio
    async def test_listing_failure_raises(self, db_session, settings):
        class DownScoring(FakeScoringClient):
            async def list_scored_users(self, period_start, period_end):
                raise ScoringUnavailableError("down")

        pipeline = WeeklyOutcomePipeline(db_session, DownScoring(), settings=settings)
        with pytest.raises(ScoringUnavailableError):
            await pipeline.run(window_end=WINDOW_END)
        assert pipeline.metrics["status"] == "failed"

    @pytest.mark.asyncio
    async def test_default_window_rerun_does_not_double_count(self, db_session, settings):
        user_id = uuid.uuid4()
        db_session.add(make_mission(user_id, utcnow() - timedelta(days=10), arm_id="Arm_Q"))
        await db_session.commit()

        scoring = FakeScoringClient(user_scores={user_id: {"Q": 75.0}})
        first = await WeeklyOutcomePipeline(db_session, scoring, settings=settings).run()
        second = await WeeklyOutcomePipeline(db_session, scoring, settings=settings).run()

        assert first["updates_applied"] == 1
        assert second["updates_applied"] == 0
        assert first["window_end"] == second["window_end"]
        assert (await BanditStateStore(db_session).get(user_id)).get("Arm_Q").trials == 1


class TestLatestWindowEnd:
    """Window boundaries are Monday 04:00 Asia/Tokyo, i.e. Sunday 19:00 UTC."""

    @pytest.mark.parametrize("now,expected", [
        # Wednesday midday UTC
        (datetime(2026, 3, 4, 12, 0), datetime(2026, 3, 1, 19, 0)),
        # exactly on the boundary
        (datetime(2026, 3, 1, 19, 0), datetime(2026, 3, 1, 19, 0)),
        # one minute before the boundary (Monday 03:59 in Tokyo)
        (datetime(2026, 3, 1, 18, 59), datetime(2026, 2, 22, 19, 0)),
        # Monday UTC is already past Monday 04:00 in Tokyo
        (datetime(2026, 3, 2, 0, 30), datetime(2026, 3, 1, 19, 0)),
    ])
    def test_boundary(self, now, expected):
        assert latest_window_end(now, Settings()) == expected

    def test_same_week_resolves_to_same_window(self):
        settings = Settings()
        monday_run = latest_window_end(datetime(2026, 3, 1, 19, 5), settings)
        rerun = latest_window_end(datetime(2026, 3, 3, 8, 0), settings)
        assert monday_run == rerun
