#!/usr/bin/env python3
"""
Weekly Outcome Pipeline.

Run weekly on Monday at 04:00 Asia/Tokyo via cron:
    0 4 * * 1 cd /path/to/mission-engine && TZ=Asia/Tokyo python -m cron.weekly_outcomes

This script:
1. Lists users with a finalized score for the week that just closed
2. Fetches each user's finalized LU/Q/O scores
3. Credits the mission that was active before the window closed
4. Logs metrics for monitoring
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(__file__).replace("\\", "/").rsplit("/cron", 1)[0])

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.exceptions import ScoringUnavailableError
from app.database import async_session_maker, utcnow
from app.services.mission_orchestrator import MissionOrchestrator
from app.services.scoring_client import ScoringClient


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("weekly_outcomes")


def latest_window_end(now: datetime, settings: Settings) -> datetime:
    """
    Most recent evaluation window boundary at or before `now`.

    Both `now` and the result are naive UTC. The boundary is the configured
    weekday and hour in the scoring timezone, so every run within the same
    week resolves to the same window.
    """
    tz = timezone(timedelta(hours=settings.outcome_window_utc_offset_hours))
    local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)

    days_back = (local_now.weekday() - settings.outcome_window_weekday) % 7
    boundary = (local_now - timedelta(days=days_back)).replace(
        hour=settings.outcome_window_hour, minute=0, second=0, microsecond=0,
    )
    if boundary > local_now:
        boundary -= timedelta(days=7)

    return boundary.astimezone(timezone.utc).replace(tzinfo=None)


class WeeklyOutcomePipeline:
    """
    Feeds finalized weekly scores back into each user's bandit.
    One user's failure never stops the batch.
    """

    def __init__(
        self,
        db: AsyncSession,
        scoring_client: ScoringClient,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.scoring_client = scoring_client
        self.settings = settings or get_settings()
        # Only the delayed-outcome path is used; no season or text generation
        self.orchestrator = MissionOrchestrator(
            db,
            season_manager=None,
            text_generator=None,
            settings=self.settings,
        )
        self.metrics = {
            "users_processed": 0,
            "updates_applied": 0,
            "skipped": 0,
            "errors": [],
        }

    async def run(self, window_end: Optional[datetime] = None) -> dict:
        """Run the pipeline for the window ending at `window_end` (default: the latest boundary)."""
        window_end = window_end or latest_window_end(utcnow(), self.settings)
        window_start = window_end - timedelta(days=self.settings.outcome_lookback_days)
        start_time = utcnow()

        logger.info(f"Starting weekly outcome pipeline for {window_start} .. {window_end}")

        try:
            user_ids = await self.scoring_client.list_scored_users(window_start, window_end)
        except ScoringUnavailableError as e:
            logger.error(f"Weekly outcome pipeline failed: {e}")
            self.metrics["error"] = str(e)
            self.metrics["status"] = "failed"
            raise

        logger.info(f"Found {len(user_ids)} users with finalized scores")

        for user_id in user_ids:
            await self._process_user(user_id, window_start, window_end)

        self.metrics["window_start"] = window_start.isoformat()
        self.metrics["window_end"] = window_end.isoformat()
        self.metrics["duration_seconds"] = (utcnow() - start_time).total_seconds()
        self.metrics["completed_at"] = utcnow().isoformat()

        logger.info(f"Weekly outcomes completed: {self.metrics}")
        return self.metrics

    async def _process_user(self, user_id, window_start: datetime, window_end: datetime) -> None:
        self.metrics["users_processed"] += 1
        try:
            scores = await self.scoring_client.get_finalized_user_score(user_id, window_start, window_end)
            if not scores:
                logger.info(f"Score for user {user_id} not finalized yet, skipping")
                self.metrics["skipped"] += 1
                return

            arm_id = await self.orchestrator.apply_delayed_outcome(user_id, window_end, scores)
            await self.db.commit()

            if arm_id is None:
                self.metrics["skipped"] += 1
            else:
                self.metrics["updates_applied"] += 1
                logger.debug(f"Applied outcome for user {user_id} to {arm_id}")

        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to apply outcome for user {user_id}: {e}")
            self.metrics["errors"].append(f"user_{user_id}: {str(e)}")


async def run_weekly_outcomes() -> dict:
    """
    Main entry point for the weekly outcome cron job.

    Returns:
        Dict with execution metrics
    """
    scoring_client = ScoringClient()
    try:
        async with async_session_maker() as db:
            pipeline = WeeklyOutcomePipeline(db, scoring_client)
            return await pipeline.run()
    finally:
        await scoring_client.aclose()


def main():
    """CLI entry point."""
    logger.info("=" * 60)
    logger.info("WEEKLY OUTCOME PIPELINE - " + utcnow().isoformat())
    logger.info("=" * 60)

    try:
        metrics = asyncio.run(run_weekly_outcomes())

        # Print summary
        print("\n" + "=" * 40)
        print("PIPELINE SUMMARY")
        print("=" * 40)
        print(f"Users Processed:  {metrics.get('users_processed', 0)}")
        print(f"Updates Applied:  {metrics.get('updates_applied', 0)}")
        print(f"Skipped:          {metrics.get('skipped', 0)}")
        print(f"Duration:         {metrics.get('duration_seconds', 0):.2f}s")

        if metrics.get("errors"):
            print(f"\nErrors: {len(metrics['errors'])}")
            for error in metrics["errors"][:5]:
                print(f"  - {error}")

        print("=" * 40)

        return 0

    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
