"""
Shared FastAPI dependencies for the mission engine routers.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_db, get_session_factory
from app.services.mission_orchestrator import MissionOrchestrator
from app.services.scoring_client import ScoringClient
from app.services.season_manager import SeasonWindowManager
from app.services.text_generator import GeminiTextGenerator


@lru_cache()
def get_text_generator() -> GeminiTextGenerator:
    """Process-wide text generator (the LLM client is created lazily)."""
    return GeminiTextGenerator()


@lru_cache()
def get_scoring_client() -> ScoringClient:
    """Process-wide scoring client sharing one connection pool."""
    return ScoringClient()


def get_season_manager(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    text_generator: GeminiTextGenerator = Depends(get_text_generator),
    scoring_client: ScoringClient = Depends(get_scoring_client),
) -> SeasonWindowManager:
    return SeasonWindowManager(session_factory, text_generator, scoring_client)


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    season_manager: SeasonWindowManager = Depends(get_season_manager),
    text_generator: GeminiTextGenerator = Depends(get_text_generator),
) -> MissionOrchestrator:
    return MissionOrchestrator(db, season_manager, text_generator)
