import pytest
import os
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from httpx import AsyncClient, ASGITransport

from app.database import Base, get_db, get_session_factory
from app.main import app
from app.api.dependencies import get_text_generator, get_scoring_client
from app.config import Settings
from app.services.bandit_brain import BanditBrain
from app.services.random_variates import RandomVariateSampler
from app.services.season_manager import SeasonWindowManager
from tests.fixtures.test_data import FakeTextGenerator, FakeScoringClient


# File-backed SQLite so that concurrent sessions see each other's commits
@pytest.fixture
async def test_engine(tmp_path):
    """Function-scoped test database engine."""
    db_url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'missions.db'}"
    engine = create_async_engine(db_url)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Function-scoped fresh DB session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(google_api_key=None, scoring_api_token=None)


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def scoring_client() -> FakeScoringClient:
    return FakeScoringClient()


@pytest.fixture
def season_manager(session_factory, text_generator, scoring_client, settings) -> SeasonWindowManager:
    return SeasonWindowManager(session_factory, text_generator, scoring_client, settings=settings)


@pytest.fixture
def brain(settings) -> BanditBrain:
    """Seeded brain for reproducible selections."""
    return BanditBrain(sampler=RandomVariateSampler(seed=42), settings=settings)


@pytest.fixture
async def client(db_session, session_factory, text_generator, scoring_client) -> AsyncGenerator[AsyncClient, None]:
    """Test client with overrides for the database and external collaborators."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_text_generator] = lambda: text_generator
    app.dependency_overrides[get_scoring_client] = lambda: scoring_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
