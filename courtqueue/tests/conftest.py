"""
Shared pytest configuration for courtqueue tests.

Service and store tests run against an in-memory SQLite database (aiosqlite),
created fresh for every test. Set TEST_DATABASE_URL to point them elsewhere.
Route tests use FastAPI's TestClient with the database dependency overridden.
"""

import os

# Disable rate limiting before any route module is imported
os.environ.setdefault("ENV", "test")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from courtqueue.database.db import Base  # noqa: E402
from courtqueue.database.models import Agent, Player, Session  # noqa: E402
from courtqueue.services import auth_service  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine with all tables."""
    options = {"echo": False}
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    engine = create_async_engine(TEST_DATABASE_URL, **options)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def test_agent(db_session):
    """Create an organizer account (password: secret123)."""
    agent = Agent(username="organizer", password_hash=auth_service.hash_password("secret123"))
    db_session.add(agent)
    await db_session.commit()
    await db_session.refresh(agent)
    return agent


@pytest_asyncio.fixture
async def test_session(db_session, test_agent):
    """Create a one-court session owned by test_agent."""
    session = Session(
        agent_id=test_agent.id,
        agent_name="Sam",
        court_name="Downtown Sports Hall",
        date="2026-10-19",
        start_time="18:00",
        end_time="20:00",
        court_count=1,
        shareable_slug="abcd1234",
    )
    db_session.add(session)
    await db_session.commit()
    await db_session.refresh(session)
    return session


@pytest_asyncio.fixture
async def add_players(db_session):
    """Factory: add one waiting player per entry of games_played, named P1, P2, ..."""

    async def _add(session_id, games_played):
        players = []
        for index, games in enumerate(games_played, start=1):
            player = Player(
                session_id=session_id,
                name=f"P{index}",
                category="Beginner",
                games_played=games,
                is_waiting=True,
            )
            db_session.add(player)
            players.append(player)
        await db_session.commit()
        for player in players:
            await db_session.refresh(player)
        return players

    return _add
