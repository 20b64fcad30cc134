"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

# Set required environment variables for testing BEFORE importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from case_analysis.core.config import settings
from case_analysis.core.context import AnalysisContext
from case_analysis.core.database import Base
from case_analysis.database import models
from case_analysis.main import app


class FakeLLM:
    """Completion client that records prompts and returns canned text."""

    def __init__(self, fail_on: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.calls: List[Dict[str, Any]] = []
        self.fail_on = fail_on or []
        self.error = error or RuntimeError("LLM unavailable")

    async def generate_content(self, contents, system_instruction=None, generation_config=None) -> str:
        self.calls.append(
            {
                "contents": contents,
                "system_instruction": system_instruction,
                "generation_config": generation_config or {},
            }
        )
        if system_instruction in self.fail_on:
            raise self.error
        return f"Generated analysis #{len(self.calls)} under Tex. Bus. & Com. Code § 17.46."


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def db_session():
    """Session on a fresh in-memory SQLite database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def analysis_context(fake_llm) -> AnalysisContext:
    """Context with a fake LLM and no research or case search clients."""
    return AnalysisContext(settings=settings, llm=fake_llm)


@pytest_asyncio.fixture
async def client_record(db_session) -> models.Client:
    """A persisted client with no intake messages."""
    client = models.Client(
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        case_type="deceptive_trade",
    )
    db_session.add(client)
    await db_session.commit()
    return client


async def _add_messages(session, client_id, texts: List[str]) -> None:
    start = datetime.now(timezone.utc) - timedelta(hours=1)
    for index, text in enumerate(texts):
        session.add(
            models.ClientMessage(
                client_id=client_id,
                role="user",
                message_content=text,
                created_at=start + timedelta(minutes=index),
            )
        )
    await session.commit()


@pytest.fixture
def add_messages():
    """Helper inserting intake messages oldest first, one minute apart."""
    return _add_messages


@pytest.fixture
def llm_factory():
    """Build extra fake LLMs, e.g. ``llm_factory(fail_on=[SOME_SYSTEM_PROMPT])``."""
    return FakeLLM
