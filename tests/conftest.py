"""
Pytest configuration and fixtures.

Provides:
- A throwaway SQLite database per test (aiosqlite)
- An async HTTP client bound to the FastAPI app with dependency overrides
- A retry policy that records waits instead of sleeping
"""

import os
import tempfile

import pytest

# Set test environment before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.gettempdir(), "nihongo_tutor_import.db"
)
os.environ["MODE"] = "test"
os.environ["ANTHROPIC_API_KEY"] = "test-key-not-real"

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.core.db.schemas  # noqa: F401
from app.apis.deps import get_generator, get_templates
from app.core.db.base import Base, get_session
from app.modules.articles.templates import TemplateProvider
from app.modules.llm.retry import RetryPolicy
from main import app as fastapi_app

from tests.fakes import ScriptedGenerator


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tutor.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def templates() -> TemplateProvider:
    return TemplateProvider()


class RecordingSleep:
    def __init__(self):
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_policy(sleeper) -> RetryPolicy:
    return RetryPolicy(sleep=sleeper)


@pytest.fixture
def generator() -> ScriptedGenerator:
    """Replace ``generator.replies`` in a test to script the model."""
    return ScriptedGenerator()


@pytest.fixture
async def client(session_maker, generator, templates):
    """HTTP client with database, generator and templates overridden."""

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = override_get_session
    fastapi_app.dependency_overrides[get_generator] = lambda: generator
    fastapi_app.dependency_overrides[get_templates] = lambda: templates
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def learner_headers() -> dict:
    return {"X-User-ID": "learner-1"}
