"""Shared fixtures: in-memory SQLite, recording storage, in-memory queue and JWT clients."""

import os


os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTH_PROVIDER"] = "jwt"
os.environ["REDIS_URL"] = ""
os.environ["TRANSCODE_QUEUE_PROVIDER"] = "memory"

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Role
from src.auth.security import create_access_token
from src.database.base import Base
from src.database.init import init_database
from src.database.session import async_session_maker, engine
from src.main import app
from src.media.cache import MediaCache, get_media_cache
from src.middleware.security import limiter
from src.storage import get_storage_provider
from src.transcode.queue import InMemoryTranscodeQueue, get_transcode_queue
from src.transcode.service import TranscodeOrchestrator, build_pipeline

from factories import ADMIN_ID, INSTRUCTOR_ID, LEARNER_ID, WORKER_SECRET, RecordingStorage


limiter.enabled = False


@pytest_asyncio.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema per test; disposing drops the in-memory database."""
    await init_database(engine)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def queue() -> InMemoryTranscodeQueue:
    return InMemoryTranscodeQueue()


@pytest.fixture
def cache() -> MediaCache:
    return MediaCache(None, ttl_seconds=60)


@pytest.fixture(autouse=True)
def overrides(storage: RecordingStorage, queue: InMemoryTranscodeQueue, cache: MediaCache) -> Generator[None, None, None]:
    app.dependency_overrides[get_storage_provider] = lambda: storage
    app.dependency_overrides[get_transcode_queue] = lambda: queue
    app.dependency_overrides[get_media_cache] = lambda: cache
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def pipeline(
    db_session: AsyncSession, storage: RecordingStorage, cache: MediaCache, queue: InMemoryTranscodeQueue
) -> TranscodeOrchestrator:
    return build_pipeline(db_session, storage, cache, queue)


@pytest_asyncio.fixture
async def client_factory() -> AsyncGenerator[Callable[..., Awaitable[AsyncClient]], None]:
    """Build clients authenticated as a given user and role."""
    clients: list[AsyncClient] = []

    async def _make(user_id: UUID | None = None, role: Role = Role.LEARNER, token: bool = True) -> AsyncClient:
        headers = {}
        if token:
            subject = user_id or uuid4()
            headers["Authorization"] = f"Bearer {create_access_token(subject, role.value)}"
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def admin(client_factory: Callable[..., Awaitable[AsyncClient]]) -> AsyncClient:
    return await client_factory(ADMIN_ID, Role.ADMIN)


@pytest_asyncio.fixture
async def instructor(client_factory: Callable[..., Awaitable[AsyncClient]]) -> AsyncClient:
    return await client_factory(INSTRUCTOR_ID, Role.INSTRUCTOR)


@pytest_asyncio.fixture
async def learner(client_factory: Callable[..., Awaitable[AsyncClient]]) -> AsyncClient:
    return await client_factory(LEARNER_ID, Role.LEARNER)


@pytest_asyncio.fixture
async def worker(client_factory: Callable[..., Awaitable[AsyncClient]]) -> AsyncClient:
    client = await client_factory(token=False)
    client.headers["X-Transcode-Secret"] = WORKER_SECRET
    return client
