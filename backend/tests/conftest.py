"""Shared fixtures: in-memory database, frozen clock, stub HTTP transports."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SITE_URL", "https://civic.example")

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db import Base, build_engine
from app.models import Candidate
from app.services.clock import FrozenClock
from app.settings import get_settings

# Fixed reference time for deterministic expiry checks
REFERENCE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def reference_time() -> datetime:
    return REFERENCE_TIME


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(REFERENCE_TIME)


@pytest.fixture
def settings():
    return get_settings().model_copy(update={"site_url": "https://civic.example"})


@pytest.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite://")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_candidate(session: AsyncSession) -> Callable:
    async def _make(**overrides) -> Candidate:
        defaults = {
            "slug": "ana-rojas",
            "name": "Ana Rojas",
            "office": "Cámara de Representantes",
            "region": "Meta",
            "ballot_number": "101",
            "biography": "Abogada y líder comunitaria en Villavicencio.",
            "proposals": "Seguridad proactiva, empleo juvenil.",
            "auto_blog_enabled": True,
        }
        defaults.update(overrides)
        candidate = Candidate(**defaults)
        session.add(candidate)
        await session.commit()
        await session.refresh(candidate)
        return candidate

    return _make


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
async def mock_http():
    """Build an ``httpx.AsyncClient`` served by a handler; returns (client, transport)."""
    clients: list[httpx.AsyncClient] = []

    def _build(handler):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=transport)
        clients.append(client)
        return client, transport

    yield _build
    for c in clients:
        await c.aclose()
