import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from unittest.mock import MagicMock, patch

from rexeli.core.config import settings
from rexeli.db.base import Base, get_db
from rexeli.main import app
from rexeli.services.openai_service import get_ai_service


@pytest.fixture(autouse=True)
def low_credit_notice(tmp_path, monkeypatch):
    """Keep file writes in tmp_path and low-credit emails off the network."""
    monkeypatch.setattr(settings, "storage_dir", str(tmp_path / "storage"))
    with patch("rexeli.services.credit_service.schedule_low_credit_notice") as notice:
        yield notice


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rexeli_test.db'}",
        connect_args={"timeout": 30},
    )
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def ai():
    """Stand-in for the OpenAI-backed document service."""
    return MagicMock()


@pytest_asyncio.fixture
async def client(session_maker, ai):
    async def override_get_db():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: ai
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
