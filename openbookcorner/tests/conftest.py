import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from openbookcorner import models  # noqa: F401  (registers tables on Base.metadata)
from openbookcorner.db.base import Base
from openbookcorner.db.session import get_db
from openbookcorner.main import app
from openbookcorner.services.email import mailer, render_email
from openbookcorner.tests.factories import Outbox


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def client(db):
    """Unauthenticated client backed by the test database."""

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> Outbox:
    """Capture outgoing email instead of calling the email API."""
    sent = Outbox()

    async def _send(*, to: str, template: str, context: dict) -> bool:
        sent.append(render_email(template, to, context), template=template, context=context)
        return True

    monkeypatch.setattr(mailer, "send", _send)
    return sent
