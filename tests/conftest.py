from collections.abc import Awaitable, Callable, Iterable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marvelvault.db.database import get_session
from marvelvault.db.operations import create_card, create_card_set
from marvelvault.main import app
from marvelvault.models.db import Base, CardDB, CardSetDB
from marvelvault.models.principal import AdminPrincipal

MakeSet = Callable[..., Awaitable[CardSetDB]]


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin() -> AdminPrincipal:
    return AdminPrincipal(user_id=1, username="admin")


@pytest.fixture
def make_set(session: AsyncSession) -> MakeSet:
    """
    Factory creating a card set with one card per number.

    Card names are "<set name> #<number>".
    """

    async def _make_set(
        name: str,
        year: int = 1992,
        numbers: Iterable[int | str] = (),
        insert_numbers: Iterable[int | str] = (),
        **set_kwargs: object,
    ) -> CardSetDB:
        card_set = await create_card_set(
            session, name, year, **set_kwargs  # type: ignore[arg-type]
        )
        inserts = {str(n) for n in insert_numbers}
        for number in numbers:
            await create_card(
                session,
                card_set.id,
                str(number),
                f"{name} #{number}",
                is_insert=str(number) in inserts,
            )
        return card_set

    return _make_set


@pytest.fixture
def card_flags(session: AsyncSession) -> Callable[[int], Awaitable[dict[str, bool]]]:
    """Read card number -> is_insert for a set straight from the table."""

    async def _card_flags(set_id: int) -> dict[str, bool]:
        result = await session.execute(
            select(CardDB.card_number, CardDB.is_insert).where(CardDB.set_id == set_id)
        )
        return {number: is_insert for number, is_insert in result.all()}

    return _card_flags


ADMIN_HEADERS = {"X-Admin-User-Id": "1", "X-Admin-Username": "admin"}


@pytest.fixture
async def client(session_factory):
    """Provide an async test client with overridden database session."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=ADMIN_HEADERS
    ) as client:
        yield client

    app.dependency_overrides.clear()
