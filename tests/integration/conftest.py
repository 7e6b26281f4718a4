"""
Fixtures for integration tests.

Runs the recursive network queries against an in-memory SQLite database
(aiosqlite). Each test gets a fresh schema.
"""

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from referral_network.models import (
    Base,
    CompensationLevel,
    Member,
    Subscription,
)


@pytest_asyncio.fixture
async def engine():
    """In-memory database shared by all connections of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Session over the test database."""
    session_maker = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


class NetworkSeeder:
    """Creates members, subscriptions and compensation levels."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def member(
        self,
        member_id: str,
        sponsor_id: str | None = None,
        status: str | None = "active",
        referral_code: str | None = None,
    ) -> Member:
        member = Member(
            id=member_id,
            email=f"{member_id}@example.com",
            name=member_id,
            sponsor_id=sponsor_id,
            referral_code=referral_code,
        )
        self.session.add(member)
        if status is not None:
            self.session.add(
                Subscription(
                    id=f"sub_{member_id}",
                    user_id=member_id,
                    status=status,
                    gateway="stripe",
                )
            )
        await self.session.commit()
        return member

    async def chain(self, *member_ids: str, status: str = "active") -> None:
        """Create members top-down; each is sponsored by the previous one."""
        sponsor_id = None
        for member_id in member_ids:
            await self.member(member_id, sponsor_id=sponsor_id, status=status)
            sponsor_id = member_id

    async def levels(self, *rules: tuple[int, int, int]) -> None:
        """Insert (level, max_members, commission_amount_cents) rows."""
        for level, max_members, amount in rules:
            self.session.add(
                CompensationLevel(
                    level=level,
                    max_members=max_members,
                    commission_amount_cents=amount,
                )
            )
        await self.session.commit()


@pytest_asyncio.fixture
async def seeder(db_session):
    """Seeder bound to the test session."""
    return NetworkSeeder(db_session)
