"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own file-backed SQLite database (or TEST_DATABASE_URL,
which should point at a disposable PostgreSQL database). Booking and
subscription services open their own transactions, so fixtures hand out a
session factory and each factory call commits in a session of its own.
"""

import itertools
import os
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncGenerator

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from club_booking.main import app
from club_booking.api.deps import get_now
from club_booking.core.security import encode_token
from club_booking.db.base import Base
from club_booking.db.session import get_db
from club_booking.models import Event, EventCategory, Group, GroupMembership, Member, Subscription
from club_booking.models.enums import EventStatus, MemberRole, MemberStatus, SubscriptionStatus, Tier

# Tuesday morning, 10:00 in Rome
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)
EVENT_DAY = date(2026, 3, 12)


@pytest_asyncio.fixture
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'club.db'}"
    sqlite = url.startswith("sqlite")
    engine = create_async_engine(url, connect_args={"timeout": 30} if sqlite else {})

    if sqlite:
        @sa_event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A clean session with no transaction in progress."""
    async with session_factory() as session:
        yield session


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh session per request and a frozen server clock."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Authorization headers with a Bearer token for a member."""

    def _headers(member: Member) -> dict:
        token = encode_token(member.id, MemberRole(member.role))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def fetch(session_factory):
    """Re-read a row in a separate session, bypassing any cached state."""

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest.fixture
def make_member(session_factory):
    counter = itertools.count(1)

    async def _make(status: MemberStatus = MemberStatus.ACTIVE, role: MemberRole = MemberRole.USER) -> Member:
        n = next(counter)
        async with session_factory() as session:
            member = Member(
                email=f"member{n}@club.test",
                first_name="Member",
                last_name=str(n),
                status=status.value,
                role=role.value,
            )
            session.add(member)
            await session.commit()
        return member

    return _make


@pytest.fixture
def make_group(session_factory):
    groups: dict[Tier, Group] = {}

    async def _make(tier: Tier) -> Group:
        if tier not in groups:
            async with session_factory() as session:
                group = Group(name=f"{tier.value.title()} group", tier=tier.value)
                session.add(group)
                await session.commit()
            groups[tier] = group
        return groups[tier]

    return _make


@pytest.fixture
def make_category(session_factory):
    categories: dict[str, EventCategory] = {}

    async def _make(code: str) -> EventCategory:
        if code not in categories:
            async with session_factory() as session:
                category = EventCategory(code=code, label=code.replace("_", " ").title())
                session.add(category)
                await session.commit()
            categories[code] = category
        return categories[code]

    return _make


@pytest.fixture
def make_event(session_factory, make_category):
    async def _make(
        category_code: str = "TRAINING_ALL",
        day: date = EVENT_DAY,
        max_slots: int = 10,
        booked_slots: int = 0,
        status: EventStatus = EventStatus.SCHEDULED,
        start_time: time = time(19, 0),
        title: str = "Pool training",
    ) -> Event:
        category = await make_category(category_code)
        async with session_factory() as session:
            event = Event(
                title=title,
                location="Main pool",
                date=day,
                start_time=start_time,
                end_time=(datetime.combine(day, start_time) + timedelta(hours=1)).time(),
                max_slots=max_slots,
                booked_slots=booked_slots,
                status=status.value,
                category_id=category.id,
            )
            session.add(event)
            await session.commit()
        return event

    return _make


@pytest.fixture
def make_subscription(session_factory, make_group):
    """Insert a subscription and the memberships it funds, bypassing the lifecycle service."""

    async def _make(
        member: Member,
        tiers=(Tier.ALL,),
        credits: int = 32,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        start: datetime = NOW - timedelta(days=30),
        end: datetime = NOW + timedelta(days=335),
        valid_from: datetime = None,
        valid_to: datetime = None,
    ) -> Subscription:
        groups = [await make_group(tier) for tier in tiers]
        async with session_factory() as session:
            subscription = Subscription(
                member_id=member.id,
                start_date=start,
                end_date=end,
                amount=350,
                currency="EUR",
                credits=credits,
                status=status.value,
            )
            session.add(subscription)
            await session.flush()
            for group in groups:
                session.add(GroupMembership(
                    member_id=member.id,
                    group_id=group.id,
                    subscription_id=subscription.id,
                    valid_from=valid_from or start,
                    valid_to=valid_to or end,
                    is_active=True,
                ))
            await session.commit()
        return subscription

    return _make


@pytest.fixture
def subscribed_member(make_member, make_subscription):
    """Active member with an ACTIVE subscription granting `tiers`."""

    async def _make(tiers=(Tier.ALL,), credits: int = 32) -> Member:
        member = await make_member()
        await make_subscription(member, tiers=tiers, credits=credits)
        return member

    return _make
