import os

# Must be set before lootvault.core.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("EVENTS_PUBLISH_ENABLED", "false")

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lootvault.core.config import settings
from lootvault.models import Base
from lootvault.services import catalog
from lootvault.services.custody import custody
from lootvault.services.fulfillment import FulfillmentEngine
from lootvault.services.randomness import ManualRandomnessProvider

OWNER = "owner"
ENGINE = "lootvault"
ALICE = "alice"
BOB = "bob"
SECRET = "test-secret"


@pytest.fixture(autouse=True)
def _settings(monkeypatch):
    monkeypatch.setattr(settings, "OWNER_ADDRESS", OWNER)
    monkeypatch.setattr(settings, "ENGINE_ADDRESS", ENGINE)
    monkeypatch.setattr(settings, "EVENTS_PUBLISH_ENABLED", False)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lootvault.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    await db_engine.dispose()


@pytest.fixture
def randomness():
    return ManualRandomnessProvider(secret=SECRET)


@pytest.fixture
def engine(session_factory, randomness):
    return FulfillmentEngine(randomness, session_factory=session_factory)


@pytest.fixture
def make_box(session_factory):
    """
    Create a box with rewards given as (token_type, token_address, token_id, amount, weight).
    """

    async def _make_box(rewards=(), price="0.01", max_supply=0, name="Chest"):
        async with session_factory() as session:
            box = await catalog.create_loot_box(
                session, OWNER, name, "", Decimal(price), max_supply
            )
            for token_type, token_address, token_id, amount, weight in rewards:
                await catalog.add_reward(
                    session, OWNER, box.id, token_type, token_address, token_id, Decimal(amount), weight
                )
        return box.id

    return _make_box


@pytest.fixture
def stock(session_factory):
    """Credit assets to a holder (the engine by default)."""

    async def _stock(token_type, token_address, token_id, amount, holder=ENGINE):
        async with session_factory() as session:
            await custody.credit(session, holder, token_type, token_address, token_id, Decimal(amount))
            await session.commit()

    return _stock


@pytest.fixture
def balance(session_factory):
    async def _balance(holder, token_address, token_id=0):
        async with session_factory() as session:
            return await custody.balance_of(session, holder, token_address, token_id)

    return _balance
