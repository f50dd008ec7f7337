import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SUI_NETWORK"] = "testnet"
os.environ["MARGIN_MASTER_PACKAGE_ID"] = "0x0"
os.environ["POLL_INTERVAL_MS"] = "5000"
os.environ.pop("SUI_GRAPHQL_URL", None)

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from margin_indexer.events import EventRecord, EventType
from margin_indexer.models import Base, User, TradingPair, Position, CopyRelation


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """Trader with an open BTC/USDC long (0xabc) and a follower copying at 50%."""
    async with session_factory() as s:
        trader = User(sui_address="0xtrader", username="trader_0xtrader")
        follower = User(sui_address="0xfollower", username="trader_0xfollower")
        pair = TradingPair(symbol="BTC/USDC", base_asset="BTC", quote_asset="USDC")
        s.add_all([trader, follower, pair])
        await s.flush()
        s.add(Position(
            user_id=trader.id,
            trading_pair_id=pair.id,
            position_type="LONG",
            entry_price=95_000_000_000,
            quantity=100_000,
            leverage=5,
            margin=1_900_000_000,
            status="OPEN",
            on_chain_position_id="0xabc",
            tx_hash="0xopen",
        ))
        s.add(CopyRelation(trader_id=trader.id, follower_id=follower.id, copy_ratio=0.5))
        await s.commit()
    return {"trader_id": trader.id, "follower_id": follower.id, "pair_id": pair.id}


def make_event(event_type: EventType, payload: dict, tx: str = "0xtx1") -> EventRecord:
    return EventRecord(event_type=event_type, tx_digest=tx, payload=payload, timestamp="2023-11-14T22:13:20Z")
