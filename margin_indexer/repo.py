from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from .models import User, TradingPair, Position, Trade, CopyRelation, Notification
from .models import STATUS_OPEN

# Writes here never commit: the dispatcher commits once per applied event.

def _insert(db, model):
    if db.bind.dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)

async def get_user_by_address(db, address: str):
    stmt = select(User).where(User.sui_address == address, User.deleted_at.is_(None))
    return (await db.execute(stmt)).scalar_one_or_none()

async def upsert_user(db, address: str):
    stmt = _insert(db, User).values(
        sui_address=address,
        username=f"trader_{address}",  # sui_address is unique, so this is too
    ).on_conflict_do_nothing(index_elements=[User.sui_address])
    await db.execute(stmt)
    # tombstoned users keep their row; the indexer never revives or removes them
    return (await db.execute(select(User).where(User.sui_address == address))).scalar_one()

async def upsert_trading_pair(db, symbol: str):
    base, _, quote = symbol.partition("/")
    stmt = _insert(db, TradingPair).values(
        symbol=symbol,
        base_asset=base or "BTC",
        quote_asset=quote or "USDC",
        is_active=True,
    ).on_conflict_do_nothing(index_elements=[TradingPair.symbol])
    await db.execute(stmt)
    return (await db.execute(select(TradingPair).where(TradingPair.symbol == symbol))).scalar_one()

async def get_position_by_chain_id(db, on_chain_id: str):
    stmt = select(Position).where(Position.on_chain_position_id == on_chain_id)
    return (await db.execute(stmt)).scalar_one_or_none()

async def get_trading_pair(db, pair_id: int):
    return await db.get(TradingPair, pair_id)

async def create_position(db, data: dict) -> bool:
    """Insert a position keyed by its on-chain id. Returns False if it already existed."""
    stmt = _insert(db, Position).values(**data).on_conflict_do_nothing(
        index_elements=[Position.on_chain_position_id]
    )
    res = await db.execute(stmt)
    return res.rowcount == 1

async def set_position_terminal(db, position: Position, status: str, closed_at, **fields) -> bool:
    # OPEN is the only state that may be left
    if position.status != STATUS_OPEN:
        return False
    position.status = status
    position.closed_at = closed_at
    for k, v in fields.items():
        setattr(position, k, v)
    await db.flush()
    return True

async def fill_unset(db, position: Position, **fields):
    # only columns still NULL; values written by earlier events stay
    for k, v in fields.items():
        if getattr(position, k) is None:
            setattr(position, k, v)
    await db.flush()

async def insert_trade(db, data: dict) -> bool:
    stmt = _insert(db, Trade).values(**data).on_conflict_do_nothing(
        index_elements=[Trade.event_key]
    )
    res = await db.execute(stmt)
    return res.rowcount == 1

async def create_notification(db, user_id: int, type_: str, title: str, message: str, event_key: str) -> bool:
    stmt = _insert(db, Notification).values(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        is_read=False,
        event_key=event_key,
    ).on_conflict_do_nothing(index_elements=[Notification.event_key])
    res = await db.execute(stmt)
    return res.rowcount == 1

async def list_active_followers(db, trader_address: str):
    trader = await get_user_by_address(db, trader_address)
    if trader is None:
        return []
    stmt = select(CopyRelation).where(CopyRelation.trader_id == trader.id, CopyRelation.is_active == True)
    return (await db.execute(stmt)).scalars().all()
