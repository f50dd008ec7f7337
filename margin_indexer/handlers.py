"""Event handlers: one per ledger event type.

Every handler is ``async (db, event) -> None`` and must be safe to run again
for an event that was already applied. Redelivery is detected through the
on-chain position id, the terminal position status, and the unique keys on
trades and notifications. A payload that fails validation, or an event whose
referent is not in the store yet, is logged and skipped; anything else
raises and the dispatcher rolls back the event.
"""
import logging
from datetime import datetime, timezone
from pydantic import ValidationError
from . import repo
from .events import (
    EventType, EventRecord,
    PositionOpened, PositionClosed, CopyTradeExecuted, Liquidation,
    BatchCopyTradeExecuted, FlashLiquidation,
)
from .models import (
    STATUS_OPEN, STATUS_CLOSED, STATUS_LIQUIDATED,
    TRADE_CLOSE, TRADE_LIQUIDATION,
    NOTIFY_POSITION_CLOSED, NOTIFY_POSITION_LIQUIDATED, NOTIFY_COPY_TRADE_EXECUTED,
)
from .units import BASIS_POINTS, scale_by_basis_points, notional, fmt_usd

logger = logging.getLogger(__name__)

def _decode(model, event: EventRecord):
    try:
        return model.model_validate(event.payload)
    except ValidationError as e:
        logger.warning("Malformed %s payload in tx %s, skipping: %s", event.event_type.value, event.tx_digest, e)
        return None

def _ms_to_dt(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)

def _event_key(event: EventRecord, subject: str) -> str:
    return f"{event.event_type.value}:{event.tx_digest}:{subject}"

def _percent(bps: int) -> int:
    # half up, like the dashboard's toFixed(0)
    return (bps * 100 + BASIS_POINTS // 2) // BASIS_POINTS

async def handle_position_opened(db, event: EventRecord):
    data = _decode(PositionOpened, event)
    if data is None:
        return
    logger.info("Processing PositionOpened %s owner=%s", data.position_id, data.owner)

    user = await repo.upsert_user(db, data.owner)
    pair = await repo.upsert_trading_pair(db, data.symbol)
    created = await repo.create_position(db, {
        "user_id": user.id,
        "trading_pair_id": pair.id,
        "position_type": data.side,
        "entry_price": data.entry_price,
        "quantity": data.quantity,
        "leverage": data.leverage,
        "margin": data.margin,
        "status": STATUS_OPEN,
        "is_copy_trade": False,
        "on_chain_position_id": data.position_id,
        "tx_hash": event.tx_digest,
        "opened_at": _ms_to_dt(data.timestamp),
    })
    if not created:
        logger.info("Position %s already indexed", data.position_id)
        return

    # copies arrive as CopyTradeExecuted events; this lookup is informational
    followers = await repo.list_active_followers(db, data.owner)
    logger.info("Position %s opened, %d active copy relations", data.position_id, len(followers))

async def handle_position_closed(db, event: EventRecord):
    data = _decode(PositionClosed, event)
    if data is None:
        return
    position = await repo.get_position_by_chain_id(db, data.position_id)
    if position is None:
        logger.warning("Position %s not found for PositionClosed", data.position_id)
        return
    pnl = data.signed_pnl
    changed = await repo.set_position_terminal(
        db, position, STATUS_CLOSED, _ms_to_dt(data.timestamp),
        current_price=data.close_price,
        realized_pnl=pnl,
    )
    if not changed:
        logger.info("Position %s already %s, ignoring PositionClosed", data.position_id, position.status)
        return

    await repo.insert_trade(db, {
        "user_id": position.user_id,
        "position_id": position.id,
        "trading_pair_id": position.trading_pair_id,
        "trade_type": TRADE_CLOSE,
        "side": position.position_type,
        "price": data.close_price,
        "quantity": position.quantity,
        "value": notional(position.quantity, data.close_price),
        "fee": 0,
        "pnl": pnl,
        "tx_hash": event.tx_digest,
        "event_key": _event_key(event, data.position_id),
    })
    outcome = "profit" if data.is_profit else "loss"
    await repo.create_notification(
        db, position.user_id, NOTIFY_POSITION_CLOSED, "Position Closed",
        f"Your {position.position_type} position closed with {outcome}: {'-' if pnl < 0 else '+'}{fmt_usd(pnl)}",
        _event_key(event, data.position_id),
    )
    logger.info("Position %s closed, pnl=%d", data.position_id, pnl)

async def handle_copy_trade_executed(db, event: EventRecord):
    data = _decode(CopyTradeExecuted, event)
    if data is None:
        return
    if not 0 < data.copy_ratio <= BASIS_POINTS:
        logger.warning("Copy ratio %d bp out of range in tx %s, skipping", data.copy_ratio, event.tx_digest)
        return
    original = await repo.get_position_by_chain_id(db, data.original_position_id)
    if original is None:
        logger.warning("Original position %s not found for CopyTradeExecuted", data.original_position_id)
        return
    follower = await repo.get_user_by_address(db, data.follower)
    if follower is None:
        logger.warning("Follower %s not found for CopyTradeExecuted", data.follower)
        return

    created = await repo.create_position(db, {
        "user_id": follower.id,
        "trading_pair_id": original.trading_pair_id,
        "position_type": original.position_type,
        "entry_price": original.entry_price,
        "quantity": scale_by_basis_points(original.quantity, data.copy_ratio),
        "leverage": original.leverage,
        "margin": scale_by_basis_points(original.margin, data.copy_ratio),
        "status": STATUS_OPEN,
        "is_copy_trade": True,
        "original_position_id": original.id,
        "on_chain_position_id": data.follower_position_id,
        "tx_hash": event.tx_digest,
        "opened_at": _ms_to_dt(data.timestamp),
    })
    if not created:
        logger.info("Copy position %s already indexed", data.follower_position_id)
        return

    pair = await repo.get_trading_pair(db, original.trading_pair_id)
    await repo.create_notification(
        db, follower.id, NOTIFY_COPY_TRADE_EXECUTED, "Copy Trade Executed",
        f"Copied {original.position_type} position on {pair.symbol} with {_percent(data.copy_ratio)}% ratio",
        _event_key(event, data.follower_position_id),
    )
    logger.info("Copy position %s created at %d bp", data.follower_position_id, data.copy_ratio)

async def handle_liquidation(db, event: EventRecord):
    data = _decode(Liquidation, event)
    if data is None:
        return
    position = await repo.get_position_by_chain_id(db, data.position_id)
    if position is None:
        logger.warning("Position %s not found for Liquidation", data.position_id)
        return
    if position.status == STATUS_CLOSED:
        logger.info("Position %s already CLOSED, ignoring Liquidation", data.position_id)
        return
    changed = await repo.set_position_terminal(
        db, position, STATUS_LIQUIDATED, _ms_to_dt(data.timestamp),
        current_price=data.liquidation_price,
        realized_pnl=-data.loss,
    )
    if not changed:
        # a FlashLiquidation got here first and left no price or PnL
        await repo.fill_unset(db, position, current_price=data.liquidation_price, realized_pnl=-data.loss)

    inserted = await repo.insert_trade(db, {
        "user_id": position.user_id,
        "position_id": position.id,
        "trading_pair_id": position.trading_pair_id,
        "trade_type": TRADE_LIQUIDATION,
        "side": position.position_type,
        "price": data.liquidation_price,
        "quantity": position.quantity,
        "value": notional(position.quantity, data.liquidation_price),
        "fee": 0,
        "pnl": -data.loss,
        "tx_hash": event.tx_digest,
        "event_key": _event_key(event, data.position_id),
    })
    if not inserted:
        logger.info("Liquidation %s for %s already indexed", event.tx_digest, data.position_id)
        return
    await repo.create_notification(
        db, position.user_id, NOTIFY_POSITION_LIQUIDATED, "Position Liquidated",
        f"Your {position.position_type} position was liquidated at {fmt_usd(data.liquidation_price)}. "
        f"Loss: {fmt_usd(data.loss)}",
        _event_key(event, data.position_id),
    )
    logger.info("Position %s liquidated, loss=%d", data.position_id, data.loss)

async def handle_batch_copy_trade_executed(db, event: EventRecord):
    data = _decode(BatchCopyTradeExecuted, event)
    if data is None:
        return
    trader = await repo.get_user_by_address(db, data.trader)
    if trader is None:
        logger.warning("Trader %s not found for BatchCopyTradeExecuted", data.trader)
        return
    # follower positions come through their own CopyTradeExecuted events
    await repo.create_notification(
        db, trader.id, NOTIFY_COPY_TRADE_EXECUTED, "Batch Copy Trades Executed",
        f"{data.follower_count} followers copied your trade",
        _event_key(event, data.original_position_id),
    )
    logger.info("Batch copy of %s by %d followers", data.original_position_id, data.follower_count)

async def handle_flash_liquidation(db, event: EventRecord):
    data = _decode(FlashLiquidation, event)
    if data is None:
        return
    position = await repo.get_position_by_chain_id(db, data.position_id)
    if position is None:
        logger.warning("Position %s not found for FlashLiquidation", data.position_id)
        return
    if position.status == STATUS_CLOSED:
        logger.info("Position %s already CLOSED, ignoring FlashLiquidation", data.position_id)
        return
    # a plain Liquidation may have got here first
    await repo.set_position_terminal(db, position, STATUS_LIQUIDATED, _ms_to_dt(data.timestamp))

    # no market price on this event, the entry price stands in
    inserted = await repo.insert_trade(db, {
        "user_id": position.user_id,
        "position_id": position.id,
        "trading_pair_id": position.trading_pair_id,
        "trade_type": TRADE_LIQUIDATION,
        "side": position.position_type,
        "price": position.entry_price,
        "quantity": position.quantity,
        "value": notional(position.quantity, position.entry_price),
        "fee": data.liquidator_reward,
        "pnl": -position.margin,
        "tx_hash": event.tx_digest,
        "event_key": _event_key(event, data.position_id),
    })
    if not inserted:
        logger.info("FlashLiquidation %s for %s already indexed", event.tx_digest, data.position_id)
        return
    await repo.create_notification(
        db, position.user_id, NOTIFY_POSITION_LIQUIDATED, "Position Flash Liquidated",
        f"Your {position.position_type} position was flash liquidated. "
        f"Liquidator reward: {fmt_usd(data.liquidator_reward)}",
        _event_key(event, data.position_id),
    )
    logger.info("Position %s flash liquidated by %s", data.position_id, data.liquidator)

HANDLERS = {
    EventType.POSITION_OPENED: handle_position_opened,
    EventType.POSITION_CLOSED: handle_position_closed,
    EventType.COPY_TRADE_EXECUTED: handle_copy_trade_executed,
    EventType.LIQUIDATION: handle_liquidation,
    EventType.BATCH_COPY_TRADE_EXECUTED: handle_batch_copy_trade_executed,
    EventType.FLASH_LIQUIDATION: handle_flash_liquidation,
}

_missing = set(EventType) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"no handler registered for {sorted(t.value for t in _missing)}")
