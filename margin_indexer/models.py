from datetime import datetime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, BigInteger, Integer, Float, Boolean, UniqueConstraint, Index, Text, ForeignKey
from sqlalchemy import DateTime, func

# all money columns hold integer base units (6 implied decimals)

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"
STATUS_LIQUIDATED = "LIQUIDATED"

TRADE_OPEN = "OPEN"
TRADE_CLOSE = "CLOSE"
TRADE_LIQUIDATION = "LIQUIDATION"

NOTIFY_POSITION_CLOSED = "POSITION_CLOSED"
NOTIFY_POSITION_LIQUIDATED = "POSITION_LIQUIDATED"
NOTIFY_COPY_TRADE_EXECUTED = "COPY_TRADE_EXECUTED"

class Base(DeclarativeBase):
    pass

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True)
    sui_address: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(160), unique=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class TradingPair(Base):
    __tablename__ = "trading_pairs"
    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    base_asset: Mapped[str] = mapped_column(String(16))
    quote_asset: Mapped[str] = mapped_column(String(16))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    min_quantity: Mapped[int] = mapped_column(BigInteger, default=1_000)  # 0.001
    max_leverage: Mapped[int] = mapped_column(Integer, default=100)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class Position(Base):
    __tablename__ = "positions"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    trading_pair_id: Mapped[int] = mapped_column(ForeignKey("trading_pairs.id"))
    position_type: Mapped[str] = mapped_column(String(8))  # LONG/SHORT
    entry_price: Mapped[int] = mapped_column(BigInteger)
    current_price: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger)
    leverage: Mapped[int] = mapped_column(Integer)
    margin: Mapped[int] = mapped_column(BigInteger)
    realized_pnl: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=STATUS_OPEN)
    is_copy_trade: Mapped[bool] = mapped_column(Boolean, default=False)
    original_position_id: Mapped[int | None] = mapped_column(ForeignKey("positions.id"), nullable=True)
    on_chain_position_id: Mapped[str] = mapped_column(String(128), unique=True)
    tx_hash: Mapped[str] = mapped_column(String(128), default="")
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_positions_user_status", "user_id", "status"),
    )

class Trade(Base):
    __tablename__ = "trades"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    position_id: Mapped[int] = mapped_column(ForeignKey("positions.id", ondelete="CASCADE"), index=True)
    trading_pair_id: Mapped[int] = mapped_column(ForeignKey("trading_pairs.id"))
    trade_type: Mapped[str] = mapped_column(String(16))  # OPEN/CLOSE/LIQUIDATION
    side: Mapped[str] = mapped_column(String(8))
    price: Mapped[int] = mapped_column(BigInteger)
    quantity: Mapped[int] = mapped_column(BigInteger)
    value: Mapped[int] = mapped_column(BigInteger)
    fee: Mapped[int] = mapped_column(BigInteger, default=0)
    pnl: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    tx_hash: Mapped[str] = mapped_column(String(128), index=True)
    event_key: Mapped[str] = mapped_column(String(320), unique=True)  # one row per triggering event
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class CopyRelation(Base):
    __tablename__ = "copy_relations"
    id: Mapped[int] = mapped_column(primary_key=True)
    trader_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    follower_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    copy_ratio: Mapped[float] = mapped_column(Float, default=1.0)  # <= 1.0
    max_position_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("trader_id", "follower_id", name="uq_copy_relation_pair"),)

class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    type: Mapped[str] = mapped_column(String(32))
    title: Mapped[str] = mapped_column(String(128))
    message: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    event_key: Mapped[str] = mapped_column(String(320), unique=True)  # one row per triggering event
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)
