from dataclasses import dataclass, field
from enum import Enum
from pydantic import BaseModel, NonNegativeInt, field_validator

class EventType(str, Enum):
    # drained in this order every cycle
    POSITION_OPENED = "PositionOpened"
    POSITION_CLOSED = "PositionClosed"
    COPY_TRADE_EXECUTED = "CopyTradeExecuted"
    LIQUIDATION = "Liquidation"
    BATCH_COPY_TRADE_EXECUTED = "BatchCopyTradeExecuted"
    FLASH_LIQUIDATION = "FlashLiquidation"

@dataclass
class EventRecord:
    event_type: EventType
    tx_digest: str
    payload: dict
    timestamp: str | None = None
    cursor: str | None = None

@dataclass
class EventPage:
    events: list[EventRecord] = field(default_factory=list)
    has_next_page: bool = False
    next_cursor: str | None = None

# ---- Move event payloads (amounts in base units, timestamps in ms) ----

class PositionOpened(BaseModel):
    position_id: str
    owner: str
    trading_pair: list[int]
    position_type: int
    entry_price: NonNegativeInt
    quantity: NonNegativeInt
    leverage: NonNegativeInt
    margin: NonNegativeInt
    timestamp: NonNegativeInt

    @field_validator("trading_pair")
    @classmethod
    def _printable_ascii(cls, v):
        if not v or any(b < 0x20 or b > 0x7E for b in v):
            raise ValueError("trading pair must be non-empty printable ASCII")
        return v

    @property
    def symbol(self) -> str:
        return bytes(self.trading_pair).decode("ascii")

    @property
    def side(self) -> str:
        return "LONG" if self.position_type == 0 else "SHORT"

class PositionClosed(BaseModel):
    position_id: str
    owner: str = ""
    close_price: NonNegativeInt
    pnl: NonNegativeInt
    is_profit: bool
    timestamp: NonNegativeInt

    @property
    def signed_pnl(self) -> int:
        return self.pnl if self.is_profit else -self.pnl

class CopyTradeExecuted(BaseModel):
    original_position_id: str
    follower_position_id: str
    trader: str
    follower: str
    copy_ratio: NonNegativeInt  # basis points
    timestamp: NonNegativeInt

class Liquidation(BaseModel):
    position_id: str
    owner: str = ""
    liquidation_price: NonNegativeInt
    loss: NonNegativeInt
    timestamp: NonNegativeInt

class BatchCopyTradeExecuted(BaseModel):
    original_position_id: str
    trader: str
    follower_count: NonNegativeInt
    timestamp: NonNegativeInt

class FlashLiquidation(BaseModel):
    position_id: str
    liquidator: str = ""
    borrowed_amount: NonNegativeInt = 0
    liquidator_reward: NonNegativeInt
    timestamp: NonNegativeInt
