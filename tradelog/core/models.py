from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

class TradeAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    LONG = "LONG"
    SHORT = "SHORT"
    CLOSE = "CLOSE"
    CLOSE_WIN = "CLOSE_WIN"
    CLOSE_LOSS = "CLOSE_LOSS"

    @property
    def is_close(self) -> bool:
        return self in (TradeAction.CLOSE, TradeAction.CLOSE_WIN, TradeAction.CLOSE_LOSS)


def from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix, e.g. 2023-11-14T22:13:20.000Z"""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class RawMessage:
    """
    One chat message as delivered by Telegram.
    Lives only for the duration of a sync run.
    """
    external_id: int          # Telegram message_id
    text: Optional[str]
    posted_at: int            # epoch seconds
    chat_id: Optional[int] = None


@dataclass(frozen=True)
class TradeRecord:
    """
    A closed (or opened) position extracted from a chat message.
    Created by the parser; after persistence only owner_id may be filled in.
    """
    symbol: str
    action: TradeAction
    price: Decimal
    timestamp: datetime       # UTC
    external_message_id: int  # unique key, the only dedup anchor
    raw_message: str = ""

    quantity: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    owner_id: Optional[str] = None

    def __post_init__(self):
        if not self.symbol:
            raise ValueError("symbol must not be empty")
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")
        if self.quantity is not None and self.quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {self.quantity}")
        if self.profit_loss is not None and not self.action.is_close:
            raise ValueError(f"{self.action.value} trades cannot carry profit/loss")

    def with_owner(self, owner_id: str) -> "TradeRecord":
        return replace(self, owner_id=owner_id)

    def is_profit(self) -> bool:
        return self.profit_loss is not None and self.profit_loss > 0

    @property
    def timestamp_iso(self) -> str:
        return isoformat_z(self.timestamp)


@dataclass
class SyncSummary:
    """Result of one ingestion run, returned to the dashboard."""
    success: bool
    trades_found: int = 0
    message: str = ""
    error: Optional[str] = None

    # diagnostics, not part of the wire contract
    mode: Optional[str] = None
    fetched: int = 0
    parsed: int = 0
    cursor: Optional[int] = None
    timed_out: bool = False
    inserted: list = field(default_factory=list, repr=False)

    @classmethod
    def failure(cls, error: str) -> "SyncSummary":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error or "Unknown error"}
        return {
            "success": True,
            "tradesFound": self.trades_found,
            "message": self.message,
        }
