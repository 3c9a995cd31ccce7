"""Shared fakes for the Telegram source and the Supabase trades table."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pytest

from tradelog.core.exceptions import PersistenceFailure, SourceUnavailable, Unauthorized
from tradelog.core.models import RawMessage, TradeAction, TradeRecord


def close_message(external_id: int, symbol: str = "BTC-USDT", pnl: str = "$-0.0117",
                  posted_at: int = 1700000000) -> RawMessage:
    text = (
        "📉 POSITION STÄNGD\n"
        f"💰 Symbol: {symbol}\n"
        "📉 Ingångspris: $0.800000\n"
        "📉 Utgångspris: $0.673000\n"
        f"📉 PnL: {pnl}"
    )
    return RawMessage(external_id=external_id, text=text, posted_at=posted_at)


def open_message(external_id: int) -> RawMessage:
    return RawMessage(
        external_id=external_id,
        text="🚀 POSITION ÖPPNAD\n💰 Symbol: ETH-USDT\n📈 Ingångspris: $1800.00\nStop Loss: $1750",
        posted_at=1700000000,
    )


def make_trade(external_id: int, pnl: Optional[str] = "1.5", owner_id: Optional[str] = None,
               day: int = 1, symbol: str = "BTC-USDT") -> TradeRecord:
    profit_loss = Decimal(pnl) if pnl is not None else None
    if profit_loss is None:
        action = TradeAction.CLOSE
    else:
        action = TradeAction.CLOSE_WIN if profit_loss > 0 else TradeAction.CLOSE_LOSS
    return TradeRecord(
        symbol=symbol,
        action=action,
        price=Decimal("100"),
        profit_loss=profit_loss,
        timestamp=datetime(2024, 1, day, tzinfo=timezone.utc),
        external_message_id=external_id,
        raw_message="",
        owner_id=owner_id,
    )


class FakeSource:
    def __init__(self, messages: Optional[List[RawMessage]] = None, fail: bool = False):
        self.messages = messages or []
        self.fail = fail
        self.cursors: List[Optional[int]] = []
        self.calls: List[str] = []

    def ensure_pull_mode(self):
        self.calls.append("ensure_pull_mode")

    def fetch_messages(self, cursor=None):
        self.calls.append("fetch_messages")
        self.cursors.append(cursor)
        if self.fail:
            raise SourceUnavailable("Telegram API error: Bad Gateway (Code: 502)")
        if cursor is None:
            return list(self.messages)
        return [m for m in self.messages if m.external_id >= cursor]


class FakeRepository:
    """In-memory trades table with a unique key on the message id."""

    def __init__(self, users: Optional[Dict[str, str]] = None):
        self.users = users if users is not None else {"good-token": "user-1"}
        self.rows: Dict[int, TradeRecord] = {}
        self.orphans: List[TradeRecord] = []
        self.fail_inserts_after: Optional[int] = None
        self.insert_calls = 0

    def add(self, trade: TradeRecord):
        self.rows[trade.external_message_id] = trade

    def authenticate(self, token):
        if token not in self.users:
            raise Unauthorized("Invalid authentication token")
        return self.users[token]

    def adopt_orphans(self, owner_id):
        adopted = 0
        for key, trade in list(self.rows.items()):
            if trade.owner_id is None:
                self.rows[key] = trade.with_owner(owner_id)
                adopted += 1
        return adopted

    def count_for_owner(self, owner_id):
        return sum(1 for t in self.rows.values() if t.owner_id == owner_id)

    def latest_message_id(self, owner_id):
        ids = [k for k, t in self.rows.items() if t.owner_id == owner_id]
        return max(ids) if ids else None

    def existing_message_ids(self, ids: Iterable[int]):
        return {i for i in ids if i in self.rows}

    def insert_ignore(self, trade):
        if self.fail_inserts_after is not None and self.insert_calls >= self.fail_inserts_after:
            raise PersistenceFailure("connection reset")
        self.insert_calls += 1
        if trade.external_message_id in self.rows:
            return False
        self.rows[trade.external_message_id] = trade
        return True


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource([close_message(5), open_message(6), close_message(7, symbol="ETH-USDT")])
