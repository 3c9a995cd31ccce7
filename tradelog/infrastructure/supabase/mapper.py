from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from tradelog.core.models import TradeAction, TradeRecord, isoformat_z

def _decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))

def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None

class SupabaseMapper:
    """
    Converts TradeRecord objects to rows of the trades table and back.
    Column names must match migrations/001_create_trades.sql.
    """

    @staticmethod
    def trade_to_row(trade: TradeRecord) -> Dict[str, Any]:
        # numeric columns are sent as strings so Postgres parses them exactly
        return {
            "symbol": trade.symbol,
            "action": trade.action.value,
            "price": str(trade.price),
            "quantity": _str_or_none(trade.quantity),
            "profit_loss": _str_or_none(trade.profit_loss),
            "timestamp": isoformat_z(trade.timestamp),
            "telegram_message_id": trade.external_message_id,
            "raw_message": trade.raw_message,
            "user_id": trade.owner_id,
        }

    @staticmethod
    def row_to_trade(row: Dict[str, Any]) -> TradeRecord:
        timestamp = str(row["timestamp"]).replace("Z", "+00:00")
        return TradeRecord(
            symbol=row["symbol"],
            action=TradeAction(row["action"]),
            price=Decimal(str(row["price"])),
            quantity=_decimal_or_none(row.get("quantity")),
            profit_loss=_decimal_or_none(row.get("profit_loss")),
            timestamp=datetime.fromisoformat(timestamp),
            external_message_id=int(row["telegram_message_id"]),
            raw_message=row.get("raw_message") or "",
            owner_id=row.get("user_id"),
        )
