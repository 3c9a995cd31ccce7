from decimal import Decimal
from typing import Any, Dict, List
from tradelog.core.models import TradeRecord

def _signed(value: Decimal, places: int = 2) -> str:
    sign = '+' if value > 0 else ''
    return f"{sign}{value:.{places}f}"

def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0

class ReportFormatter:
    @staticmethod
    def format_stats_report(stats: Dict) -> str:
        """Plain-text summary of AnalyticsService.calculate_stats output."""
        lines = ["📊 Trading Performance"]
        lines.append(f"Total trades: {stats['total_trades']}")
        lines.append(f"Total P/L: ${_signed(stats['total_pl'])}")
        lines.append(f"Win rate: {stats['win_rate']}% ({stats['wins']}W / {stats['losses']}L)")
        lines.append(f"Max consecutive losses: {stats['max_consecutive_loss']}")
        lines.append(f"Max drawdown: ${_signed(stats['max_drawdown'])}")
        return "\n".join(lines)

    @staticmethod
    def format_history(trades: List[TradeRecord], limit: int = 20) -> str:
        """Newest first, one line per trade."""
        if not trades:
            return "No trades yet. Sync with Telegram to import them."

        lines = ["🧾 Trade History"]
        for t in trades[:limit]:
            if t.profit_loss is not None:
                pl_str = f"${_signed(t.profit_loss)}"
            else:
                pl_str = "-"
            when = t.timestamp.strftime("%Y-%m-%d %H:%M")
            lines.append(f"{when} {t.symbol} {t.action.value} @ {t.price:f} {pl_str}")
        if len(trades) > limit:
            lines.append(f"... and {len(trades) - limit} more")
        return "\n".join(lines)

    @staticmethod
    def format_sync_toast(payload: Any) -> str:
        """
        One-line pass/fail text for a /sync response.
        Missing or malformed fields read as zero / empty, never raise.
        """
        if not isinstance(payload, dict):
            payload = {}

        if payload.get("success"):
            message = payload.get("message")
            if isinstance(message, str) and message:
                return f"Sync Complete: {message}"
            return f"Sync Complete: Found {_as_int(payload.get('tradesFound'))} new trades"

        error = payload.get("error")
        if isinstance(error, str) and error:
            return f"Sync Failed: {error}"
        return "Sync Failed: Could not sync with Telegram"

