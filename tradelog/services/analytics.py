from decimal import Decimal
from typing import Dict, List
from tradelog.core.models import TradeRecord

class AnalyticsService:
    @staticmethod
    def calculate_stats(trades: List[TradeRecord]) -> Dict:
        """
        Calculate trading performance statistics from stored trades.
        Only trades carrying profit_loss count towards P/L and win rate;
        total_trades counts everything.
        """
        pls = [
            t.profit_loss
            for t in sorted(trades, key=lambda t: t.timestamp)
            if t.profit_loss is not None
        ]

        if not pls:
            return {
                "total_trades": len(trades),
                "trades_with_pl": 0,
                "total_pl": Decimal("0"),
                "wins": 0,
                "losses": 0,
                "win_rate": 0.0,
                "max_consecutive_loss": 0,
                "max_drawdown": Decimal("0"),
            }

        count = len(pls)
        total_pl = sum(pls, Decimal("0"))

        # Win Rate: P/L > 0 is a win, break-even is neither
        wins = sum(1 for pl in pls if pl > 0)
        losses = sum(1 for pl in pls if pl < 0)
        win_rate = round(wins / count * 100, 1)

        max_loss_streak = 0
        current_loss_streak = 0
        for pl in pls:
            if pl < 0:
                current_loss_streak += 1
            else:
                max_loss_streak = max(max_loss_streak, current_loss_streak)
                current_loss_streak = 0
        max_loss_streak = max(max_loss_streak, current_loss_streak)

        # Drawdown is the decline from a historical peak in cumulative P/L
        peak = Decimal("0")
        max_dd = Decimal("0")
        for point in AnalyticsService._running_totals(pls):
            if point > peak:
                peak = point
            max_dd = max(max_dd, peak - point)

        return {
            "total_trades": len(trades),
            "trades_with_pl": count,
            "total_pl": total_pl,
            "wins": wins,
            "losses": losses,
            "win_rate": win_rate,
            "max_consecutive_loss": max_loss_streak,
            "max_drawdown": -max_dd,  # negative for display
        }

    @staticmethod
    def _running_totals(pls: List[Decimal]) -> List[Decimal]:
        totals = []
        current = Decimal("0")
        for pl in pls:
            current += pl
            totals.append(current)
        return totals

    @staticmethod
    def cumulative_pnl(trades: List[TradeRecord]) -> List[Dict]:
        """Chronological running P/L, one point per trade with P/L (performance chart)."""
        ordered = sorted(
            (t for t in trades if t.profit_loss is not None),
            key=lambda t: t.timestamp,
        )
        totals = AnalyticsService._running_totals([t.profit_loss for t in ordered])
        return [
            {"timestamp": t.timestamp_iso, "symbol": t.symbol, "value": total}
            for t, total in zip(ordered, totals)
        ]
