"""
Trade History

Append-only log of closed trades with the reporting queries used by the
status endpoints.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from tradesim.domain.models.position import CloseReason
from tradesim.domain.models.trade_record import TradeHistoryRecord


class TradeHistory:
    """
    Closed-trade records in insertion order.

    Records are frozen models; the log itself only ever grows.
    """

    def __init__(self):
        self._records: List[TradeHistoryRecord] = []

    def append(self, record: TradeHistoryRecord) -> None:
        self._records.append(record)

    def recent(self, n: int) -> List[TradeHistoryRecord]:
        """Last n records, oldest first."""
        if n <= 0:
            return []
        return self._records[-n:]

    def within(
        self,
        window: timedelta,
        now: Optional[datetime] = None
    ) -> List[TradeHistoryRecord]:
        """Records whose closed_at falls within [now - window, now]."""
        now = now or datetime.now(timezone.utc)
        start = now - window
        return [record for record in self._records if start <= record.closed_at <= now]

    def all(self) -> List[TradeHistoryRecord]:
        return list(self._records)

    def count(self, position_id: str) -> int:
        """How many records carry the given id."""
        return sum(1 for record in self._records if record.id == position_id)

    def __len__(self) -> int:
        return len(self._records)


def summarize(records: Iterable[TradeHistoryRecord]) -> Dict[str, Any]:
    """
    Reporting summary for a set of closed trades.

    Returns:
        Dict with totals, win/loss counts and a per-reason breakdown:
        {
            "total_trades": 3,
            "winning_trades": 2,
            "losing_trades": 1,
            "win_rate": 66.67,
            "total_realized_pnl": Decimal("12.5"),
            "total_fees": Decimal("3.1"),
            "by_reason": {"take_profit": 2, "stop_loss": 1, ...}
        }
    """
    records = list(records)

    total_pnl = Decimal("0")
    total_fees = Decimal("0")
    wins = 0
    losses = 0
    by_reason = {reason.value: 0 for reason in CloseReason}

    for record in records:
        total_pnl += record.realized_pnl
        total_fees += record.fees
        if record.realized_pnl > 0:
            wins += 1
        elif record.realized_pnl < 0:
            losses += 1
        by_reason[record.close_reason.value] += 1

    win_rate = round(wins / len(records) * 100, 2) if records else 0.0

    return {
        "total_trades": len(records),
        "winning_trades": wins,
        "losing_trades": losses,
        "win_rate": win_rate,
        "total_realized_pnl": total_pnl,
        "total_fees": total_fees,
        "by_reason": by_reason,
    }
