"""
Trade History Tests

Append-only log queries and the reporting summary.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError

from tradesim.domain.models.position import CloseReason, PositionSide
from tradesim.domain.models.trade_record import TradeHistoryRecord
from tradesim.domain.services.trade_history import summarize
from conftest import NOW


def make_record(record_id, pnl="10", fees="1", reason=CloseReason.MANUAL, closed_at=NOW):
    return TradeHistoryRecord(
        id=record_id,
        symbol="BTC",
        side=PositionSide.LONG,
        quantity=Decimal("0.1"),
        entry_price=Decimal("40000"),
        close_price=Decimal("40100"),
        realized_pnl=Decimal(pnl),
        fees=Decimal(fees),
        closed_at=closed_at,
        close_reason=reason,
    )


def test_recent_returns_last_n_in_order(history):
    for i in range(5):
        history.append(make_record(f"trade_{i}"))

    assert [r.id for r in history.recent(3)] == ["trade_2", "trade_3", "trade_4"]
    assert history.recent(0) == []
    assert len(history.recent(50)) == 5


def test_append_does_not_deduplicate(history):
    history.append(make_record("trade_x"))
    history.append(make_record("trade_x"))

    assert history.count("trade_x") == 2
    assert len(history) == 2


def test_within_window_is_inclusive(history):
    history.append(make_record("old", closed_at=NOW - timedelta(hours=3)))
    history.append(make_record("edge", closed_at=NOW - timedelta(hours=2)))
    history.append(make_record("fresh", closed_at=NOW - timedelta(minutes=1)))
    history.append(make_record("future", closed_at=NOW + timedelta(minutes=1)))

    ids = [r.id for r in history.within(timedelta(hours=2), NOW)]

    assert ids == ["edge", "fresh"]


def test_records_are_frozen():
    record = make_record("trade_a")

    with pytest.raises(PydanticValidationError):
        record.realized_pnl = Decimal("0")

    assert record.realized_pnl == Decimal("10")


def test_summarize():
    records = [
        make_record("a", pnl="395.6", fees="4.4", reason=CloseReason.TAKE_PROFIT),
        make_record("b", pnl="-61.06", fees="1.06", reason=CloseReason.STOP_LOSS),
        make_record("c", pnl="5", fees="1", reason=CloseReason.ML_SIGNAL),
    ]

    summary = summarize(records)

    assert summary["total_trades"] == 3
    assert summary["winning_trades"] == 2
    assert summary["losing_trades"] == 1
    assert summary["win_rate"] == 66.67
    assert summary["total_realized_pnl"] == Decimal("339.54")
    assert summary["total_fees"] == Decimal("6.46")
    assert summary["by_reason"]["take_profit"] == 1
    assert summary["by_reason"]["max_duration"] == 0


def test_summarize_empty():
    summary = summarize([])

    assert summary["total_trades"] == 0
    assert summary["win_rate"] == 0.0
