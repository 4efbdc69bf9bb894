from __future__ import annotations

import math
from datetime import date, datetime, timedelta

import pytest

from cfd_journal.domain.metrics import MetricsCalculator, closed_only
from cfd_journal.domain.models import (
    AccountInfo,
    CommissionRates,
    FeeBreakdown,
    PositionSnapshot,
    PositionStatus,
    TradeType,
)

T0 = datetime(2025, 1, 6, 14, 0, 0)  # Monday


def _snap(pnl, closed_at=None, symbol="AAPL", open_at=None, fees=0.0, status=None,
          quantity=10.0, price=100.0, realized=None, unrealized=0.0):
    status = status or (PositionStatus.CLOSED if closed_at else PositionStatus.OPEN)
    return PositionSnapshot(
        position_id=f"{symbol}-{pnl}-{closed_at}",
        account_id="acct-1",
        symbol=symbol,
        status=status,
        open_at=open_at or (closed_at or T0) - timedelta(hours=1),
        closed_at=closed_at,
        trade_type=TradeType.LONG,
        net_quantity=0.0 if closed_at else quantity,
        original_quantity=quantity,
        closed_quantity=quantity if closed_at else 0.0,
        open_price=price,
        close_price=None,
        is_partially_closed=False,
        realized_pnl=pnl if realized is None else realized,
        unrealized_pnl=unrealized,
        pnl=pnl,
        fees=FeeBreakdown(total=fees),
    )


def _sequence(pnls, start=T0):
    return [_snap(p, closed_at=start + timedelta(days=i)) for i, p in enumerate(pnls)]


def test_drawdown_and_summary_over_closed_sequence():
    # Closed P&L +50, -250, +640, -200, +150 in order
    # cumulative 50, -200, 440, 240, 390; peak 50, 50, 440, 440, 440
    snapshots = _sequence([50, -250, 640, -200, 150])
    stats = MetricsCalculator.performance_metrics(snapshots)

    assert stats["max_drawdown"] == pytest.approx(250.0)
    assert stats["total_trades"] == 5
    assert stats["winning_trades"] == 3
    assert stats["losing_trades"] == 2
    assert stats["win_rate"] == pytest.approx(60.0)
    assert stats["total_pnl"] == pytest.approx(390.0)
    assert stats["average_win"] == pytest.approx(280.0)
    assert stats["average_loss"] == pytest.approx(225.0)
    assert stats["profit_factor"] == pytest.approx(840.0 / 450.0)
    assert stats["largest_win"] == 640
    assert stats["largest_loss"] == -250
    assert stats["expectancy"] == pytest.approx(0.6 * 280.0 - 0.4 * 225.0)
    assert stats["average_trade"] == pytest.approx(78.0)


def test_equity_curve_columns_and_peak_floor():
    curve = MetricsCalculator.equity_curve(_sequence([-100, 40]))

    assert list(curve.columns) == ["closed_at", "symbol", "pnl", "cumulative_pnl", "peak", "drawdown"]
    # Peak never drops below the zero starting equity
    assert curve["peak"].tolist() == [0.0, 0.0]
    assert curve["drawdown"].tolist() == pytest.approx([100.0, 60.0])


def test_equity_curve_orders_by_close_time():
    snapshots = list(reversed(_sequence([10, 20, 30])))
    curve = MetricsCalculator.equity_curve(snapshots)
    assert curve["cumulative_pnl"].tolist() == pytest.approx([10.0, 30.0, 60.0])


def test_profit_factor_edge_cases():
    assert math.isinf(MetricsCalculator.performance_metrics(_sequence([10, 5]))["profit_factor"])
    assert MetricsCalculator.performance_metrics(_sequence([-10]))["profit_factor"] == 0.0

    empty = MetricsCalculator.performance_metrics([])
    assert empty["total_trades"] == 0
    assert empty["win_rate"] == 0.0
    assert empty["max_drawdown"] == 0.0
    assert empty["profit_factor"] == 0.0


def test_open_positions_are_excluded_from_performance():
    snapshots = _sequence([100]) + [_snap(-500)]
    assert closed_only(snapshots) == snapshots[:1]
    assert MetricsCalculator.performance_metrics(snapshots)["total_pnl"] == pytest.approx(100.0)


def test_daily_metrics_uses_report_timezone():
    # 03:00 UTC on the 7th is still the 6th in New York
    late = _snap(30, closed_at=datetime(2025, 1, 7, 3, 0), fees=1.5)
    midday = _snap(-10, closed_at=datetime(2025, 1, 6, 15, 0), fees=0.5)

    ny = MetricsCalculator.daily_metrics([late, midday], date(2025, 1, 6), "America/New_York")
    assert ny["trade_count"] == 2
    assert ny["pnl"] == pytest.approx(20.0)
    assert ny["win_count"] == 1
    assert ny["loss_count"] == 1
    assert ny["win_rate"] == pytest.approx(50.0)
    assert ny["fees"] == pytest.approx(2.0)
    assert ny["volume"] == pytest.approx(2000.0)

    utc = MetricsCalculator.daily_metrics([late, midday], date(2025, 1, 6), "UTC")
    assert utc["trade_count"] == 1


def test_calendar_grid_has_one_cell_per_day():
    snapshots = [
        _snap(25, closed_at=datetime(2025, 2, 3, 15, 0)),
        _snap(-5, closed_at=datetime(2025, 2, 3, 18, 0)),
        _snap(40, closed_at=datetime(2025, 2, 28, 15, 0)),
    ]
    grid = MetricsCalculator.calendar_grid(snapshots, 2025, 2, "UTC")

    assert len(grid) == 28
    assert grid[2]["date"] == "2025-02-03"
    assert grid[2]["pnl"] == pytest.approx(20.0)
    assert grid[2]["trade_count"] == 2
    assert grid[27]["pnl"] == pytest.approx(40.0)
    assert grid[0] is None


def test_year_summary_has_twelve_months():
    snapshots = [
        _snap(25, closed_at=datetime(2025, 2, 3, 15, 0)),
        _snap(-5, closed_at=datetime(2025, 2, 4, 15, 0)),
        _snap(99, closed_at=datetime(2024, 12, 4, 15, 0)),
    ]
    df = MetricsCalculator.year_summary(snapshots, 2025, "UTC")

    assert len(df) == 12
    feb = df[df["month"] == 2].iloc[0]
    assert feb["pnl"] == pytest.approx(20.0)
    assert feb["trade_count"] == 2
    assert feb["win_rate"] == pytest.approx(50.0)
    assert df["trade_count"].sum() == 2


def test_time_based_metrics_buckets_by_close_hour_and_weekday():
    snapshots = [
        _snap(10, closed_at=datetime(2025, 1, 5, 14, 30)),  # Sunday
        _snap(-4, closed_at=datetime(2025, 1, 6, 14, 10)),  # Monday
        _snap(6, closed_at=datetime(2025, 1, 6, 9, 0)),     # Monday
    ]
    result = MetricsCalculator.time_based_metrics(snapshots, "UTC")
    hourly, weekday = result["hourly"], result["weekday"]

    assert len(hourly) == 24
    assert hourly.loc[14, "pnl"] == pytest.approx(6.0)
    assert hourly.loc[14, "trade_count"] == 2
    assert hourly.loc[9, "trade_count"] == 1

    assert weekday["day"].tolist()[0] == "Sunday"
    assert weekday.loc[0, "trade_count"] == 1
    assert weekday.loc[1, "trade_count"] == 2
    assert weekday.loc[1, "win_rate"] == pytest.approx(50.0)


def test_monthly_series_fills_gaps_and_extends_to_now():
    snapshots = [
        _snap(10, closed_at=datetime(2025, 1, 20), open_at=datetime(2025, 1, 10)),
        _snap(-3, closed_at=datetime(2025, 3, 2), open_at=datetime(2025, 2, 25)),
        _snap(0, status=PositionStatus.OPEN, open_at=datetime(2025, 3, 5)),
    ]
    df = MetricsCalculator.monthly_pnl_series(snapshots, "UTC", now=datetime(2025, 5, 1))

    assert df["month"].tolist() == ["2025-01", "2025-02", "2025-03", "2025-04", "2025-05"]
    assert df["label"].tolist()[0] == "Jan 2025"
    assert df["pnl"].tolist() == pytest.approx([10.0, 0.0, -3.0, 0.0, 0.0])
    assert df["trade_count"].tolist() == [1, 0, 1, 0, 0]
    assert MetricsCalculator.monthly_pnl_series([]).empty


def test_symbol_distribution_sorted_by_trade_count():
    snapshots = [
        _snap(5, closed_at=T0, symbol="TSLA"),
        _snap(-2, closed_at=T0 + timedelta(days=1), symbol="AAPL"),
        _snap(7, closed_at=T0 + timedelta(days=2), symbol="AAPL"),
    ]
    df = MetricsCalculator.symbol_distribution(snapshots)

    assert df["symbol"].tolist() == ["AAPL", "TSLA"]
    assert df["trade_count"].tolist() == [2, 1]
    assert df["pnl"].tolist() == pytest.approx([5.0, 5.0])
    assert df["win_rate"].tolist() == pytest.approx([50.0, 100.0])


def test_portfolio_overview_counts_partial_realized_pnl():
    accounts = [
        AccountInfo(id="a", name="Main", starting_balance=10000.0, rates=CommissionRates(0.25, 7.0)),
        AccountInfo(id="b", name="Side", starting_balance=500.0, rates=CommissionRates(0.25, 7.0)),
    ]
    snapshots = _sequence([100, -40]) + [
        _snap(35, status=PositionStatus.OPEN, realized=20.0, unrealized=15.0)
    ]
    overview = MetricsCalculator.portfolio_overview(accounts, snapshots)

    assert overview["starting_balance"] == pytest.approx(10500.0)
    assert overview["realized_pnl"] == pytest.approx(80.0)
    assert overview["unrealized_pnl"] == pytest.approx(15.0)
    assert overview["current_equity"] == pytest.approx(10595.0)
    assert overview["open_positions"] == 1
    assert overview["closed_positions"] == 2
    assert overview["win_rate"] == pytest.approx(50.0)
