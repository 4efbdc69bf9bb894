from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from cfd_journal.domain.models import CommissionRates, PositionStatus, Side, TradeType
from cfd_journal.errors import (
    DependencyError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)


def test_long_round_trip_same_day(lifecycle, clock, test_account):
    # Buy 10 @ 150, sell all @ 155 two hours later, 0.25% commission
    # open fee 3.75, close fee 3.875, no night fee
    # pnl = 50 - 7.625 = 42.375
    opened = lifecycle.open_position(test_account.id, "AAPL", TradeType.LONG, 10, 150.0)
    assert opened.status is PositionStatus.OPEN
    assert round(opened.fees.open, 6) == 3.75

    clock.advance(hours=2)
    closed = lifecycle.close_position(opened.position_id, 155.0, 100)

    assert closed.status is PositionStatus.CLOSED
    assert closed.closed_at == datetime(2025, 3, 3, 12, 0, 0)
    assert closed.net_quantity == 0
    assert round(closed.fees.close, 6) == 3.875
    assert closed.fees.night == 0.0
    assert round(closed.pnl, 6) == 42.375
    assert closed.unrealized_pnl == 0.0


def test_short_partial_close_after_ten_days(lifecycle, clock, repo, test_account):
    # Short 5 @ 490, ten days later close 40% @ 480
    opened = lifecycle.open_position(test_account.id, "TSLA", "short", 5, 490.0)
    assert round(opened.fees.open, 6) == 6.125

    clock.advance(days=10)
    snap = lifecycle.close_position(opened.position_id, 480.0, 40)

    night = 2450.0 * 0.07 / 365 * 10 * 0.4
    assert snap.status is PositionStatus.OPEN
    assert snap.is_partially_closed
    assert snap.trade_type is TradeType.SHORT
    assert snap.net_quantity == pytest.approx(3)
    assert snap.closed_quantity == pytest.approx(2)
    assert snap.fees.close == pytest.approx(2.4)
    assert snap.fees.night == pytest.approx(night)
    assert snap.realized_pnl == pytest.approx(20.0 - (6.125 + 2.4 + night))

    fills = repo.list_fills(opened.position_id)
    assert [f.side for f in fills] == [Side.SELL, Side.BUY]
    assert fills[1].quantity == pytest.approx(2)
    assert fills[1].sequence == 2

    # Close what is left
    final = lifecycle.close_position(opened.position_id, 470.0)
    assert final.status is PositionStatus.CLOSED
    assert final.net_quantity == pytest.approx(0)
    assert final.original_quantity == pytest.approx(5)


def test_full_close_matches_hundred_percent_close(lifecycle, clock, test_account):
    a = lifecycle.open_position(test_account.id, "MSFT", "long", 4, 400.0)
    b = lifecycle.open_position(test_account.id, "MSFT", "long", 4, 400.0)
    clock.advance(days=3)

    via_pct = lifecycle.close_position(a.position_id, 410.0, 100)
    via_full = lifecycle.full_close(b.position_id, 410.0)

    assert via_pct.status is via_full.status is PositionStatus.CLOSED
    assert via_pct.pnl == pytest.approx(via_full.pnl)
    assert via_pct.fees == via_full.fees


def test_add_to_position_averages_entry(lifecycle, test_account):
    snap = lifecycle.open_position(test_account.id, "NVDA", "long", 10, 100.0)
    snap = lifecycle.add_to_position(snap.position_id, 10, 110.0)

    assert snap.original_quantity == pytest.approx(20)
    assert snap.open_price == pytest.approx(105.0)
    assert snap.fees.open == pytest.approx(2.5 + 2.75)
    assert not snap.is_partially_closed


def test_latest_price_drives_unrealized_pnl(lifecycle, repo, test_account):
    snap = lifecycle.open_position(test_account.id, "aapl", "long", 10, 100.0)
    assert snap.symbol == "AAPL"

    symbol = repo.find_symbol("AAPL")
    lifecycle.update_latest_price(symbol["symbol_id"], 110.0)

    snap = lifecycle.get_snapshot(snap.position_id)
    assert snap.latest_price == 110.0
    assert snap.unrealized_pnl == pytest.approx(100.0 - 2.5)


def test_symbols_are_reused_by_ticker(lifecycle, test_account):
    lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    lifecycle.open_position(test_account.id, " aapl ", "short", 1, 100.0)
    assert [s["ticker"] for s in lifecycle.watchlist()] == ["AAPL"]


@pytest.mark.parametrize(
    "ticker, trade_type, quantity, price",
    [
        ("AAPL", "long", 0, 100.0),
        ("AAPL", "long", -1, 100.0),
        ("AAPL", "long", 1, 0),
        ("AAPL", "sideways", 1, 100.0),
        ("", "long", 1, 100.0),
        ("AAPL", "long", "ten", 100.0),
    ],
)
def test_open_position_rejects_bad_input(lifecycle, test_account, ticker, trade_type, quantity, price):
    with pytest.raises(ValidationError):
        lifecycle.open_position(test_account.id, ticker, trade_type, quantity, price)
    assert lifecycle.list_snapshots() == []


def test_open_position_unknown_account(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.open_position("missing", "AAPL", "long", 1, 100.0)


@pytest.mark.parametrize("pct", [0, -5, 100.5])
def test_close_percentage_out_of_range(lifecycle, test_account, pct):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)
    with pytest.raises(ValidationError):
        lifecycle.close_position(snap.position_id, 105.0, pct)


def test_close_below_minimum_quantity(lifecycle, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    with pytest.raises(ValidationError):
        lifecycle.close_position(snap.position_id, 105.0, 0.5)


def test_closed_position_rejects_further_commands(lifecycle, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    lifecycle.full_close(snap.position_id, 101.0)

    with pytest.raises(StateConflictError):
        lifecycle.close_position(snap.position_id, 102.0)
    with pytest.raises(StateConflictError):
        lifecycle.add_to_position(snap.position_id, 1, 102.0)


def test_unknown_position(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.close_position("missing", 100.0)
    with pytest.raises(NotFoundError):
        lifecycle.get_snapshot("missing")


def test_failed_close_leaves_position_untouched(lifecycle, repo, test_account, monkeypatch):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)

    def broken_set_status(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(repo, "set_status", broken_set_status)
    with pytest.raises(DependencyError):
        lifecycle.close_position(snap.position_id, 110.0)

    assert len(repo.list_fills(snap.position_id)) == 1
    assert lifecycle.get_snapshot(snap.position_id).status is PositionStatus.OPEN


def test_delete_position_removes_fills(lifecycle, repo, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)
    lifecycle.close_position(snap.position_id, 110.0, 50)

    lifecycle.delete_position(snap.position_id)

    assert repo.list_fills(snap.position_id) == []
    with pytest.raises(NotFoundError):
        lifecycle.get_snapshot(snap.position_id)
    with pytest.raises(NotFoundError):
        lifecycle.delete_position(snap.position_id)


def test_list_snapshots_filters(lifecycle, test_account):
    other = lifecycle.create_account("Second", 500.0)
    a = lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    lifecycle.open_position(other.id, "AAPL", "long", 1, 100.0)
    lifecycle.full_close(a.position_id, 101.0)

    assert len(lifecycle.list_snapshots()) == 2
    assert len(lifecycle.list_snapshots(account_id=other.id)) == 1
    closed = lifecycle.list_snapshots(status=PositionStatus.CLOSED)
    assert [s.position_id for s in closed] == [a.position_id]


def test_create_account_uses_default_rates(lifecycle):
    account = lifecycle.create_account("Default", 1000.0)
    assert account.rates == CommissionRates(0.25, 7.0)


@pytest.mark.parametrize("name, balance", [("", 100.0), ("  ", 100.0), ("Acct", -1.0)])
def test_create_account_validation(lifecycle, name, balance):
    with pytest.raises(ValidationError):
        lifecycle.create_account(name, balance)


def test_updated_commissions_apply_to_new_fills(lifecycle, test_account):
    updated = lifecycle.update_account_commissions(test_account.id, 0.5, 3.0)
    assert updated.rates == CommissionRates(0.5, 3.0)

    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)
    assert snap.fees.open == pytest.approx(5.0)


@pytest.mark.parametrize("open_close, night", [(-0.1, 7.0), (0.25, 100.1)])
def test_commission_bounds(lifecycle, test_account, open_close, night):
    with pytest.raises(ValidationError):
        lifecycle.update_account_commissions(test_account.id, open_close, night)


def test_account_with_operations_cannot_be_deleted(lifecycle, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    with pytest.raises(StateConflictError):
        lifecycle.delete_account(test_account.id)

    lifecycle.delete_position(snap.position_id)
    lifecycle.delete_account(test_account.id)
    assert lifecycle.list_accounts() == []


def test_symbol_with_open_positions_cannot_be_deactivated(lifecycle, repo, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    symbol_id = repo.find_symbol("AAPL")["symbol_id"]

    with pytest.raises(StateConflictError):
        lifecycle.deactivate_symbol(symbol_id)

    lifecycle.full_close(snap.position_id, 101.0)
    lifecycle.deactivate_symbol(symbol_id)
    assert lifecycle.watchlist() == []

    with pytest.raises(StateConflictError):
        lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)


def test_full_close_after_partial_keeps_long_direction(lifecycle, test_account):
    # 40% of 27.26 then the rest; side totals must cancel exactly
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 27.26, 100.0)
    lifecycle.close_position(snap.position_id, 101.0, 40)
    final = lifecycle.close_position(snap.position_id, 102.0, 100)

    assert final.status is PositionStatus.CLOSED
    assert final.trade_type is TradeType.LONG
    assert not final.is_degenerate
    assert final.net_quantity == 0.0
    assert final.original_quantity == pytest.approx(27.26)
    assert final.closed_quantity == pytest.approx(27.26)
    assert final.open_price == pytest.approx(100.0)
    assert 101.0 < final.close_price < 102.0


def test_night_fee_accrues_per_lot_from_its_own_fill(lifecycle, clock, test_account):
    # Lot 1 held 10 days, lot 2 added on day 5 and held 5 days
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)
    clock.advance(days=5)
    lifecycle.add_to_position(snap.position_id, 10, 100.0)
    clock.advance(days=5)

    closed = lifecycle.full_close(snap.position_id, 100.0)

    expected = (1000.0 * 10 + 1000.0 * 5) * 0.07 / 365
    assert closed.fees.night == pytest.approx(expected)


def test_deactivated_account_blocks_new_exposure(lifecycle, test_account):
    snap = lifecycle.open_position(test_account.id, "AAPL", "long", 10, 100.0)

    lifecycle.deactivate_account(test_account.id)

    assert lifecycle.list_accounts() == []
    with pytest.raises(StateConflictError):
        lifecycle.open_position(test_account.id, "AAPL", "long", 1, 100.0)
    with pytest.raises(StateConflictError):
        lifecycle.add_to_position(snap.position_id, 1, 100.0)

    # Existing exposure can still be closed
    closed = lifecycle.full_close(snap.position_id, 101.0)
    assert closed.status is PositionStatus.CLOSED

    with pytest.raises(NotFoundError):
        lifecycle.deactivate_account("missing")
