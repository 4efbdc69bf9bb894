# cfd_journal/domain/reducer.py
"""
Position reduction.
Folds the fill ledger of one operation group into a PositionSnapshot:
direction, open/close averages, fee totals, realized/unrealized P&L,
breakeven price and the partial-close flag.
"""

import logging
import math
from typing import Iterable, List, Optional

from cfd_journal.domain.models import (
    FeeBreakdown,
    Fill,
    Position,
    PositionSnapshot,
    PositionStatus,
    Side,
    TradeType,
)

logger = logging.getLogger(__name__)

# Buy and sell totals this close are treated as equal
QUANTITY_TOLERANCE = 1e-9


class PositionReducer:
    """Derives position state from fills. Pure and stateless."""

    @staticmethod
    def reduce(
        position: Position,
        fills: Iterable[Fill],
        latest_price: Optional[float] = None,
    ) -> PositionSnapshot:
        """
        Reduce a position's fills to a snapshot.

        Args:
            position: The operation group (status, timestamps, identity)
            fills: Fills of the group, in any order
            latest_price: Last known quote of the symbol, if any

        Returns:
            PositionSnapshot. `pnl` is always realized_pnl + unrealized_pnl.
        """
        ordered = sorted(fills, key=lambda f: (f.timestamp, f.sequence))

        if not ordered:
            logger.warning("Position %s has no fills; returning empty snapshot", position.id)
            return PositionReducer._empty_snapshot(position, latest_price)

        total_buy = sum(f.quantity for f in ordered if f.side is Side.BUY)
        total_sell = sum(f.quantity for f in ordered if f.side is Side.SELL)

        is_flat = quantities_match(total_buy, total_sell)
        is_degenerate = False
        if is_flat:
            # Flat ledger: fall back to the earliest fill's side
            trade_type = TradeType.from_side(ordered[0].side)
            if position.status is PositionStatus.OPEN:
                is_degenerate = True
                logger.warning(
                    "Open position %s is flat (buy=%s sell=%s); direction taken from first fill",
                    position.id, total_buy, total_sell,
                )
        elif total_buy > total_sell:
            trade_type = TradeType.LONG
        else:
            trade_type = TradeType.SHORT

        opening = [f for f in ordered if f.side is trade_type.opening_side]
        closing = [f for f in ordered if f.side is trade_type.closing_side]

        original_quantity = sum(f.quantity for f in opening)
        closed_quantity = sum(f.quantity for f in closing)
        net_quantity = 0.0 if is_flat else abs(total_buy - total_sell)

        open_value = sum(f.value for f in opening)
        close_value = sum(f.value for f in closing)
        open_price = open_value / original_quantity if original_quantity else 0.0
        close_price = close_value / closed_quantity if closed_quantity else None

        fees = PositionReducer._sum_fees(ordered)
        has_mark = latest_price is not None and latest_price > 0

        realized_pnl = 0.0
        unrealized_pnl = 0.0

        if position.status is PositionStatus.CLOSED:
            realized_pnl = (
                directional_delta(trade_type, close_value, open_value) - fees.total
            )
        elif closed_quantity == 0:
            # Fully open: fee drag sits on the unrealized leg
            if has_mark:
                unrealized_pnl = (
                    directional_delta(trade_type, latest_price, open_price) * net_quantity
                    - fees.total
                )
            else:
                unrealized_pnl = -fees.total
        else:
            # Partially closed: realized leg carries all fees so far
            closed_fraction = min(closed_quantity / original_quantity, 1.0)
            realized_pnl = (
                directional_delta(trade_type, close_value, open_value * closed_fraction)
                - fees.total
            )
            if has_mark:
                unrealized_pnl = (
                    directional_delta(trade_type, latest_price, open_price) * net_quantity
                )

        fee_per_unit = fees.total / max(net_quantity, 1)
        if trade_type is TradeType.LONG:
            breakeven_price = open_price + fee_per_unit
        else:
            breakeven_price = open_price - fee_per_unit

        is_partially_closed = (
            position.status is PositionStatus.OPEN
            and 0 < net_quantity < original_quantity
        )

        return PositionSnapshot(
            position_id=position.id,
            account_id=position.account_id,
            symbol=position.symbol,
            status=position.status,
            open_at=position.open_at,
            closed_at=position.closed_at,
            trade_type=trade_type,
            net_quantity=net_quantity,
            original_quantity=original_quantity,
            closed_quantity=closed_quantity,
            open_price=open_price,
            close_price=close_price,
            is_partially_closed=is_partially_closed,
            realized_pnl=realized_pnl,
            unrealized_pnl=unrealized_pnl,
            pnl=realized_pnl + unrealized_pnl,
            fees=fees,
            breakeven_price=breakeven_price,
            latest_price=latest_price,
            is_degenerate=is_degenerate,
        )

    @staticmethod
    def _sum_fees(fills: List[Fill]) -> FeeBreakdown:
        open_total = sum(f.open_fee for f in fills)
        close_total = sum(f.close_fee for f in fills)
        night_total = sum(f.night_fee for f in fills)
        return FeeBreakdown(
            open=open_total,
            close=close_total,
            night=night_total,
            total=open_total + close_total + night_total,
        )

    @staticmethod
    def _empty_snapshot(position: Position, latest_price: Optional[float]) -> PositionSnapshot:
        return PositionSnapshot(
            position_id=position.id,
            account_id=position.account_id,
            symbol=position.symbol,
            status=position.status,
            open_at=position.open_at,
            closed_at=position.closed_at,
            trade_type=None,
            net_quantity=0.0,
            original_quantity=0.0,
            closed_quantity=0.0,
            open_price=0.0,
            close_price=None,
            is_partially_closed=False,
            realized_pnl=0.0,
            unrealized_pnl=0.0,
            pnl=0.0,
            fees=FeeBreakdown(),
            breakeven_price=0.0,
            latest_price=latest_price,
            is_degenerate=True,
        )


def directional_delta(trade_type: TradeType, exit_amount: float, entry_amount: float) -> float:
    """Gain of moving from entry to exit: exit - entry for LONG, entry - exit for SHORT."""
    if trade_type is TradeType.LONG:
        return exit_amount - entry_amount
    return entry_amount - exit_amount


def quantities_match(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=QUANTITY_TOLERANCE, abs_tol=QUANTITY_TOLERANCE)
