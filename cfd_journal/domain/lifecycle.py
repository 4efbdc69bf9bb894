# cfd_journal/domain/lifecycle.py
"""
Position lifecycle: open, add, partial/full close and delete.

Every mutation validates first, then appends to the fill ledger and updates
the group status inside one repository transaction. Snapshots are never
stored; they are re-derived from the ledger on each read.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from cfd_journal import config
from cfd_journal.domain import fees
from cfd_journal.domain.ledger import FillLedger
from cfd_journal.domain.metrics import MetricsCalculator
from cfd_journal.domain.models import (
    AccountInfo,
    CommissionRates,
    Fill,
    Position,
    PositionSnapshot,
    PositionStatus,
    TradeType,
)
from cfd_journal.domain.reducer import PositionReducer
from cfd_journal.domain.timeutils import to_naive_utc, utc_now
from cfd_journal.errors import StateConflictError, ValidationError

logger = logging.getLogger(__name__)


def default_rates() -> CommissionRates:
    return CommissionRates(
        open_close_pct=config.DEFAULT_OPEN_CLOSE_COMMISSION_PCT,
        night_pct=config.DEFAULT_NIGHT_COMMISSION_PCT,
    )


def _require_positive(name: str, value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not number > 0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return number


class PositionLifecycle:
    """
    Command surface over positions, accounts and symbols.

    The repository must provide: transaction(), get_position, list_positions,
    create_position, list_fills, append_fill, set_status, delete_position,
    count_positions, get_account, list_accounts, create_account,
    update_account_rates, delete_account, set_account_active, find_symbol,
    create_symbol, get_symbol_latest_price, set_symbol_latest_price,
    set_symbol_active, list_symbols.
    """

    def __init__(
        self,
        repository,
        clock: Callable[[], datetime] = utc_now,
        report_timezone: Optional[str] = None,
        min_close_quantity: float = config.MIN_CLOSE_QUANTITY,
    ):
        self.repo = repository
        self.clock = clock
        self.report_timezone = report_timezone or config.REPORT_TIMEZONE
        self.min_close_quantity = min_close_quantity

    def _now(self) -> datetime:
        return to_naive_utc(self.clock())

    # ------------------------------------------------------------------
    # Position commands
    # ------------------------------------------------------------------

    def open_position(
        self,
        account_id: str,
        ticker: str,
        trade_type: Union[TradeType, str],
        quantity: float,
        open_price: float,
        rates: Optional[CommissionRates] = None,
    ) -> PositionSnapshot:
        """Create a position in OPEN with one opening fill."""
        quantity = _require_positive("Quantity", quantity)
        open_price = _require_positive("Open price", open_price)
        trade_type = _parse_trade_type(trade_type)
        if not ticker or not ticker.strip():
            raise ValidationError("Ticker is required")

        account = self.repo.get_account(account_id)
        if not account.is_active:
            raise StateConflictError(f"Account {account.name} is inactive")
        rates = rates or account.rates

        now = self._now()
        fill = Fill(
            side=trade_type.opening_side,
            quantity=quantity,
            price=open_price,
            timestamp=now,
            open_fee=fees.open_fee(quantity * open_price, rates.open_close_pct),
        )

        with self.repo.transaction():
            symbol_id = self._resolve_symbol(ticker)
            position = self.repo.create_position(account_id, symbol_id, now)
            ledger = FillLedger(position.id)
            ledger.append(fill)
            self.repo.append_fill(position.id, fill)

        logger.info(
            "Opened %s %s x%s @ %s (position %s, open fee %.4f)",
            trade_type.value, position.symbol, quantity, open_price, position.id, fill.open_fee,
        )
        return self.get_snapshot(position.id)

    def add_to_position(
        self,
        position_id: str,
        quantity: float,
        price: float,
        rates: Optional[CommissionRates] = None,
    ) -> PositionSnapshot:
        """Append another opening-side fill to an open position."""
        quantity = _require_positive("Quantity", quantity)
        price = _require_positive("Price", price)

        position = self._require_open(position_id)
        ledger = FillLedger(position.id, self.repo.list_fills(position.id))
        snapshot = PositionReducer.reduce(position, ledger)
        if snapshot.trade_type is None or snapshot.net_quantity <= 0:
            raise StateConflictError(f"Position {position_id} has no open quantity to add to")
        account = self.repo.get_account(position.account_id)
        if not account.is_active:
            raise StateConflictError(f"Account {account.name} is inactive")
        rates = rates or account.rates

        fill = Fill(
            side=snapshot.trade_type.opening_side,
            quantity=quantity,
            price=price,
            timestamp=self._now(),
            open_fee=fees.open_fee(quantity * price, rates.open_close_pct),
        )
        with self.repo.transaction():
            ledger.append(fill)
            self.repo.append_fill(position.id, fill)

        logger.info("Added x%s @ %s to position %s", quantity, price, position.id)
        return self.get_snapshot(position.id)

    def close_position(
        self,
        position_id: str,
        close_price: float,
        close_percentage: float = 100.0,
        rates: Optional[CommissionRates] = None,
    ) -> PositionSnapshot:
        """
        Close `close_percentage` of the currently open quantity.

        Appends one closing-side fill carrying the close commission and the
        prorated night fee. A 100% close moves the position to CLOSED.
        """
        close_price = _require_positive("Close price", close_price)
        try:
            close_percentage = float(close_percentage)
        except (TypeError, ValueError):
            raise ValidationError(f"Close percentage must be a number, got {close_percentage!r}")
        if not 0 < close_percentage <= 100:
            raise ValidationError("Close percentage must be greater than 0% and at most 100%")

        position = self._require_open(position_id)
        ledger = FillLedger(position.id, self.repo.list_fills(position.id))
        snapshot = PositionReducer.reduce(position, ledger)

        if snapshot.trade_type is None or snapshot.net_quantity <= 0:
            raise StateConflictError(f"Position {position_id} has no open quantity to close")

        is_full_close = close_percentage >= 100
        if is_full_close:
            # Opening minus closing, so the side totals cancel on the next reduce
            quantity_to_close = snapshot.original_quantity - snapshot.closed_quantity
        else:
            quantity_to_close = snapshot.net_quantity * close_percentage / 100
        if quantity_to_close < self.min_close_quantity:
            raise ValidationError(
                f"Closing quantity too small. Minimum is {self.min_close_quantity} units."
            )

        rates = rates or self.repo.get_account(position.account_id).rates
        now = self._now()

        opening_fills = [f for f in ledger if f.side is snapshot.trade_type.opening_side]
        night_total = fees.lots_night_fee(
            opening_fills,
            snapshot.net_quantity / snapshot.original_quantity,
            rates.night_pct,
            now,
            tz=self.report_timezone,
        )
        fill = Fill(
            side=snapshot.trade_type.closing_side,
            quantity=quantity_to_close,
            price=close_price,
            timestamp=now,
            close_fee=fees.close_fee(quantity_to_close * close_price, rates.open_close_pct),
            night_fee=fees.prorated_night_fee(night_total, close_percentage),
        )

        with self.repo.transaction():
            ledger.append(fill)
            self.repo.append_fill(position.id, fill)
            if is_full_close:
                self.repo.set_status(position.id, PositionStatus.CLOSED, closed_at=now)

        logger.info(
            "%s %s%% of position %s: x%s @ %s (close fee %.4f, night fee %.4f)",
            "Closed" if is_full_close else "Partially closed",
            close_percentage, position.id, quantity_to_close, close_price,
            fill.close_fee, fill.night_fee,
        )
        return self.get_snapshot(position.id)

    def full_close(
        self,
        position_id: str,
        close_price: float,
        rates: Optional[CommissionRates] = None,
    ) -> PositionSnapshot:
        return self.close_position(position_id, close_price, 100.0, rates=rates)

    def delete_position(self, position_id: str) -> None:
        """Hard-delete a position and all its fills. Irreversible."""
        self.repo.get_position(position_id)
        with self.repo.transaction():
            self.repo.delete_position(position_id)
        logger.info("Deleted position %s", position_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_snapshot(self, position_id: str) -> PositionSnapshot:
        position = self.repo.get_position(position_id)
        return self._snapshot(position)

    def list_snapshots(
        self,
        account_id: Optional[str] = None,
        status: Optional[PositionStatus] = None,
    ) -> List[PositionSnapshot]:
        return [
            self._snapshot(position)
            for position in self.repo.list_positions(account_id=account_id, status=status)
        ]

    def get_portfolio_metrics(self, snapshots: List[PositionSnapshot]) -> Dict:
        return MetricsCalculator.performance_metrics(snapshots)

    def _snapshot(self, position: Position) -> PositionSnapshot:
        fills = FillLedger(position.id, self.repo.list_fills(position.id))
        latest_price = None
        if position.status is PositionStatus.OPEN:
            latest_price = self.repo.get_symbol_latest_price(position.symbol_id)
        return PositionReducer.reduce(position, fills, latest_price)

    def _require_open(self, position_id: str) -> Position:
        position = self.repo.get_position(position_id)
        if position.status is PositionStatus.CLOSED:
            raise StateConflictError(f"Position {position_id} is already closed")
        return position

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        name: str,
        starting_balance: float,
        rates: Optional[CommissionRates] = None,
    ) -> AccountInfo:
        if not name or not name.strip():
            raise ValidationError("Account name is required")
        try:
            starting_balance = float(starting_balance)
        except (TypeError, ValueError):
            raise ValidationError(f"Starting balance must be a number, got {starting_balance!r}")
        if starting_balance < 0:
            raise ValidationError("Starting balance cannot be negative")

        with self.repo.transaction():
            account = self.repo.create_account(name.strip(), starting_balance, rates or default_rates())
        logger.info("Created account %s (%s)", account.name, account.id)
        return account

    def list_accounts(self) -> List[AccountInfo]:
        return self.repo.list_accounts(active_only=True)

    def update_account_commissions(
        self,
        account_id: str,
        open_close_pct: float,
        night_pct: float,
    ) -> AccountInfo:
        rates = CommissionRates(open_close_pct=open_close_pct, night_pct=night_pct)
        with self.repo.transaction():
            account = self.repo.update_account_rates(account_id, rates)
        logger.info(
            "Account %s commissions set to %s%% open/close, %s%% night",
            account_id, open_close_pct, night_pct,
        )
        return account

    def delete_account(self, account_id: str) -> None:
        self.repo.get_account(account_id)
        if self.repo.count_positions(account_id=account_id) > 0:
            raise StateConflictError(
                "Cannot delete account with existing operations. "
                "Please close or delete all operations first."
            )
        with self.repo.transaction():
            self.repo.delete_account(account_id)
        logger.info("Deleted account %s", account_id)

    def deactivate_account(self, account_id: str) -> None:
        """Hide the account and block new exposure; open positions can still be closed."""
        self.repo.get_account(account_id)
        with self.repo.transaction():
            self.repo.set_account_active(account_id, False)
        logger.info("Deactivated account %s", account_id)

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def resolve_symbol(self, ticker: str) -> str:
        """Fetch or create the symbol for `ticker`, returning its id."""
        with self.repo.transaction():
            return self._resolve_symbol(ticker)

    def _resolve_symbol(self, ticker: str) -> str:
        ticker = ticker.strip().upper()
        symbol = self.repo.find_symbol(ticker)
        if symbol is None:
            logger.info("Creating symbol %s", ticker)
            return self.repo.create_symbol(ticker)
        if not symbol["is_active"]:
            raise StateConflictError(f"Symbol {ticker} is inactive")
        return symbol["symbol_id"]

    def update_latest_price(self, symbol_id: str, price: float) -> None:
        """Manual stand-in for the scheduled quote refresh."""
        price = _require_positive("Price", price)
        with self.repo.transaction():
            self.repo.set_symbol_latest_price(symbol_id, price, self._now())

    def deactivate_symbol(self, symbol_id: str) -> None:
        open_count = self.repo.count_positions(symbol_id=symbol_id, status=PositionStatus.OPEN)
        if open_count > 0:
            raise StateConflictError(
                f"Symbol has {open_count} open position(s); close them before deactivating"
            )
        with self.repo.transaction():
            self.repo.set_symbol_active(symbol_id, False)

    def watchlist(self) -> List[Dict]:
        return self.repo.list_symbols(active_only=True)


def _parse_trade_type(value: Union[TradeType, str]) -> TradeType:
    if isinstance(value, str) and not isinstance(value, TradeType):
        value = value.strip().lower()
    try:
        return TradeType(value)
    except ValueError:
        raise ValidationError(f"Trade type must be 'long' or 'short', got {value!r}")
