# cfd_journal/db/repository.py
"""
SQLModel-backed repository used by the lifecycle controller.

Mutating methods only add/flush; `transaction()` owns the commit so that a
fill append and the matching status update land together or not at all.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from cfd_journal.db.models import Account, OperationFill, OperationGroup, Symbol
from cfd_journal.domain.models import (
    AccountInfo,
    CommissionRates,
    Fill,
    Position,
    PositionStatus,
    Side,
)
from cfd_journal.domain.timeutils import utc_now
from cfd_journal.errors import DependencyError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EDITABLE_FILL_FIELDS = {"quantity", "price", "open_fee", "close_fee", "night_fee", "filled_at"}


class JournalRepository:
    """Reads and writes accounts, symbols, operation groups and fills."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any error."""
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Transaction failed: %s", exc)
            raise DependencyError(f"Persistence failure: {exc}") from exc
        except Exception:
            self.session.rollback()
            raise

    @contextmanager
    def _io(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("Failed to %s: %s", action, exc)
            raise DependencyError(f"Failed to {action}: {exc}") from exc

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def get_position(self, position_id: str) -> Position:
        with self._io("load position"):
            row = self.session.exec(
                select(OperationGroup, Symbol.ticker)
                .join(Symbol, Symbol.id == OperationGroup.symbol_id)
                .where(OperationGroup.id == position_id)
            ).first()
        if row is None:
            raise NotFoundError(f"Position {position_id} not found")
        group, ticker = row
        return _to_position(group, ticker)

    def list_positions(
        self,
        account_id: Optional[str] = None,
        status: Optional[PositionStatus] = None,
    ) -> List[Position]:
        stmt = select(OperationGroup, Symbol.ticker).join(
            Symbol, Symbol.id == OperationGroup.symbol_id
        )
        if account_id:
            stmt = stmt.where(OperationGroup.account_id == account_id)
        if status:
            stmt = stmt.where(OperationGroup.status == status.value)
        stmt = stmt.order_by(OperationGroup.open_at.desc())

        with self._io("list positions"):
            rows = self.session.exec(stmt).all()
        return [_to_position(group, ticker) for group, ticker in rows]

    def create_position(self, account_id: str, symbol_id: str, open_at: datetime) -> Position:
        group = OperationGroup(
            account_id=account_id,
            symbol_id=symbol_id,
            status=PositionStatus.OPEN.value,
            open_at=open_at,
        )
        with self._io("create position"):
            self.session.add(group)
            self.session.flush()
            ticker = self.session.get(Symbol, symbol_id).ticker
        return _to_position(group, ticker)

    def set_status(
        self,
        position_id: str,
        status: PositionStatus,
        closed_at: Optional[datetime] = None,
    ) -> None:
        with self._io("update position status"):
            group = self.session.get(OperationGroup, position_id)
            if group is None:
                raise NotFoundError(f"Position {position_id} not found")
            group.status = status.value
            group.closed_at = closed_at if status is PositionStatus.CLOSED else None
            group.updated_at = utc_now()
            self.session.add(group)
            self.session.flush()

    def delete_position(self, position_id: str) -> None:
        """Hard-delete a group and its fills."""
        with self._io("delete position"):
            group = self.session.get(OperationGroup, position_id)
            if group is None:
                raise NotFoundError(f"Position {position_id} not found")
            fills = self.session.exec(
                select(OperationFill).where(OperationFill.group_id == position_id)
            ).all()
            for fill in fills:
                self.session.delete(fill)
            self.session.flush()
            self.session.delete(group)
            self.session.flush()

    def count_positions(
        self,
        account_id: Optional[str] = None,
        symbol_id: Optional[str] = None,
        status: Optional[PositionStatus] = None,
    ) -> int:
        stmt = select(func.count()).select_from(OperationGroup)
        if account_id:
            stmt = stmt.where(OperationGroup.account_id == account_id)
        if symbol_id:
            stmt = stmt.where(OperationGroup.symbol_id == symbol_id)
        if status:
            stmt = stmt.where(OperationGroup.status == status.value)
        with self._io("count positions"):
            return self.session.exec(stmt).one()

    # ------------------------------------------------------------------
    # Fills
    # ------------------------------------------------------------------

    def list_fills(self, position_id: str) -> List[Fill]:
        stmt = (
            select(OperationFill)
            .where(OperationFill.group_id == position_id)
            .order_by(OperationFill.filled_at, OperationFill.sequence)
        )
        with self._io("list fills"):
            rows = self.session.exec(stmt).all()
        return [_to_fill(row) for row in rows]

    def append_fill(self, position_id: str, fill: Fill) -> Fill:
        row = OperationFill(
            group_id=position_id,
            side=fill.side.value,
            quantity=fill.quantity,
            price=fill.price,
            open_fee=fill.open_fee,
            close_fee=fill.close_fee,
            night_fee=fill.night_fee,
            filled_at=fill.timestamp,
            sequence=fill.sequence,
        )
        with self._io("append fill"):
            self.session.add(row)
            self.session.flush()
        fill.id = row.id
        return fill

    def update_fill(self, fill_id: str, **updates) -> Fill:
        """
        Administrative correction of one fill.

        Bypasses lifecycle invariants; callers must re-read snapshots.
        """
        unknown = set(updates) - EDITABLE_FILL_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {sorted(unknown)}")

        with self._io("update fill"):
            row = self.session.get(OperationFill, fill_id)
            if row is None:
                raise NotFoundError(f"Fill {fill_id} not found")
            for key, value in updates.items():
                setattr(row, key, value)
            self.session.add(row)
            self.session.flush()
        logger.info("Fill %s corrected: %s", fill_id, sorted(updates))
        return _to_fill(row)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account(self, account_id: str) -> AccountInfo:
        with self._io("load account"):
            account = self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return _to_account(account)

    def list_accounts(self, active_only: bool = True) -> List[AccountInfo]:
        stmt = select(Account)
        if active_only:
            stmt = stmt.where(Account.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Account.created_at.desc())
        with self._io("list accounts"):
            rows = self.session.exec(stmt).all()
        return [_to_account(a) for a in rows]

    def create_account(self, name: str, starting_balance: float, rates: CommissionRates) -> AccountInfo:
        account = Account(
            name=name,
            starting_balance=starting_balance,
            open_close_commission_pct=rates.open_close_pct,
            night_commission_pct=rates.night_pct,
        )
        with self._io("create account"):
            self.session.add(account)
            self.session.flush()
        return _to_account(account)

    def update_account_rates(self, account_id: str, rates: CommissionRates) -> AccountInfo:
        with self._io("update account commissions"):
            account = self.session.get(Account, account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found")
            account.open_close_commission_pct = rates.open_close_pct
            account.night_commission_pct = rates.night_pct
            account.updated_at = utc_now()
            self.session.add(account)
            self.session.flush()
        return _to_account(account)

    def delete_account(self, account_id: str) -> None:
        with self._io("delete account"):
            account = self.session.get(Account, account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found")
            self.session.delete(account)
            self.session.flush()

    def set_account_active(self, account_id: str, is_active: bool) -> None:
        with self._io("update account"):
            account = self.session.get(Account, account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found")
            account.is_active = is_active
            account.updated_at = utc_now()
            self.session.add(account)
            self.session.flush()

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def find_symbol(self, ticker: str) -> Optional[Dict]:
        with self._io("look up symbol"):
            symbol = self.session.exec(
                select(Symbol).where(Symbol.ticker == ticker.upper())
            ).first()
        return _symbol_dict(symbol) if symbol else None

    def create_symbol(self, ticker: str, name: str = "") -> str:
        symbol = Symbol(ticker=ticker.upper(), name=name or f"{ticker.upper()} Corporation")
        with self._io("create symbol"):
            self.session.add(symbol)
            self.session.flush()
        return symbol.id

    def get_symbol_latest_price(self, symbol_id: str) -> Optional[float]:
        with self._io("load symbol price"):
            symbol = self.session.get(Symbol, symbol_id)
        if symbol is None:
            raise NotFoundError(f"Symbol {symbol_id} not found")
        return symbol.latest_price

    def set_symbol_latest_price(self, symbol_id: str, price: float, at: datetime) -> None:
        with self._io("update symbol price"):
            symbol = self.session.get(Symbol, symbol_id)
            if symbol is None:
                raise NotFoundError(f"Symbol {symbol_id} not found")
            symbol.latest_price = price
            symbol.price_updated_at = at
            self.session.add(symbol)
            self.session.flush()

    def set_symbol_active(self, symbol_id: str, is_active: bool) -> None:
        with self._io("update symbol"):
            symbol = self.session.get(Symbol, symbol_id)
            if symbol is None:
                raise NotFoundError(f"Symbol {symbol_id} not found")
            symbol.is_active = is_active
            self.session.add(symbol)
            self.session.flush()

    def list_symbols(self, active_only: bool = True) -> List[Dict]:
        stmt = select(Symbol)
        if active_only:
            stmt = stmt.where(Symbol.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Symbol.ticker)
        with self._io("list symbols"):
            rows = self.session.exec(stmt).all()
        return [_symbol_dict(s) for s in rows]


def _to_position(group: OperationGroup, ticker: str) -> Position:
    return Position(
        id=group.id,
        account_id=group.account_id,
        symbol_id=group.symbol_id,
        symbol=ticker,
        status=PositionStatus(group.status),
        open_at=group.open_at,
        closed_at=group.closed_at,
    )


def _to_fill(row: OperationFill) -> Fill:
    return Fill(
        id=row.id,
        side=Side(row.side),
        quantity=row.quantity,
        price=row.price,
        open_fee=row.open_fee or 0.0,
        close_fee=row.close_fee or 0.0,
        night_fee=row.night_fee or 0.0,
        timestamp=row.filled_at,
        sequence=row.sequence,
    )


def _to_account(account: Account) -> AccountInfo:
    return AccountInfo(
        id=account.id,
        name=account.name,
        starting_balance=account.starting_balance,
        rates=CommissionRates(
            open_close_pct=account.open_close_commission_pct,
            night_pct=account.night_commission_pct,
        ),
        is_active=account.is_active,
        created_at=account.created_at,
    )


def _symbol_dict(symbol: Symbol) -> Dict:
    return {
        "symbol_id": symbol.id,
        "ticker": symbol.ticker,
        "name": symbol.name,
        "latest_price": symbol.latest_price,
        "price_updated_at": symbol.price_updated_at,
        "is_active": symbol.is_active,
    }
