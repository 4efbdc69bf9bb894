# cfd_journal/db/models.py
"""
SQLModel definitions for the CFD journal.
Designed for SQLite locally, PostgreSQL in production.
"""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy
from sqlmodel import Field, Relationship, SQLModel

from cfd_journal import config
from cfd_journal.domain.timeutils import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return utc_now()


class Account(SQLModel, table=True):
    """Trading account with its commission settings."""
    __tablename__ = "account"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    starting_balance: float = Field(default=0.0)
    is_active: bool = Field(default=True, index=True)

    # Percent of traded value, charged on open and on close
    open_close_commission_pct: float = Field(default=config.DEFAULT_OPEN_CLOSE_COMMISSION_PCT)
    # Annual percent of position value, charged per night held
    night_commission_pct: float = Field(default=config.DEFAULT_NIGHT_COMMISSION_PCT)

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    operation_groups: List["OperationGroup"] = Relationship(back_populates="account")


class Symbol(SQLModel, table=True):
    """Tradable ticker. latest_price is written by the price refresh job."""
    __tablename__ = "symbol"

    id: str = Field(default_factory=_new_id, primary_key=True)
    ticker: str = Field(unique=True, index=True)
    name: str = Field(default="")
    currency: str = Field(default="USD")
    latest_price: Optional[float] = Field(default=None)
    price_updated_at: Optional[datetime] = Field(default=None)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_now)

    operation_groups: List["OperationGroup"] = Relationship(back_populates="symbol")


class OperationGroup(SQLModel, table=True):
    """One logical trade (position) made of one or more fills."""
    __tablename__ = "operation_group"

    id: str = Field(default_factory=_new_id, primary_key=True)
    account_id: str = Field(foreign_key="account.id", index=True)
    symbol_id: str = Field(foreign_key="symbol.id", index=True)

    status: str = Field(default="open", index=True)  # open, closed

    # Lifecycle timestamps (naive UTC)
    open_at: datetime = Field(default_factory=_now, index=True)
    closed_at: Optional[datetime] = Field(default=None, index=True)

    notes: str = Field(default="")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    __table_args__ = (
        sqlalchemy.CheckConstraint("status IN ('open', 'closed')", name="ck_group_status"),
    )

    account: Account = Relationship(back_populates="operation_groups")
    symbol: Symbol = Relationship(back_populates="operation_groups")
    fills: List["OperationFill"] = Relationship(back_populates="group")


class OperationFill(SQLModel, table=True):
    """Executed buy or sell inside an operation group."""
    __tablename__ = "operation_fill"

    id: str = Field(default_factory=_new_id, primary_key=True)
    group_id: str = Field(foreign_key="operation_group.id", index=True)

    side: str = Field(index=True)  # buy or sell
    quantity: float = Field()
    price: float = Field()

    open_fee: float = Field(default=0.0)
    close_fee: float = Field(default=0.0)
    night_fee: float = Field(default=0.0)

    filled_at: datetime = Field(default_factory=_now, index=True)
    sequence: int = Field(default=0)  # insertion order within the group
    created_at: datetime = Field(default_factory=_now)

    __table_args__ = (
        sqlalchemy.CheckConstraint("side IN ('buy', 'sell')", name="ck_fill_side"),
        sqlalchemy.CheckConstraint("quantity > 0", name="ck_fill_quantity"),
        sqlalchemy.CheckConstraint("price > 0", name="ck_fill_price"),
    )

    group: OperationGroup = Relationship(back_populates="fills")
