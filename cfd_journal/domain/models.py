# cfd_journal/domain/models.py
"""Domain value objects."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from cfd_journal.errors import ValidationError


class Side(str, Enum):
    """Side of one executed fill."""
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class TradeType(str, Enum):
    """Direction of a position."""
    LONG = "long"
    SHORT = "short"

    @property
    def opening_side(self) -> Side:
        return Side.BUY if self is TradeType.LONG else Side.SELL

    @property
    def closing_side(self) -> Side:
        return self.opening_side.opposite

    @staticmethod
    def from_side(side: Side) -> "TradeType":
        return TradeType.LONG if side is Side.BUY else TradeType.SHORT


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class CommissionRates:
    """Commission settings of an account, both in percent."""
    open_close_pct: float
    night_pct: float

    def __post_init__(self):
        for name, value in (("open/close", self.open_close_pct), ("night", self.night_pct)):
            if value is None or not 0 <= value <= 100:
                raise ValidationError(f"{name} commission must be between 0% and 100%, got {value}")


@dataclass
class Fill:
    """One executed buy or sell inside a position."""
    side: Side
    quantity: float
    price: float
    timestamp: datetime
    open_fee: float = 0.0
    close_fee: float = 0.0
    night_fee: float = 0.0
    id: Optional[str] = None
    sequence: int = 0  # insertion order, tie-break for equal timestamps

    @property
    def value(self) -> float:
        return self.quantity * self.price

    @property
    def total_fee(self) -> float:
        return self.open_fee + self.close_fee + self.night_fee


@dataclass
class Position:
    """One operation group: account + symbol + open timestamp."""
    id: str
    account_id: str
    symbol_id: str
    symbol: str
    status: PositionStatus
    open_at: datetime
    closed_at: Optional[datetime] = None


@dataclass
class AccountInfo:
    id: str
    name: str
    starting_balance: float
    rates: CommissionRates
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class FeeBreakdown:
    open: float = 0.0
    close: float = 0.0
    night: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class PositionSnapshot:
    """Derived state of a position, recomputed from its fills on every read."""
    position_id: str
    account_id: str
    symbol: str
    status: PositionStatus
    open_at: datetime
    closed_at: Optional[datetime]
    trade_type: Optional[TradeType]
    net_quantity: float
    original_quantity: float
    closed_quantity: float
    open_price: float
    close_price: Optional[float]
    is_partially_closed: bool
    realized_pnl: float
    unrealized_pnl: float
    pnl: float
    fees: FeeBreakdown = field(default_factory=FeeBreakdown)
    breakeven_price: float = 0.0
    latest_price: Optional[float] = None
    is_degenerate: bool = False  # empty ledger, or open with buys == sells
