"""
Order, position and trade models.

These dataclasses represent the objects passed between the strategy
and the execution layer.  Keeping them in a separate module improves
readability and makes unit testing easier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import pandas as pd


class OrderStatus(str, Enum):
    NEW = "new"
    SUBMITTED = "submitted"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"
    INVALID = "invalid"


class OrderDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    STOP_LIMIT = "stop_limit"


@dataclass
class Bar:
    """A consolidated price bar."""
    time: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def price(self) -> float:
        return self.close


@dataclass
class Position:
    """Signed holding of the tracked instrument."""
    symbol: str
    quantity: float = 0.0

    @property
    def is_long(self) -> bool:
        return self.quantity > 0


@dataclass
class OrderTicket:
    """Handle to an order submitted to the execution layer.

    The execution layer updates `status` in place as the order moves
    through its lifecycle, so holders of a ticket always see the
    latest state.
    """
    order_id: int
    symbol: str
    quantity: float  # signed: negative sells
    order_type: OrderType
    stop_price: Optional[float] = None
    limit_price: Optional[float] = None
    status: OrderStatus = OrderStatus.NEW
    tag: str = ""
    submitted_at: Optional[pd.Timestamp] = None

    @property
    def direction(self) -> OrderDirection:
        return OrderDirection.BUY if self.quantity > 0 else OrderDirection.SELL

    @property
    def is_open(self) -> bool:
        return self.status in (OrderStatus.NEW, OrderStatus.SUBMITTED)


@dataclass(frozen=True)
class OrderEvent:
    """Status change reported by the execution layer for one order."""
    order_id: int
    symbol: str
    status: OrderStatus
    direction: OrderDirection
    fill_price: float = 0.0
    fill_quantity: float = 0.0
    time: Optional[pd.Timestamp] = None

    def __str__(self) -> str:
        return (
            f"Order {self.order_id} {self.symbol} {self.status.value} "
            f"{self.direction.value} {self.fill_quantity} @ {self.fill_price}"
        )


@dataclass
class Trade:
    """Represents a completed round trip."""
    symbol: str
    quantity: float
    entry_price: float
    exit_price: float
    entry_time: pd.Timestamp
    exit_time: pd.Timestamp
    pnl: float
    fees: float
    reason: str  # tag of the closing order, e.g. 'liquidate', 'take_profit', 'stop_loss'
