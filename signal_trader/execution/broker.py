"""
Execution layer interface.

The strategy never talks to an exchange or a simulator directly.  It
asks a `Broker` for the current position and sends fire-and-forget
order requests; the outcome of each request arrives later as an
`OrderEvent` delivered by whatever drives the strategy.
"""

from __future__ import annotations

from typing import List, Protocol

from .models import OrderTicket, Position


class Broker(Protocol):
    def position(self, symbol: str) -> Position:
        ...

    def set_holdings(self, symbol: str, target: float, tag: str = "") -> List[OrderTicket]:
        """Rebalance so that `target` (1.0 = 100 %) of equity is held in `symbol`."""
        ...

    def liquidate(self, symbol: str, tag: str = "") -> List[OrderTicket]:
        """Close the whole position in `symbol`."""
        ...

    def stop_limit_order(
        self,
        symbol: str,
        quantity: float,
        stop_price: float,
        limit_price: float,
        tag: str = "",
    ) -> OrderTicket:
        ...

    def cancel_order(self, ticket: OrderTicket) -> None:
        ...
