"""
Protective order bookkeeping.

After every entry fill the strategy places a take-profit and a
stop-loss order, both as sell stop-limits whose stop and limit prices
are equal.  The two legs are independent orders, not a one-cancels-
other pair: when one of them fills, the other stays live until the
resulting sell fill is reported and `on_exit_filled()` cancels it.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from ..config.schema import StrategyConfig
from ..execution.broker import Broker
from ..execution.models import OrderTicket


logger = logging.getLogger(__name__)


class OrderLifecycleManager:
    """Owns the set of protective orders tied to the last entry fill."""

    def __init__(self, broker: Broker, symbol: str, config: StrategyConfig) -> None:
        self.broker = broker
        self.symbol = symbol
        self.config = config
        self._open_orders: List[OrderTicket] = []

    @property
    def open_orders(self) -> Tuple[OrderTicket, ...]:
        return tuple(self._open_orders)

    def on_entry_filled(self, fill_price: float, fill_quantity: float) -> List[OrderTicket]:
        """Place the take-profit and stop-loss legs for a buy fill.

        Returns the tickets that were placed; a leg whose multiplier is
        zero is skipped.
        """
        placed: List[OrderTicket] = []
        if self.config.secure_profit_percent > 0:
            price = fill_price * self.config.secure_profit_percent
            logger.info("Secure profit for %s", price)
            placed.append(self._place(-fill_quantity, price, "take_profit"))
        if self.config.stop_loss_percent > 0:
            price = fill_price * self.config.stop_loss_percent
            logger.info("Stop loss for %s", price)
            placed.append(self._place(-fill_quantity, price, "stop_loss"))
        return placed

    def on_exit_filled(self) -> int:
        return self.cancel_pending()

    def cancel_pending(self) -> int:
        """Cancel every tracked order that has not reached a terminal state.

        The tracked set is cleared afterwards.  Returns the number of
        cancel requests sent.
        """
        cancelled = 0
        for ticket in self._open_orders:
            if ticket.is_open:
                logger.debug("Cancelling order %s (%s)", ticket.order_id, ticket.tag)
                self.broker.cancel_order(ticket)
                cancelled += 1
        self._open_orders.clear()
        return cancelled

    def _place(self, quantity: float, price: float, tag: str) -> OrderTicket:
        ticket = self.broker.stop_limit_order(self.symbol, quantity, price, price, tag=tag)
        self._open_orders.append(ticket)
        return ticket
