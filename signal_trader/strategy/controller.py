"""
Strategy controller.

Connects the signal evaluator and the protective order bookkeeping to
the outside world.  Whatever drives the strategy (the replay engine,
a test, a live adapter) calls `on_bar()` once per consolidated bar and
`on_order_event()` for every order status change, one call at a time.

Position states are Flat and Long.  A buy fill moves the strategy to
Long and places the protective orders; any sell fill moves it back to
Flat and cancels whatever protective order is still pending.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..config.schema import Config
from ..execution.broker import Broker
from ..execution.models import Bar, OrderDirection, OrderEvent, OrderStatus
from ..indicators.readings import IndicatorReading
from .bracket_orders import OrderLifecycleManager
from .signals import OrderIntent, SignalEvaluator, build_evaluator


logger = logging.getLogger(__name__)

PlotFn = Callable[[str, str, float], None]


class StrategyController:
    """Trade a single instrument on indicator signals."""

    def __init__(self, config: Config, broker: Broker, plot: Optional[PlotFn] = None) -> None:
        self.config = config
        self.symbol = config.symbol
        self.broker = broker
        self.plot = plot
        self.orders = OrderLifecycleManager(broker, config.symbol, config.strategy)
        self.evaluator: Optional[SignalEvaluator]
        try:
            self.evaluator = build_evaluator(config.strategy)
        except ValueError as exc:
            logger.error("%s; no trades will be placed", exc)
            self.evaluator = None

    def on_bar(self, bar: Bar, reading: Optional[IndicatorReading]) -> Optional[OrderIntent]:
        """Evaluate one consolidated bar and act on the resulting intent."""
        if self.evaluator is None:
            logger.warning("Skipping bar %s: invalid strategy mode %r", bar.time, self.config.strategy.mode)
            return None
        if reading is None or not reading.is_ready:
            return None

        position = self.broker.position(self.symbol)
        intent = self.evaluator.evaluate(reading, position)

        if intent is OrderIntent.ENTER_LONG:
            self.orders.cancel_pending()
            logger.info("Buy at %s", bar.price)
            self.broker.set_holdings(self.symbol, 1.0, tag="entry")
        elif intent is OrderIntent.EXIT_LONG:
            self.orders.cancel_pending()
            logger.info("Sell at %s", bar.price)
            self.broker.liquidate(self.symbol, tag="liquidate")

        self._plot(bar, reading)
        return intent

    def on_order_event(self, event: OrderEvent) -> None:
        """React to an order status change.

        Only complete fills are acted on.  Partial fills and other
        status changes are not handled.
        """
        if event.status is not OrderStatus.FILLED:
            if event.status is OrderStatus.INVALID:
                logger.warning("Order rejected: %s", event)
            else:
                logger.debug("Ignoring order event: %s", event)
            return

        logger.info("%s", event)
        if event.direction is OrderDirection.BUY:
            self.orders.on_entry_filled(event.fill_price, event.fill_quantity)
        else:
            self.orders.on_exit_filled()

    def _plot(self, bar: Bar, reading: IndicatorReading) -> None:
        if self.plot is None:
            return
        for chart, series in reading.plot_values().items():
            for name, value in series.items():
                self.plot(chart, name, value)
        self.plot(self.symbol, 'open', bar.open)
