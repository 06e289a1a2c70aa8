"""
Backtest execution engine.

This module contains a `ReplayBroker`, a minimal order simulator that
implements the `Broker` interface over historical bars, and the
`BacktestEngine` class which loads data, computes indicator readings
and feeds bars and order events to the strategy controller one at a
time.

Fill rules:

- market orders fill at the open of the bar after they were placed,
  buys capped to the available cash;
- a sell stop-limit is triggered once a bar trades below its stop and
  then fills at its limit price as soon as a bar trades above the
  limit (buys mirror this);
- sells never take the position below zero.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set, Tuple
from dataclasses import dataclass
import pandas as pd

from ..config.schema import Config
from ..data.csv_data import CSVDataLoader, consolidate
from ..indicators.feed import compute_readings
from ..strategy.controller import StrategyController
from .models import (
    Bar,
    OrderDirection,
    OrderEvent,
    OrderStatus,
    OrderTicket,
    OrderType,
    Position,
    Trade,
)


logger = logging.getLogger(__name__)

# Quantities below this are treated as zero
EPSILON = 1e-9

PlotSeries = Dict[str, Dict[str, List[Tuple[pd.Timestamp, float]]]]


@dataclass
class EquityPoint:
    """Account equity and held quantity at the close of one bar."""
    timestamp: pd.Timestamp
    equity: float
    quantity: float = 0.0


class ReplayBroker:
    """Simulated single-account broker driven bar by bar."""

    def __init__(self, cash: float, fee_pct: float = 0.0) -> None:
        self.cash = cash
        self.fee_pct = fee_pct
        self.trades: List[Trade] = []
        self.equity_curve: List[EquityPoint] = []
        self.plots: PlotSeries = defaultdict(lambda: defaultdict(list))
        self._bar: Optional[Bar] = None
        self._next_id = 1
        self._orders: Dict[int, OrderTicket] = {}
        self._triggered: Set[int] = set()
        self._handlers: List[Callable[[OrderEvent], None]] = []
        self._events: List[OrderEvent] = []
        self._quantity: Dict[str, float] = defaultdict(float)
        self._avg_price: Dict[str, float] = defaultdict(float)
        self._entry_fees: Dict[str, float] = defaultdict(float)
        self._entry_time: Dict[str, pd.Timestamp] = {}

    # -- Broker interface -------------------------------------------------

    def position(self, symbol: str) -> Position:
        return Position(symbol=symbol, quantity=self._quantity[symbol])

    def set_holdings(self, symbol: str, target: float, tag: str = "") -> List[OrderTicket]:
        price = self._current_bar().close
        target_quantity = self.equity() * target / (price * (1.0 + self.fee_pct))
        delta = target_quantity - self._quantity[symbol]
        if abs(delta) < EPSILON:
            return []
        return [self._submit(symbol, delta, OrderType.MARKET, tag=tag)]

    def liquidate(self, symbol: str, tag: str = "") -> List[OrderTicket]:
        for ticket in self.open_orders(symbol):
            self.cancel_order(ticket)
        quantity = self._quantity[symbol]
        if abs(quantity) < EPSILON:
            return []
        return [self._submit(symbol, -quantity, OrderType.MARKET, tag=tag)]

    def stop_limit_order(
        self,
        symbol: str,
        quantity: float,
        stop_price: float,
        limit_price: float,
        tag: str = "",
    ) -> OrderTicket:
        return self._submit(
            symbol,
            quantity,
            OrderType.STOP_LIMIT,
            stop_price=stop_price,
            limit_price=limit_price,
            tag=tag,
        )

    def cancel_order(self, ticket: OrderTicket) -> None:
        if not ticket.is_open:
            return
        ticket.status = OrderStatus.CANCELED
        self._events.append(
            OrderEvent(
                order_id=ticket.order_id,
                symbol=ticket.symbol,
                status=OrderStatus.CANCELED,
                direction=ticket.direction,
                time=self._bar.time if self._bar else None,
            )
        )

    # -- Replay -----------------------------------------------------------

    def subscribe(self, handler: Callable[[OrderEvent], None]) -> None:
        self._handlers.append(handler)

    def plot(self, chart: str, series: str, value: float) -> None:
        self.plots[chart][series].append((self._current_bar().time, value))

    def open_orders(self, symbol: Optional[str] = None) -> List[OrderTicket]:
        return [
            t for t in self._orders.values()
            if t.is_open and (symbol is None or t.symbol == symbol)
        ]

    def equity(self) -> float:
        if self._bar is None:
            return self.cash
        return self.cash + sum(q * self._bar.close for q in self._quantity.values())

    def process_bar(self, bar: Bar) -> None:
        """Advance to `bar` and fill whatever orders it reaches.

        Each fill is reported to the subscribers before the next order
        is examined, so a fill that leads to cancelling another order is
        seen before that order could fill.
        """
        self._bar = bar
        for ticket in self.open_orders():
            if not ticket.is_open:
                continue
            if ticket.order_type is OrderType.MARKET:
                self._fill(ticket, bar.open)
            else:
                price = self._stop_limit_price(ticket, bar)
                if price is not None:
                    self._fill(ticket, price)
            self.dispatch_events()

    def dispatch_events(self) -> None:
        while self._events:
            event = self._events.pop(0)
            for handler in self._handlers:
                handler(event)

    def record_equity(self) -> None:
        bar = self._current_bar()
        self.equity_curve.append(
            EquityPoint(
                timestamp=bar.time,
                equity=self.equity(),
                quantity=sum(self._quantity.values()),
            )
        )

    # -- internals --------------------------------------------------------

    def _current_bar(self) -> Bar:
        if self._bar is None:
            raise ValueError("No bar has been processed yet")
        return self._bar

    def _submit(
        self,
        symbol: str,
        quantity: float,
        order_type: OrderType,
        stop_price: Optional[float] = None,
        limit_price: Optional[float] = None,
        tag: str = "",
    ) -> OrderTicket:
        ticket = OrderTicket(
            order_id=self._next_id,
            symbol=symbol,
            quantity=quantity,
            order_type=order_type,
            stop_price=stop_price,
            limit_price=limit_price,
            status=OrderStatus.SUBMITTED,
            tag=tag,
            submitted_at=self._bar.time if self._bar else None,
        )
        self._next_id += 1
        self._orders[ticket.order_id] = ticket
        logger.debug("Submitted %s %s %s (%s)", order_type.value, symbol, quantity, tag)
        return ticket

    def _stop_limit_price(self, ticket: OrderTicket, bar: Bar) -> Optional[float]:
        stop, limit = ticket.stop_price, ticket.limit_price
        if ticket.quantity < 0:
            if ticket.order_id not in self._triggered and bar.low < stop:
                self._triggered.add(ticket.order_id)
            if ticket.order_id in self._triggered and bar.high > limit:
                return limit
        else:
            if ticket.order_id not in self._triggered and bar.high > stop:
                self._triggered.add(ticket.order_id)
            if ticket.order_id in self._triggered and bar.low < limit:
                return limit
        return None

    def _reject(self, ticket: OrderTicket) -> None:
        ticket.status = OrderStatus.INVALID
        self._events.append(
            OrderEvent(
                order_id=ticket.order_id,
                symbol=ticket.symbol,
                status=OrderStatus.INVALID,
                direction=ticket.direction,
                time=self._bar.time,
            )
        )

    def _fill(self, ticket: OrderTicket, price: float) -> None:
        symbol = ticket.symbol
        held = self._quantity[symbol]
        quantity = ticket.quantity
        if quantity > 0:
            affordable = self.cash / (price * (1.0 + self.fee_pct))
            quantity = min(quantity, affordable)
        else:
            quantity = max(quantity, -held)
        if abs(quantity) < EPSILON:
            self._reject(ticket)
            return

        notional = abs(quantity) * price
        fee = notional * self.fee_pct
        if quantity > 0:
            if held < EPSILON:
                self._entry_time[symbol] = self._bar.time
            self._avg_price[symbol] = (held * self._avg_price[symbol] + notional) / (held + quantity)
            self._entry_fees[symbol] += fee
            self.cash -= notional + fee
        else:
            share = abs(quantity) / held
            entry_fee = self._entry_fees[symbol] * share
            self._entry_fees[symbol] -= entry_fee
            self.cash += notional - fee
            self.trades.append(
                Trade(
                    symbol=symbol,
                    quantity=abs(quantity),
                    entry_price=self._avg_price[symbol],
                    exit_price=price,
                    entry_time=self._entry_time.get(symbol, self._bar.time),
                    exit_time=self._bar.time,
                    pnl=(price - self._avg_price[symbol]) * abs(quantity) - entry_fee - fee,
                    fees=entry_fee + fee,
                    reason=ticket.tag or ticket.order_type.value,
                )
            )

        held += quantity
        self._quantity[symbol] = 0.0 if abs(held) < EPSILON else held
        ticket.quantity = quantity
        ticket.status = OrderStatus.FILLED
        self._events.append(
            OrderEvent(
                order_id=ticket.order_id,
                symbol=symbol,
                status=OrderStatus.FILLED,
                direction=ticket.direction,
                fill_price=price,
                fill_quantity=quantity,
                time=self._bar.time,
            )
        )


class BacktestEngine:
    """Replay historical bars for the configured symbol through the strategy."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.data_loader = CSVDataLoader(config.data.csv_dir, config.data.timezone)

    def run(self, df: Optional[pd.DataFrame] = None) -> Tuple[List[Trade], List[EquityPoint], PlotSeries]:
        """Execute the backtest.

        Parameters
        ----------
        df : pandas.DataFrame, optional
            Raw bars to replay.  When omitted they are loaded from the
            configured CSV directory.

        Returns
        -------
        trades : list of Trade
            Completed round trips including P&L and fees.
        equity_curve : list of EquityPoint
            Equity at the close of every consolidated bar.
        plots : dict
            Diagnostic series emitted by the strategy, by chart name.
        """
        cfg = self.config
        if df is None:
            df = self.data_loader.load(cfg.symbol, cfg.backtest.start, cfg.backtest.end)
        bars = consolidate(df, int(cfg.data.every))
        readings = compute_readings(bars, cfg.strategy)

        broker = ReplayBroker(cfg.backtest.cash, cfg.backtest.fee_pct)
        controller = StrategyController(cfg, broker, plot=broker.plot)
        broker.subscribe(controller.on_order_event)

        logger.info(
            "Replaying %d bars of %s (%s x%d) in %s mode",
            len(bars),
            cfg.symbol,
            cfg.timeframe,
            int(cfg.data.every),
            cfg.strategy.mode,
        )
        for (ts, row), reading in zip(bars.iterrows(), readings):
            bar = Bar(
                time=ts,
                open=float(row['open']),
                high=float(row['high']),
                low=float(row['low']),
                close=float(row['close']),
                volume=float(row['volume']) if 'volume' in row else 0.0,
            )
            broker.process_bar(bar)
            controller.on_bar(bar, reading)
            broker.dispatch_events()
            broker.record_equity()

        plots = {chart: dict(series) for chart, series in broker.plots.items()}
        return broker.trades, broker.equity_curve, plots
