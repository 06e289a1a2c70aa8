"""
Signal evaluation.

Each strategy mode has its own evaluator.  The mode is resolved once,
when the strategy is configured, by `build_evaluator()`; after that the
controller calls the chosen evaluator on every bar without looking at
the mode again.

Evaluators are pure: given the same reading and position they always
return the same intent and never touch the broker.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from ..config.schema import MACDConfig, RSIConfig, StrategyConfig
from ..execution.models import Position
from ..indicators.readings import IndicatorReading, MACDReading, RSIReading, SARReading


class OrderIntent(str, Enum):
    ENTER_LONG = "enter_long"
    EXIT_LONG = "exit_long"


class StrategyMode(str, Enum):
    MACD = "macd"
    HISTOGRAM = "histogram"  # trades on the Parabolic SAR
    RSI = "rsi"


def parse_mode(mode: str) -> StrategyMode:
    """Return the `StrategyMode` named by `mode`.

    Raises
    ------
    ValueError
        If `mode` is not one of ``macd``, ``histogram`` or ``rsi``.
    """
    try:
        return StrategyMode(str(mode).lower())
    except ValueError:
        choices = ", ".join(m.value for m in StrategyMode)
        raise ValueError(f"Unknown strategy mode {mode!r} (expected one of: {choices})") from None


class MACDSignalEvaluator:
    """Go long when MACD pulls away above its signal line, exit when it falls below."""

    def __init__(self, config: MACDConfig) -> None:
        self.tolerance = config.tolerance

    def evaluate(self, reading: MACDReading, position: Position) -> Optional[OrderIntent]:
        if not reading.is_ready or reading.fast == 0:
            return None
        delta = (reading.value - reading.signal) / reading.fast
        if not position.is_long and delta > self.tolerance:
            return OrderIntent.ENTER_LONG
        if position.is_long and delta < -self.tolerance:
            return OrderIntent.EXIT_LONG
        return None


class SARSignalEvaluator:
    """Go long while price trades above the SAR, exit once it drops below."""

    def evaluate(self, reading: SARReading, position: Position) -> Optional[OrderIntent]:
        if not reading.is_ready:
            return None
        if not position.is_long and reading.value < reading.price:
            return OrderIntent.ENTER_LONG
        if position.is_long and reading.value > reading.price:
            return OrderIntent.EXIT_LONG
        return None


class RSISignalEvaluator:
    """Buy oversold, sell overbought."""

    def __init__(self, config: RSIConfig) -> None:
        self.high = config.high
        self.low = config.low

    def evaluate(self, reading: RSIReading, position: Position) -> Optional[OrderIntent]:
        if not reading.is_ready:
            return None
        if not position.is_long and reading.value < self.low:
            return OrderIntent.ENTER_LONG
        if position.is_long and reading.value > self.high:
            return OrderIntent.EXIT_LONG
        return None


SignalEvaluator = Union[MACDSignalEvaluator, SARSignalEvaluator, RSISignalEvaluator]


def build_evaluator(config: StrategyConfig) -> SignalEvaluator:
    """Create the evaluator for the configured mode.

    Raises
    ------
    ValueError
        If the configured mode is unknown.
    """
    mode = parse_mode(config.mode)
    if mode is StrategyMode.MACD:
        return MACDSignalEvaluator(config.macd)
    if mode is StrategyMode.HISTOGRAM:
        return SARSignalEvaluator()
    return RSISignalEvaluator(config.rsi)


def evaluate(
    reading: IndicatorReading,
    position: Position,
    config: StrategyConfig,
) -> Optional[OrderIntent]:
    """One-shot evaluation of a single reading.

    Convenient for ad-hoc checks; long-running code should build the
    evaluator once with `build_evaluator()` instead.
    """
    return build_evaluator(config).evaluate(reading, position)
