"""
Indicator snapshots.

One reading is produced per consolidated bar by whatever computes the
indicators.  Readings are immutable; the strategy only looks at them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Union


@dataclass(frozen=True)
class MACDReading:
    """MACD line, signal line and the underlying EMAs."""
    value: float
    signal: float
    fast: float
    slow: float
    is_ready: bool = True

    def plot_values(self) -> Dict[str, Dict[str, float]]:
        return {
            'MACD': {'macd': self.value, 'signal': self.signal},
            'EMA': {'fast': self.fast, 'slow': self.slow},
        }


@dataclass(frozen=True)
class RSIReading:
    value: float
    is_ready: bool = True

    def plot_values(self) -> Dict[str, Dict[str, float]]:
        return {'RSI': {'rsi': self.value}}


@dataclass(frozen=True)
class SARReading:
    """Parabolic SAR level and the bar price it is compared against."""
    value: float
    price: float
    is_ready: bool = True

    def plot_values(self) -> Dict[str, Dict[str, float]]:
        return {'SAR': {'sar': self.value, 'price': self.price}}


IndicatorReading = Union[MACDReading, RSIReading, SARReading]
