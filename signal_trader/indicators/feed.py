"""
Indicator feed for historical replays.

Vectorised pandas calculations that turn a frame of consolidated bars
into one indicator reading per bar.  Each reading carries an
`is_ready` flag that stays false until the indicator has seen enough
bars to be meaningful:

- MACD: `slow_period + signal_period - 1` bars
- RSI: `period + 1` bars
- Parabolic SAR: 2 bars
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional
import pandas as pd

from ..config.schema import MACDConfig, RSIConfig, SARConfig, StrategyConfig
from ..strategy.signals import StrategyMode, parse_mode
from .readings import IndicatorReading, MACDReading, RSIReading, SARReading


logger = logging.getLogger(__name__)


def ema(data: pd.Series, period: int) -> pd.Series:
    return data.ewm(span=period, adjust=False).mean()


def macd(close: pd.Series, config: MACDConfig) -> pd.DataFrame:
    """MACD line, signal line and the fast/slow EMAs as columns."""
    fast = ema(close, config.fast_period)
    slow = ema(close, config.slow_period)
    line = fast - slow
    signal = ema(line, config.signal_period)
    return pd.DataFrame({'macd': line, 'signal': signal, 'fast': fast, 'slow': slow})


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """Relative Strength Index with Wilder smoothing (0-100)."""
    delta = close.diff()
    gain = delta.clip(lower=0.0)
    loss = -delta.clip(upper=0.0)
    avg_gain = gain.ewm(alpha=1.0 / period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1.0 / period, adjust=False).mean()
    rs = avg_gain / avg_loss
    values = 100.0 - 100.0 / (1.0 + rs)
    # No losses in the window: fully overbought
    values = values.where(avg_loss != 0, 100.0)
    return values


def parabolic_sar(high: pd.Series, low: pd.Series, config: SARConfig) -> pd.Series:
    """Wilder's Parabolic Stop-And-Reverse.

    Starts in an uptrend with the SAR at the first low.  The first value
    is NaN.
    """
    highs = high.to_numpy(dtype=float)
    lows = low.to_numpy(dtype=float)
    out = [math.nan] * len(highs)
    if len(highs) < 2:
        return pd.Series(out, index=high.index)

    is_long = True
    af = config.step
    ep = highs[0]
    sar = lows[0]
    for i in range(1, len(highs)):
        sar = sar + af * (ep - sar)
        prev = i - 2 if i >= 2 else i - 1
        if is_long:
            sar = min(sar, lows[i - 1], lows[prev])
            if lows[i] < sar:
                is_long = False
                sar = ep
                ep = lows[i]
                af = config.step
            elif highs[i] > ep:
                ep = highs[i]
                af = min(af + config.step, config.max_step)
        else:
            sar = max(sar, highs[i - 1], highs[prev])
            if highs[i] > sar:
                is_long = True
                sar = ep
                ep = highs[i]
                af = config.step
            elif lows[i] < ep:
                ep = lows[i]
                af = min(af + config.step, config.max_step)
        out[i] = sar
    return pd.Series(out, index=high.index)


def _macd_readings(df: pd.DataFrame, config: MACDConfig) -> List[IndicatorReading]:
    frame = macd(df['close'], config)
    warmup = config.slow_period + config.signal_period - 1
    return [
        MACDReading(
            value=float(row.macd),
            signal=float(row.signal),
            fast=float(row.fast),
            slow=float(row.slow),
            is_ready=i + 1 >= warmup,
        )
        for i, row in enumerate(frame.itertuples(index=False))
    ]


def _rsi_readings(df: pd.DataFrame, config: RSIConfig) -> List[IndicatorReading]:
    values = rsi(df['close'], config.period)
    warmup = config.period + 1
    return [
        RSIReading(value=float(v), is_ready=i + 1 >= warmup and not math.isnan(v))
        for i, v in enumerate(values)
    ]


def _sar_readings(df: pd.DataFrame, config: SARConfig) -> List[IndicatorReading]:
    values = parabolic_sar(df['high'], df['low'], config)
    return [
        SARReading(value=float(v), price=float(price), is_ready=not math.isnan(v))
        for v, price in zip(values, df['close'])
    ]


def compute_readings(df: pd.DataFrame, config: StrategyConfig) -> List[Optional[IndicatorReading]]:
    """Return one reading per row of `df` for the configured mode.

    `df` needs `high`, `low` and `close` columns.  An unknown mode is
    logged and yields no readings (all `None`).
    """
    try:
        mode = parse_mode(config.mode)
    except ValueError as exc:
        logger.error("%s; indicator feed disabled", exc)
        return [None] * len(df)

    if mode is StrategyMode.MACD:
        return list(_macd_readings(df, config.macd))
    if mode is StrategyMode.HISTOGRAM:
        return list(_sar_readings(df, config.sar))
    return list(_rsi_readings(df, config.rsi))
