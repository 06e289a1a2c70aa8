"""
Configuration schema and loader.

This module defines dataclasses that mirror the expected structure of
the YAML configuration file (`config.yaml`).  A helper function
`load_config()` reads a YAML file from disk and returns an instance
of `Config` populated with reasonable defaults for any missing
fields.

All configuration objects are frozen: parameters are chosen once at
startup and never change while a strategy is running.  When extending
the configuration, add new fields to the appropriate dataclass and
update `load_config()` accordingly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import yaml


@dataclass(frozen=True)
class MACDConfig:
    """Parameters of the MACD mode.

    Attributes
    ----------
    fast_period, slow_period, signal_period : int
        EMA periods of the fast line, the slow line and the signal line.
    tolerance : float
        Minimum distance between MACD and signal, relative to the fast
        EMA, before the strategy acts (``0.0025`` = 0.25 %).
    """

    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9
    tolerance: float = 0.0025


@dataclass(frozen=True)
class SARConfig:
    """Parabolic SAR acceleration factor settings."""

    step: float = 0.02
    max_step: float = 0.2


@dataclass(frozen=True)
class RSIConfig:
    """RSI period and the oversold/overbought thresholds."""

    period: int = 14
    high: float = 70.0
    low: float = 30.0


@dataclass(frozen=True)
class StrategyConfig:
    """Strategy mode and its thresholds.

    Attributes
    ----------
    mode : str
        ``macd``, ``histogram`` (Parabolic SAR) or ``rsi``.  The value is
        not validated here; an unknown mode is reported when the
        strategy starts and no trades are taken.
    secure_profit_percent : float
        Multiplier applied to the entry fill price for the take-profit
        order (``1.15`` = sell at +15 %).  ``0`` disables the order.
    stop_loss_percent : float
        Multiplier applied to the entry fill price for the stop-loss
        order (``0.98`` = sell at -2 %).  ``0`` disables the order.
    """

    mode: str = "macd"
    macd: MACDConfig = field(default_factory=MACDConfig)
    sar: SARConfig = field(default_factory=SARConfig)
    rsi: RSIConfig = field(default_factory=RSIConfig)
    secure_profit_percent: float = 1.15
    stop_loss_percent: float = 0.98


@dataclass(frozen=True)
class DataConfig:
    """Data source configuration.

    Attributes
    ----------
    csv_dir : str
        Directory containing one `{SYMBOL}.csv` file per instrument.
    timezone : str
        IANA timezone name used for interpreting timestamps.
    every : int
        Number of raw bars aggregated into one consolidated bar.
    """

    csv_dir: str = "data"
    timezone: str = "UTC"
    every: int = 1


@dataclass(frozen=True)
class BacktestConfig:
    """Replay settings: starting cash, optional date window and fees.

    `fee_pct` is charged on the notional of every fill (``0.003`` =
    0.3 %).
    """

    cash: float = 100_000.0
    start: Optional[str] = None
    end: Optional[str] = None
    fee_pct: float = 0.0


@dataclass(frozen=True)
class Config:
    """Root configuration for the trading program.

    Attributes
    ----------
    symbol : str
        The single traded instrument (e.g. ``"LTCUSD"``).
    timeframe : str
        Resolution of the raw bars; reported in the replay log.
    strategy : StrategyConfig
        Mode, indicator parameters and bracket multipliers.
    data : DataConfig
        Data source configuration.
    backtest : BacktestConfig
        Replay configuration.
    """

    symbol: str = "LTCUSD"
    timeframe: str = "1min"
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    data: DataConfig = field(default_factory=DataConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _build_strategy(raw: Dict[str, Any]) -> StrategyConfig:
    secure_profit = float(raw['secure_profit_percent'])
    stop_loss = float(raw['stop_loss_percent'])
    if secure_profit < 0 or stop_loss < 0:
        raise ValueError(
            "secure_profit_percent and stop_loss_percent must be >= 0 "
            f"(got {secure_profit} and {stop_loss})"
        )
    return StrategyConfig(
        mode=str(raw['mode']).lower(),
        macd=MACDConfig(**raw['macd']),
        sar=SARConfig(**raw['sar']),
        rsi=RSIConfig(**raw['rsi']),
        secure_profit_percent=secure_profit,
        stop_loss_percent=stop_loss,
    )


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated configuration object.  Missing fields are filled with
        sensible defaults defined in the dataclasses.

    Raises
    ------
    ValueError
        If a bracket multiplier is negative or `data.every` is not a
        positive integer.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}

    # Build nested dictionaries representing the default dataclasses
    defaults: Dict[str, Any] = {
        'symbol': "LTCUSD",
        'timeframe': "1min",
        'strategy': {
            'mode': "macd",
            'macd': {
                'fast_period': 12,
                'slow_period': 26,
                'signal_period': 9,
                'tolerance': 0.0025,
            },
            'sar': {
                'step': 0.02,
                'max_step': 0.2,
            },
            'rsi': {
                'period': 14,
                'high': 70.0,
                'low': 30.0,
            },
            'secure_profit_percent': 1.15,
            'stop_loss_percent': 0.98,
        },
        'data': {
            'csv_dir': 'data',
            'timezone': 'UTC',
            'every': 1,
        },
        'backtest': {
            'cash': 100_000.0,
            'start': None,
            'end': None,
            'fee_pct': 0.0,
        },
    }

    merged = _merge_dict(defaults, raw)

    data_cfg = DataConfig(**merged['data'])
    if int(data_cfg.every) < 1:
        raise ValueError(f"data.every must be a positive integer (got {data_cfg.every})")

    cfg = Config(
        symbol=str(merged.get('symbol', 'LTCUSD')),
        timeframe=str(merged.get('timeframe', '1min')),
        strategy=_build_strategy(merged['strategy']),
        data=data_cfg,
        backtest=BacktestConfig(**merged['backtest']),
    )
    return cfg
