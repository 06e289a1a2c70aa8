"""
Performance metrics.

Summary statistics for a replay, computed with pandas:

- return, drawdown and exposure from the per-bar equity curve;
- per-trade statistics from the completed round trips;
- a breakdown of how each position was closed (take profit, stop loss
  or a liquidation on an exit signal).
"""

from __future__ import annotations

import math
from typing import Any, Dict, List
import pandas as pd

from ..execution.models import Trade
from ..execution.backtest_exec import EquityPoint


# Tags the strategy puts on its closing orders
EXIT_REASONS = ("take_profit", "stop_loss", "liquidate")

TRADE_COLUMNS = [
    'entry_time', 'exit_time', 'symbol', 'quantity', 'entry_price',
    'exit_price', 'pnl', 'fees', 'reason',
]


def trades_frame(trades: List[Trade]) -> pd.DataFrame:
    """One row per round trip, with the return on the entry notional."""
    df = pd.DataFrame(
        [[getattr(t, col) for col in TRADE_COLUMNS] for t in trades],
        columns=TRADE_COLUMNS,
    )
    notional = (df['entry_price'] * df['quantity']).astype(float)
    df['return_pct'] = (df['pnl'].astype(float) / notional.where(notional != 0)).fillna(0.0)
    return df


def equity_frame(equity_curve: List[EquityPoint]) -> pd.DataFrame:
    """Per-bar equity, held quantity and drawdown from the running peak."""
    df = pd.DataFrame(
        {
            'equity': [p.equity for p in equity_curve],
            'quantity': [p.quantity for p in equity_curve],
        },
        index=pd.DatetimeIndex([p.timestamp for p in equity_curve], name='timestamp'),
        dtype=float,
    )
    peak = df['equity'].cummax()
    df['drawdown'] = ((peak - df['equity']) / peak).where(peak > 0, 0.0)
    return df


def exit_breakdown(trades: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """Count, share of trades, P&L and win rate per closing reason.

    The known reasons are always present so reports stay comparable
    between runs; other tags are appended as they occur.
    """
    total = len(trades)
    extra = sorted(set(trades['reason']) - set(EXIT_REASONS))
    breakdown: Dict[str, Dict[str, float]] = {}
    for reason in list(EXIT_REASONS) + extra:
        group = trades[trades['reason'] == reason]
        count = len(group)
        breakdown[reason] = {
            'count': count,
            'share': count / total if total else 0.0,
            'pnl': float(group['pnl'].sum()) if count else 0.0,
            'win_rate': float((group['pnl'] > 0).mean()) if count else 0.0,
        }
    return breakdown


def _sharpe(returns: pd.Series) -> float:
    """Per-trade Sharpe ratio scaled by the square root of the trade count."""
    if returns.empty:
        return 0.0
    std = returns.std(ddof=0)
    if not std > 0:
        return 0.0
    return float(returns.mean() / std * math.sqrt(len(returns)))


def compute_metrics(trades: List[Trade], equity_curve: List[EquityPoint]) -> Dict[str, Any]:
    """Compute the summary statistics of a replay.

    Parameters
    ----------
    trades : list of Trade
        Completed round trips.
    equity_curve : list of EquityPoint
        Equity and held quantity at the close of every replayed bar.

    Returns
    -------
    dict
        Scalar metrics plus an ``exits`` entry holding the per-reason
        breakdown.  `exposure_time` is the share of bars closed while
        holding a position.
    """
    tdf = trades_frame(trades)
    edf = equity_frame(equity_curve)

    metrics: Dict[str, Any] = {
        'total_return': 0.0,
        'max_drawdown': 0.0,
        'sharpe': 0.0,
        'win_rate': 0.0,
        'profit_factor': 0.0,
        'avg_trade': 0.0,
        'exposure_time': 0.0,
        'num_trades': len(tdf),
        'exits': exit_breakdown(tdf),
    }

    if not edf.empty:
        start, end = edf['equity'].iloc[0], edf['equity'].iloc[-1]
        metrics['total_return'] = float(end / start - 1.0) if start else 0.0
        metrics['max_drawdown'] = float(edf['drawdown'].max())
        metrics['exposure_time'] = float((edf['quantity'] > 0).mean())

    if not tdf.empty:
        pnl = tdf['pnl'].astype(float)
        gross_profit = pnl[pnl > 0].sum()
        gross_loss = -pnl[pnl < 0].sum()
        metrics['sharpe'] = _sharpe(tdf['return_pct'])
        metrics['win_rate'] = float((pnl > 0).mean())
        metrics['profit_factor'] = float(gross_profit / gross_loss) if gross_loss > 0 else 0.0
        metrics['avg_trade'] = float(pnl.mean())

    return metrics
