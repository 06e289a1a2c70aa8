"""
Report generation.

Writes the artefacts of a replay into one directory:

- `trades.csv` – round trips with their return and closing reason
- `equity_curve.csv` – equity, held quantity and drawdown per bar
- `exits_by_reason.csv` – how often each closing order ended a trade
- `summary.json` – all metrics, including the per-reason breakdown
- `equity_curve.png` – equity with exits marked by reason, over drawdown
- `<chart>.png` – one chart per diagnostic series plotted by the strategy
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
import pandas as pd
import matplotlib

# Use non‑interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..execution.models import Trade
from ..execution.backtest_exec import EquityPoint, PlotSeries
from .metrics import compute_metrics, equity_frame, trades_frame


logger = logging.getLogger(__name__)

EXIT_MARKERS = {
    'take_profit': ('^', 'tab:green'),
    'stop_loss': ('v', 'tab:red'),
    'liquidate': ('o', 'tab:blue'),
}


def _chart_filename(chart: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", chart).strip("_").lower() + ".png"


def _plot_equity(edf: pd.DataFrame, tdf: pd.DataFrame, path: Path) -> None:
    fig, (ax_eq, ax_dd) = plt.subplots(
        2, 1, figsize=(10, 6), sharex=True, gridspec_kw={'height_ratios': [3, 1]}
    )
    if not edf.empty:
        ax_eq.plot(edf.index, edf['equity'], linewidth=1.5, color='black')
        for reason, group in tdf.groupby('reason'):
            marker, color = EXIT_MARKERS.get(reason, ('x', 'tab:gray'))
            exits = edf['equity'].reindex(pd.DatetimeIndex(group['exit_time']))
            ax_eq.scatter(exits.index, exits.values, marker=marker, color=color, label=reason, zorder=3)
        if not tdf.empty:
            ax_eq.legend(loc='upper left')
        ax_dd.fill_between(edf.index, -edf['drawdown'], 0.0, color='tab:red', alpha=0.4)
        fig.autofmt_xdate()
    ax_eq.set_title('Equity Curve')
    ax_eq.set_ylabel('Equity')
    ax_dd.set_ylabel('Drawdown')
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def _plot_chart(chart: str, series: Dict[str, list], path: Path) -> None:
    fig, ax = plt.subplots(figsize=(10, 4))
    for name, points in series.items():
        if not points:
            continue
        times, values = zip(*points)
        ax.plot(list(times), list(values), linewidth=1.0, label=name)
    ax.set_title(chart)
    ax.legend(loc='upper left')
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def generate_backtest_report(
    trades: List[Trade],
    equity_curve: List[EquityPoint],
    out_dir: str = "results",
    plots: Optional[PlotSeries] = None,
) -> Dict[str, Any]:
    """Write the report files for a replay into `out_dir`.

    The directory is created if needed.  Returns the computed metrics.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    tdf = trades_frame(trades)
    edf = equity_frame(equity_curve)
    metrics = compute_metrics(trades, equity_curve)

    tdf.to_csv(out / 'trades.csv', index=False)
    edf.to_csv(out / 'equity_curve.csv')
    exits = pd.DataFrame.from_dict(metrics['exits'], orient='index')
    exits.index.name = 'reason'
    exits.to_csv(out / 'exits_by_reason.csv')
    with (out / 'summary.json').open('w', encoding='utf-8') as fh:
        json.dump(metrics, fh, indent=2, ensure_ascii=False)

    _plot_equity(edf, tdf, out / 'equity_curve.png')
    for chart, series in (plots or {}).items():
        _plot_chart(chart, series, out / _chart_filename(chart))

    logger.debug("Report written to %s", out)
    return metrics
