"""
CSV data loader.

This module provides a class to load historical OHLCV data from CSV
files.  The expected schema for each CSV is:

```
time,open,high,low,close,volume
```

Only the `time`, `open`, `high`, `low` and `close` columns are
required.  Additional columns are ignored.  The `time` column
should contain ISO‑formatted timestamps.  Timestamps are localised to
(or converted to) the timezone specified in the configuration.
MetaTrader 5 tab-separated exports are accepted as well.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
import pandas as pd


logger = logging.getLogger(__name__)

OHLC = ["open", "high", "low", "close"]


class CSVDataLoader:
    """Load OHLCV data from CSV files for backtesting.

    Parameters
    ----------
    csv_dir : str
        Directory where the CSV files are located.  Each symbol’s file
        must be named `{SYMBOL}.csv`.
    timezone : str
        IANA timezone name used to localise timestamps.
    """

    def __init__(self, csv_dir: str, timezone: str) -> None:
        self.csv_dir = Path(csv_dir)
        self.timezone = timezone

    def load(self, symbol: str, start: Optional[str] = None, end: Optional[str] = None) -> pd.DataFrame:
        """Load bars for `symbol`, optionally restricted to `[start, end]`."""
        file_path = self.csv_dir / f"{symbol}.csv"
        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found for symbol {symbol}: {file_path}")

        df = self._read_standard(file_path)
        if df is None:
            df = self._read_mt5(file_path, symbol)

        if "volume" not in df.columns:
            df["volume"] = 0.0
        df = df[OHLC + ["volume"]].astype(float)

        if start is not None:
            df = df[df.index >= self._localise(pd.Timestamp(start))]
        if end is not None:
            df = df[df.index <= self._localise(pd.Timestamp(end))]
        logger.debug("Loaded %d bars for %s from %s", len(df), symbol, file_path)
        return df

    def _localise(self, ts: pd.Timestamp) -> pd.Timestamp:
        if ts.tzinfo is None:
            return ts.tz_localize(self.timezone)
        return ts.tz_convert(self.timezone)

    def _read_standard(self, file_path: Path) -> Optional[pd.DataFrame]:
        """Comma-separated file with a single `time` column, or `None`."""
        df = pd.read_csv(file_path)
        if "time" not in df.columns:
            return None
        df["time"] = pd.to_datetime(df["time"], errors="raise")
        df = df.set_index("time").sort_index()
        if df.index.tz is None:
            df.index = df.index.tz_localize(self.timezone)
        else:
            df.index = df.index.tz_convert(self.timezone)
        missing = [c for c in OHLC if c not in df.columns]
        if missing:
            raise ValueError(f"CSV file {file_path} is missing columns: {missing}")
        return df

    def _read_mt5(self, file_path: Path, symbol: str) -> pd.DataFrame:
        """MT5 export format: tab-separated with <DATE> and <TIME>."""
        df = pd.read_csv(file_path, sep="\t", engine="python")
        df.columns = [c.strip() for c in df.columns]

        required = ["<DATE>", "<TIME>", "<OPEN>", "<HIGH>", "<LOW>", "<CLOSE>"]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(
                f"Unrecognized CSV format for {symbol}. Missing columns: {missing}. "
                f"Found columns: {list(df.columns)}"
            )

        dt = df["<DATE>"].astype(str).str.strip() + " " + df["<TIME>"].astype(str).str.strip()
        ts = pd.to_datetime(dt, format="%Y.%m.%d %H:%M:%S", errors="coerce")
        if ts.isna().any():
            # fallback if format differs
            ts = pd.to_datetime(dt, errors="coerce")
        if ts.isna().any():
            bad = dt[ts.isna()].head(5).tolist()
            raise ValueError(f"Could not parse MT5 DATE/TIME for {symbol}. Examples: {bad}")

        volume = df["<TICKVOL>"] if "<TICKVOL>" in df.columns else 0.0
        out = pd.DataFrame(
            {
                "open": df["<OPEN>"].astype(float).to_numpy(),
                "high": df["<HIGH>"].astype(float).to_numpy(),
                "low": df["<LOW>"].astype(float).to_numpy(),
                "close": df["<CLOSE>"].astype(float).to_numpy(),
                "volume": pd.Series(volume, index=df.index).astype(float).to_numpy(),
            },
            index=pd.DatetimeIndex(ts),
        ).sort_index()
        out.index = out.index.tz_localize(self.timezone)
        return out


def consolidate(df: pd.DataFrame, every: int) -> pd.DataFrame:
    """Aggregate every `every` consecutive bars into one.

    The consolidated bar is stamped with the time of its last input bar.
    A trailing incomplete group is dropped.
    """
    if every < 1:
        raise ValueError(f"every must be >= 1 (got {every})")
    if every == 1 or df.empty:
        return df
    full = (len(df) // every) * every
    df = df.iloc[:full]
    groups = [i // every for i in range(full)]
    out = df.groupby(groups).agg(
        {"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"}
    )
    out.index = df.index[every - 1::every]
    return out
