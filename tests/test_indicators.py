import math
import os
import sys
import pandas as pd

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from signal_trader.config.schema import MACDConfig, RSIConfig, SARConfig, StrategyConfig
from signal_trader.indicators.feed import compute_readings, macd, parabolic_sar, rsi
from signal_trader.indicators.readings import MACDReading, RSIReading, SARReading

import unittest


def _frame(closes, highs=None, lows=None) -> pd.DataFrame:
    index = pd.date_range("2017-12-01 00:00", periods=len(closes), freq="min", tz="UTC")
    return pd.DataFrame(
        {
            "open": closes,
            "high": highs if highs is not None else closes,
            "low": lows if lows is not None else closes,
            "close": closes,
            "volume": [0.0] * len(closes),
        },
        index=index,
    )


class TestMACD(unittest.TestCase):
    def test_constant_prices_give_flat_lines(self) -> None:
        frame = macd(pd.Series([50.0] * 10), MACDConfig())
        self.assertTrue((frame["macd"].abs() < 1e-12).all())
        self.assertTrue((frame["signal"].abs() < 1e-12).all())
        self.assertTrue(((frame["fast"] - 50.0).abs() < 1e-12).all())

    def test_first_ready_bar(self) -> None:
        # 26 + 9 - 1 = 34 bars, so index 33 is the first ready reading
        df = _frame([100.0 + i for i in range(40)])
        readings = compute_readings(df, StrategyConfig(mode="macd"))
        self.assertEqual(len(readings), 40)
        self.assertIsInstance(readings[0], MACDReading)
        self.assertFalse(readings[32].is_ready)
        self.assertTrue(readings[33].is_ready)
        self.assertTrue(all(r.is_ready for r in readings[33:]))


class TestRSI(unittest.TestCase):
    def test_rising_prices_give_100(self) -> None:
        values = rsi(pd.Series([float(i) for i in range(1, 21)]), period=14)
        self.assertTrue(math.isnan(values.iloc[0]))
        self.assertTrue((values.iloc[1:] == 100.0).all())

    def test_falling_prices_give_0(self) -> None:
        values = rsi(pd.Series([float(i) for i in range(20, 0, -1)]), period=14)
        self.assertTrue((values.iloc[1:] == 0.0).all())

    def test_first_ready_bar(self) -> None:
        # period + 1 = 15 bars, so index 14 is the first ready reading
        df = _frame([float(i) for i in range(1, 21)])
        cfg = StrategyConfig(mode="rsi", rsi=RSIConfig(period=14))
        readings = compute_readings(df, cfg)
        self.assertIsInstance(readings[0], RSIReading)
        self.assertFalse(readings[13].is_ready)
        self.assertTrue(readings[14].is_ready)
        self.assertEqual(readings[14].value, 100.0)


class TestParabolicSAR(unittest.TestCase):
    def test_flip_from_long_to_short(self) -> None:
        highs = pd.Series([10.0, 11.0, 12.0, 10.0, 9.0])
        lows = pd.Series([9.0, 10.0, 11.0, 8.0, 7.0])
        values = parabolic_sar(highs, lows, SARConfig(step=0.02, max_step=0.2))

        self.assertTrue(math.isnan(values.iloc[0]))
        # Uptrend: the SAR is held at the lowest of the two prior lows
        self.assertEqual(values.iloc[1], 9.0)
        self.assertEqual(values.iloc[2], 9.0)
        # Bar 3 trades below 9 + 0.06 * (12 - 9) = 9.18: reverse to the extreme point
        self.assertEqual(values.iloc[3], 12.0)
        # Downtrend: 12 + 0.02 * (8 - 12) = 11.92, lifted to the prior high of 12
        self.assertEqual(values.iloc[4], 12.0)

    def test_single_bar_is_never_ready(self) -> None:
        values = parabolic_sar(pd.Series([10.0]), pd.Series([9.0]), SARConfig())
        self.assertTrue(math.isnan(values.iloc[0]))

    def test_ready_from_second_bar(self) -> None:
        df = _frame(
            [9.5, 10.5, 11.5, 8.5, 7.5],
            highs=[10.0, 11.0, 12.0, 10.0, 9.0],
            lows=[9.0, 10.0, 11.0, 8.0, 7.0],
        )
        readings = compute_readings(df, StrategyConfig(mode="histogram"))
        self.assertIsInstance(readings[0], SARReading)
        self.assertFalse(readings[0].is_ready)
        self.assertTrue(all(r.is_ready for r in readings[1:]))
        self.assertEqual([r.price for r in readings], [9.5, 10.5, 11.5, 8.5, 7.5])
        # Price below the SAR once the trend has reversed
        self.assertGreater(readings[3].value, readings[3].price)


class TestComputeReadings(unittest.TestCase):
    def test_unknown_mode_yields_no_readings(self) -> None:
        df = _frame([1.0, 2.0, 3.0])
        with self.assertLogs("signal_trader.indicators.feed", level="ERROR"):
            readings = compute_readings(df, StrategyConfig(mode="x"))
        self.assertEqual(readings, [None] * len(df))


if __name__ == '__main__':
    unittest.main()
