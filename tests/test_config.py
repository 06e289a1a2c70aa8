import dataclasses
import os
import sys
import tempfile

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from signal_trader.config.schema import Config, load_config

import unittest


class TestLoadConfig(unittest.TestCase):
    def _load(self, text: str) -> Config:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.yaml")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(text)
            return load_config(path)

    def test_empty_file_gives_defaults(self) -> None:
        cfg = self._load("")
        self.assertEqual(cfg, Config())
        self.assertEqual(cfg.symbol, "LTCUSD")
        self.assertEqual(cfg.strategy.mode, "macd")
        self.assertEqual(cfg.strategy.macd.tolerance, 0.0025)
        self.assertEqual(cfg.strategy.secure_profit_percent, 1.15)
        self.assertEqual(cfg.strategy.stop_loss_percent, 0.98)

    def test_partial_override_keeps_other_defaults(self) -> None:
        cfg = self._load(
            "symbol: BTCUSD\n"
            "strategy:\n"
            "  mode: RSI\n"
            "  rsi:\n"
            "    low: 25\n"
            "  stop_loss_percent: 0\n"
            "data:\n"
            "  every: 5\n"
        )
        self.assertEqual(cfg.symbol, "BTCUSD")
        self.assertEqual(cfg.strategy.mode, "rsi")
        self.assertEqual(cfg.strategy.rsi.low, 25)
        self.assertEqual(cfg.strategy.rsi.high, 70.0)
        self.assertEqual(cfg.strategy.rsi.period, 14)
        self.assertEqual(cfg.strategy.stop_loss_percent, 0.0)
        self.assertEqual(cfg.strategy.secure_profit_percent, 1.15)
        self.assertEqual(cfg.data.every, 5)
        self.assertEqual(cfg.data.timezone, "UTC")

    def test_unknown_mode_is_accepted_at_load_time(self) -> None:
        cfg = self._load("strategy:\n  mode: bollinger\n")
        self.assertEqual(cfg.strategy.mode, "bollinger")

    def test_negative_multiplier_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._load("strategy:\n  secure_profit_percent: -1\n")

    def test_non_positive_every_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._load("data:\n  every: 0\n")

    def test_config_is_immutable(self) -> None:
        cfg = self._load("")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            cfg.strategy.mode = "rsi"


if __name__ == '__main__':
    unittest.main()
