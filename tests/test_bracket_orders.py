import os
import sys

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
for path in (PROJECT_ROOT, CURRENT_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

from signal_trader.config.schema import StrategyConfig
from signal_trader.execution.models import OrderStatus
from signal_trader.strategy.bracket_orders import OrderLifecycleManager
from recording_broker import RecordingBroker

import unittest


class TestBracketCreation(unittest.TestCase):
    def test_buy_fill_places_take_profit_and_stop_loss(self) -> None:
        broker = RecordingBroker()
        cfg = StrategyConfig(secure_profit_percent=1.15, stop_loss_percent=0.98)
        manager = OrderLifecycleManager(broker, "LTCUSD", cfg)

        placed = manager.on_entry_filled(fill_price=100.0, fill_quantity=50.0)

        self.assertEqual(len(placed), 2)
        take_profit, stop_loss = placed
        self.assertEqual(take_profit.quantity, -50.0)
        self.assertAlmostEqual(take_profit.stop_price, 115.0)
        self.assertEqual(take_profit.stop_price, take_profit.limit_price)
        self.assertEqual(take_profit.tag, "take_profit")
        self.assertEqual(stop_loss.quantity, -50.0)
        self.assertAlmostEqual(stop_loss.stop_price, 98.0)
        self.assertEqual(stop_loss.stop_price, stop_loss.limit_price)
        self.assertEqual(stop_loss.tag, "stop_loss")
        self.assertEqual(manager.open_orders, (take_profit, stop_loss))

    def test_zero_multiplier_skips_leg(self) -> None:
        broker = RecordingBroker()
        manager = OrderLifecycleManager(
            broker, "LTCUSD", StrategyConfig(secure_profit_percent=0.0, stop_loss_percent=0.98)
        )
        placed = manager.on_entry_filled(100.0, 10.0)
        self.assertEqual(len(placed), 1)
        self.assertAlmostEqual(placed[0].stop_price, 98.0)

        broker = RecordingBroker()
        manager = OrderLifecycleManager(
            broker, "LTCUSD", StrategyConfig(secure_profit_percent=1.15, stop_loss_percent=0.0)
        )
        placed = manager.on_entry_filled(100.0, 10.0)
        self.assertEqual(len(placed), 1)
        self.assertAlmostEqual(placed[0].stop_price, 115.0)

    def test_both_disabled_places_nothing(self) -> None:
        broker = RecordingBroker()
        manager = OrderLifecycleManager(
            broker, "LTCUSD", StrategyConfig(secure_profit_percent=0.0, stop_loss_percent=0.0)
        )
        self.assertEqual(manager.on_entry_filled(100.0, 10.0), [])
        self.assertEqual(broker.placed, [])
        self.assertEqual(manager.open_orders, ())

    def test_repeated_entries_accumulate_until_cancelled(self) -> None:
        broker = RecordingBroker()
        manager = OrderLifecycleManager(broker, "LTCUSD", StrategyConfig())
        manager.on_entry_filled(100.0, 10.0)
        manager.on_entry_filled(101.0, 5.0)
        self.assertEqual(len(manager.open_orders), 4)


class TestCancellation(unittest.TestCase):
    def setUp(self) -> None:
        self.broker = RecordingBroker()
        self.manager = OrderLifecycleManager(self.broker, "LTCUSD", StrategyConfig())
        self.manager.on_entry_filled(100.0, 50.0)

    def test_cancel_pending_cancels_all_open_orders(self) -> None:
        self.assertEqual(self.manager.cancel_pending(), 2)
        self.assertEqual(len(self.broker.cancelled), 2)
        self.assertEqual(self.manager.open_orders, ())

    def test_cancel_pending_is_idempotent(self) -> None:
        self.manager.cancel_pending()
        self.assertEqual(self.manager.cancel_pending(), 0)
        self.assertEqual(len(self.broker.cancelled), 2)

    def test_terminal_orders_are_not_cancelled(self) -> None:
        take_profit, stop_loss = self.manager.open_orders
        take_profit.status = OrderStatus.FILLED
        self.assertEqual(self.manager.cancel_pending(), 1)
        self.assertEqual(self.broker.cancelled, [stop_loss])
        self.assertEqual(self.manager.open_orders, ())

    def test_new_orders_are_cancelled(self) -> None:
        for ticket in self.manager.open_orders:
            ticket.status = OrderStatus.NEW
        self.assertEqual(self.manager.cancel_pending(), 2)

    def test_exit_fill_clears_tracked_orders(self) -> None:
        self.assertEqual(self.manager.on_exit_filled(), 2)
        self.assertEqual(self.manager.open_orders, ())
        self.assertEqual(self.manager.on_exit_filled(), 0)


if __name__ == '__main__':
    unittest.main()
