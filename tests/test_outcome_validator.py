"""
Unit tests for outcome validation against an in-memory price feed.
"""
from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.price_feed import PriceFeed, PriceFeedError
from core.models import SignalRecord
from core.outcome_validator import OutcomeValidator, check_outcome, check_outcome_from_candles
from core.settings import SettingsV1, ValidatorConfig
from storage.sqlite_store import SqliteStore


NOW = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


class FakeFeed(PriceFeed):
    def __init__(self, prices=None, candles=None, fail=()):
        super().__init__()
        self.prices = prices or {}
        self.candles = candles or {}
        self.fail = set(fail)
        self.price_calls = 0

    def _fetch_price(self, symbol):
        self.price_calls += 1
        if symbol in self.fail:
            raise PriceFeedError("feed down")
        return self.prices[symbol]

    def _fetch_candles(self, symbol, interval, count):
        if symbol in self.fail or symbol not in self.candles:
            raise PriceFeedError("no candles")
        return pd.DataFrame(self.candles[symbol])


class _FrozenPending:
    """Store wrapper that keeps returning a pending list read earlier."""

    def __init__(self, store, pending):
        self._store = store
        self._pending = pending

    def list_pending_signals(self):
        return self._pending

    def __getattr__(self, name):
        return getattr(self._store, name)


def _row(signal_id: str, **overrides) -> dict:
    row = {
        "signal_id": signal_id,
        "symbol": "EUR/USD",
        "type": "LONG",
        "confidence": 85.0,
        "entry_price": 1.1000,
        "stop_loss": 1.0980,
        "tp1": 1.1040,
        "strategy_version": "1.0.0",
        "created_at": (NOW - timedelta(hours=2)).isoformat(timespec="seconds"),
        "expires_at": (NOW + timedelta(hours=46)).isoformat(timespec="seconds"),
    }
    row.update(overrides)
    return row


def _candle(minutes_after_creation: int, high: float, low: float) -> dict:
    t = NOW - timedelta(hours=2) + timedelta(minutes=minutes_after_creation)
    return {"time": pd.Timestamp(t), "open": low, "high": high, "low": low, "close": high}


class TestCheckOutcome(unittest.TestCase):
    def setUp(self):
        self.long = SignalRecord.from_row(_row("l"))
        self.short = SignalRecord.from_row(_row("s", type="SHORT", stop_loss=1.1020, tp1=1.0960))

    def test_long(self):
        self.assertEqual(check_outcome(self.long, 1.1040).outcome, "TP1_HIT")
        self.assertEqual(check_outcome(self.long, 1.0975).outcome, "STOP_HIT")
        self.assertIsNone(check_outcome(self.long, 1.1010))

    def test_short(self):
        self.assertEqual(check_outcome(self.short, 1.0950).outcome, "TP1_HIT")
        self.assertEqual(check_outcome(self.short, 1.1020).outcome, "STOP_HIT")
        self.assertIsNone(check_outcome(self.short, 1.0990))

    def test_candles_first_touch(self):
        candles = [_candle(-10, 1.1100, 1.0900), _candle(5, 1.1010, 1.0990), _candle(10, 1.1045, 1.1000)]
        res = check_outcome_from_candles(self.long, candles)
        self.assertEqual(res.outcome, "TP1_HIT")
        self.assertEqual(res.price, 1.1040)
        self.assertEqual(pd.Timestamp(res.time_utc), candles[2]["time"])

    def test_candle_touching_both_is_stop(self):
        res = check_outcome_from_candles(self.long, [_candle(5, 1.1050, 1.0970)])
        self.assertEqual(res.outcome, "STOP_HIT")
        self.assertEqual(res.price, 1.0980)

    def test_candles_before_creation_ignored(self):
        self.assertIsNone(check_outcome_from_candles(self.long, [_candle(-5, 1.1100, 1.0900)]))


class TestOutcomeValidator(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SqliteStore(Path(self._tmp.name) / "signals.db")
        self.store.init_db()

    def tearDown(self):
        self._tmp.cleanup()

    def _validator(self, feed, **validator_cfg):
        settings = SettingsV1(validator=ValidatorConfig(**validator_cfg))
        return OutcomeValidator(self.store, feed, settings)

    def test_long_take_profit(self):
        self.store.insert_signal(_row("s1"))
        feed = FakeFeed(prices={"EUR/USD": 1.1042}, candles={"EUR/USD": [_candle(5, 1.1042, 1.0990)]})
        summary = self._validator(feed).validate_pending_signals(NOW)
        self.assertEqual((summary.checked, summary.updated, summary.expired), (1, 1, 0))

        row = self.store.get_signal("s1")
        self.assertEqual(row["outcome"], "TP1_HIT")
        self.assertAlmostEqual(row["outcome_price"], 1.1042)
        self.assertAlmostEqual(row["profit_loss_pips"], 42.0)
        self.assertIsNotNone(row["outcome_time"])
        self.assertAlmostEqual(row["max_adverse_pips"], 10.0)
        self.assertAlmostEqual(row["max_favorable_pips"], 42.0)
        self.assertIsNotNone(row["candles_json"])

        perf = self.store.read_strategy_performance_df("EUR/USD")
        self.assertEqual(sorted(perf["confidence_bracket"]), ["80-89", "ALL"])
        self.assertTrue((perf["tp1_hit"] == 1).all())

    def test_short_stop_on_jpy_pair(self):
        self.store.insert_signal(
            _row("s2", symbol="USD/JPY", type="SHORT", entry_price=150.00, stop_loss=150.30, tp1=149.40, confidence=91)
        )
        summary = self._validator(FakeFeed(prices={"USD/JPY": 150.35}), record_excursions=False).validate_pending_signals(NOW)
        self.assertEqual(summary.updated, 1)
        row = self.store.get_signal("s2")
        self.assertEqual(row["outcome"], "STOP_HIT")
        self.assertAlmostEqual(row["profit_loss_pips"], -35.0)
        self.assertIsNone(row["max_adverse_pips"])

    def test_no_hit_updates_current_price(self):
        self.store.insert_signal(_row("s3"))
        summary = self._validator(FakeFeed(prices={"EUR/USD": 1.1010})).validate_pending_signals(NOW)
        self.assertEqual(summary.updated, 0)
        row = self.store.get_signal("s3")
        self.assertEqual(row["outcome"], "PENDING")
        self.assertAlmostEqual(row["current_price"], 1.1010)

    def test_expiry(self):
        self.store.insert_signal(_row("old", expires_at=(NOW - timedelta(minutes=1)).isoformat()))
        feed = FakeFeed(prices={"EUR/USD": 1.1042})
        summary = self._validator(feed).validate_pending_signals(NOW)
        self.assertEqual(summary.expired, 1)
        self.assertEqual(summary.updated, 0)
        self.assertEqual(feed.price_calls, 0)
        row = self.store.get_signal("old")
        self.assertEqual(row["outcome"], "EXPIRED")
        self.assertIsNone(row["profit_loss_pips"])
        perf = self.store.read_strategy_performance_df("EUR/USD")
        self.assertTrue((perf["expired"] == 1).all())

    def test_price_fetched_once_per_symbol(self):
        self.store.insert_signal(_row("a"))
        self.store.insert_signal(_row("b"))
        feed = FakeFeed(prices={"EUR/USD": 1.1010})
        self._validator(feed).validate_pending_signals(NOW)
        self.assertEqual(feed.price_calls, 1)

    def test_feed_failure_skips(self):
        self.store.insert_signal(_row("s4"))
        summary = self._validator(FakeFeed(fail={"EUR/USD"})).validate_pending_signals(NOW)
        self.assertEqual(summary.skipped, 1)
        self.assertEqual(summary.errors, [])
        self.assertEqual(self.store.get_signal("s4")["outcome"], "PENDING")

    def test_no_feed_still_expires(self):
        self.store.insert_signal(_row("live"))
        self.store.insert_signal(_row("old", expires_at=(NOW - timedelta(hours=1)).isoformat()))
        summary = self._validator(None).validate_pending_signals(NOW)
        self.assertEqual((summary.expired, summary.skipped), (1, 1))

    def test_bad_row_is_reported_and_run_continues(self):
        self.store.insert_signal(_row("bad", type="SIDEWAYS"))
        self.store.insert_signal(_row("good"))
        summary = self._validator(FakeFeed(prices={"EUR/USD": 1.1050}), record_excursions=False).validate_pending_signals(NOW)
        self.assertEqual(summary.updated, 1)
        self.assertEqual(len(summary.errors), 1)
        self.assertTrue(summary.errors[0].startswith("bad:"))

    def test_candle_mode(self):
        self.store.insert_signal(_row("c1"))
        feed = FakeFeed(candles={"EUR/USD": [_candle(5, 1.1010, 1.0990), _candle(10, 1.1000, 1.0975)]})
        summary = self._validator(feed, mode="candles").validate_pending_signals(NOW)
        self.assertEqual(summary.updated, 1)
        row = self.store.get_signal("c1")
        self.assertEqual(row["outcome"], "STOP_HIT")
        self.assertAlmostEqual(row["outcome_price"], 1.0980)
        self.assertAlmostEqual(row["profit_loss_pips"], -20.0)
        self.assertEqual(pd.Timestamp(row["outcome_time"]), _candle(10, 0, 0)["time"])

    def test_overlapping_run_refused(self):
        v = self._validator(FakeFeed())
        v._lock.acquire()
        try:
            self.assertTrue(v.running)
            self.assertIsNone(v.validate_pending_signals(NOW))
        finally:
            v._lock.release()
        self.assertIsNotNone(v.validate_pending_signals(NOW))

    def test_signal_closed_during_run_is_left_alone(self):
        self.store.insert_signal(_row("s6"))
        store = self.store

        class ClosingFeed(FakeFeed):
            def _fetch_price(self, symbol):
                store.resolve_signal("s6", {"outcome": "MANUALLY_CLOSED", "outcome_price": 1.1010, "profit_loss_pips": 10.0})
                return super()._fetch_price(symbol)

        summary = self._validator(ClosingFeed(prices={"EUR/USD": 1.1050})).validate_pending_signals(NOW)
        self.assertEqual((summary.updated, summary.skipped), (0, 1))
        row = self.store.get_signal("s6")
        self.assertEqual(row["outcome"], "MANUALLY_CLOSED")
        self.assertAlmostEqual(row["profit_loss_pips"], 10.0)

    def test_expiry_skips_already_resolved(self):
        self.store.insert_signal(_row("old", expires_at=(NOW - timedelta(minutes=1)).isoformat()))
        pending = self.store.list_pending_signals()
        self.store.resolve_signal("old", {"outcome": "MANUALLY_CLOSED", "profit_loss_pips": -5.0})
        v = self._validator(None)
        v.store = _FrozenPending(self.store, pending)
        summary = v.validate_pending_signals(NOW)
        self.assertEqual((summary.expired, summary.skipped), (0, 1))
        self.assertEqual(self.store.get_signal("old")["outcome"], "MANUALLY_CLOSED")

    def test_on_resolved_callback(self):
        calls = []
        self.store.insert_signal(_row("s5"))
        v = OutcomeValidator(self.store, FakeFeed(prices={"EUR/USD": 1.1050}), on_resolved=lambda: calls.append(1))
        v.validate_pending_signals(NOW)
        self.assertEqual(calls, [1])
        v.validate_pending_signals(NOW)
        self.assertEqual(calls, [1])


if __name__ == "__main__":
    unittest.main()
