"""
Unit tests for the confidence learning engine.
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.learning_engine import LearningEngine, StrategyMetric, confidence_range, metrics_from_history
from core.settings import LearningConfig


def _metric(total, wins, avg_profit, avg_loss, symbol="EUR/USD", range_="86-90"):
    losses = total - wins
    pf = (avg_profit * wins) / (avg_loss * losses) if losses and avg_loss else 999.0
    return StrategyMetric(
        symbol=symbol,
        confidence_range=range_,
        total_trades=total,
        winning_trades=wins,
        losing_trades=losses,
        avg_profit=avg_profit,
        avg_loss=avg_loss,
        win_rate=wins / total * 100.0,
        profit_factor=pf,
    )


class TestConfidenceRange(unittest.TestCase):
    def test_boundaries(self):
        self.assertEqual(confidence_range(100), "91-100")
        self.assertEqual(confidence_range(91), "91-100")
        self.assertEqual(confidence_range(90.5), "86-90")
        self.assertEqual(confidence_range(86), "86-90")
        self.assertEqual(confidence_range(81), "81-85")
        self.assertEqual(confidence_range(76), "76-80")
        self.assertEqual(confidence_range(75.9), "70-75")
        self.assertEqual(confidence_range(40), "70-75")


class TestMultiplier(unittest.TestCase):
    def setUp(self):
        self.engine = LearningEngine()

    def test_neutral_metric(self):
        self.assertAlmostEqual(self.engine.calculate_multiplier(_metric(10, 5, 10.0, 10.0)), 1.0)

    def test_sample_size_scaling(self):
        # score 0.4*0 + 0.4*(2-1)/2 + 0.2*(1/2) = 0.3, halved for 10/20 trades
        self.assertAlmostEqual(self.engine.calculate_multiplier(_metric(10, 5, 20.0, 10.0)), 1.045)

    def test_below_sample_size(self):
        self.assertEqual(self.engine.calculate_multiplier(_metric(4, 4, 20.0, 0.0)), 1.0)

    def test_clamped_high(self):
        self.assertEqual(self.engine.calculate_multiplier(_metric(30, 30, 25.0, 0.0)), 1.3)

    def test_poor_metric_below_one(self):
        m = self.engine.calculate_multiplier(_metric(30, 2, 5.0, 20.0))
        self.assertLess(m, 1.0)
        self.assertGreaterEqual(m, 0.7)

    def test_clamped_low(self):
        engine = LearningEngine(config=LearningConfig(min_multiplier=0.9))
        self.assertEqual(engine.calculate_multiplier(_metric(30, 2, 5.0, 20.0)), 0.9)

    def test_custom_bounds(self):
        engine = LearningEngine(config=LearningConfig(max_multiplier=1.1))
        self.assertEqual(engine.calculate_multiplier(_metric(30, 30, 25.0, 0.0)), 1.1)


class TestEngineState(unittest.TestCase):
    def test_load_registers_only_qualified(self):
        engine = LearningEngine([_metric(10, 7, 20.0, 10.0), _metric(3, 3, 20.0, 0.0, symbol="USD/JPY")])
        self.assertEqual(len(engine.multipliers()), 1)
        self.assertEqual(engine.get_multiplier("USD/JPY", 88), 1.0)
        self.assertGreater(engine.get_multiplier("EUR/USD", 88), 1.0)

    def test_load_replaces_previous(self):
        engine = LearningEngine([_metric(10, 7, 20.0, 10.0)])
        engine.load_metrics([])
        self.assertEqual(engine.multipliers(), [])
        self.assertEqual(engine.overall_stats()["total_metrics"], 0)

    def test_update_metric_running_averages(self):
        engine = LearningEngine()
        engine.update_metric("EUR/USD", 88, True, 20.0)
        engine.update_metric("EUR/USD", 87, True, 10.0)
        m = engine.update_metric("EUR/USD", 89, False, -10.0)
        self.assertEqual(m.total_trades, 3)
        self.assertEqual(m.winning_trades, 2)
        self.assertEqual(m.losing_trades, 1)
        self.assertAlmostEqual(m.avg_profit, 15.0)
        self.assertAlmostEqual(m.avg_loss, 10.0)
        self.assertAlmostEqual(m.profit_factor, 3.0)
        self.assertAlmostEqual(m.win_rate, 200.0 / 3)
        self.assertLessEqual(m.winning_trades + m.losing_trades, m.total_trades)

    def test_update_registers_multiplier_at_sample_size(self):
        engine = LearningEngine()
        for _ in range(4):
            engine.update_metric("GBP/USD", 92, True, 15.0)
        self.assertEqual(engine.multipliers(), [])
        engine.update_metric("GBP/USD", 92, True, 15.0)
        self.assertEqual(len(engine.multipliers()), 1)
        self.assertGreater(engine.get_multiplier("GBP/USD", 95), 1.0)

    def test_all_wins_profit_factor_capped(self):
        engine = LearningEngine()
        m = engine.update_metric("GBP/USD", 92, True, 15.0)
        self.assertEqual(m.profit_factor, 999.0)

    def test_adjust_confidence_clamped(self):
        engine = LearningEngine([_metric(30, 30, 25.0, 0.0, range_="91-100")])
        self.assertEqual(engine.adjust_confidence("EUR/USD", 95), 100.0)
        self.assertEqual(engine.adjust_confidence("AUD/USD", 80), 80.0)

    def test_performers_and_stats(self):
        good = _metric(20, 15, 20.0, 10.0, range_="91-100")
        bad = _metric(20, 5, 10.0, 10.0, range_="70-75")
        tiny = _metric(2, 2, 10.0, 0.0, range_="81-85")
        engine = LearningEngine([good, bad, tiny])
        self.assertEqual(engine.top_performers(1)[0].confidence_range, "91-100")
        self.assertEqual(engine.worst_performers(1)[0].confidence_range, "70-75")
        stats = engine.overall_stats()
        self.assertEqual(stats["total_metrics"], 3)
        self.assertEqual(stats["active_multipliers"], 2)
        self.assertEqual(stats["total_trades"], 42)
        self.assertAlmostEqual(stats["avg_win_rate"], 50.0)

    def test_symbol_performance_sorted_by_trades(self):
        engine = LearningEngine([_metric(6, 3, 10.0, 10.0, range_="70-75"), _metric(12, 6, 10.0, 10.0, range_="91-100")])
        ranges = [m.confidence_range for m in engine.symbol_performance("EUR/USD")]
        self.assertEqual(ranges, ["91-100", "70-75"])

    def test_reset(self):
        engine = LearningEngine([_metric(10, 7, 20.0, 10.0)])
        engine.reset()
        self.assertEqual(engine.overall_stats()["total_metrics"], 0)


class TestMetricsFromHistory(unittest.TestCase):
    def test_groups_decided_trades(self):
        df = pd.DataFrame(
            [
                {"symbol": "EUR/USD", "confidence": 88, "outcome": "TP1_HIT", "profit_loss_pips": 20.0},
                {"symbol": "EUR/USD", "confidence": 87, "outcome": "STOP_HIT", "profit_loss_pips": -10.0},
                {"symbol": "EUR/USD", "confidence": 86, "outcome": "EXPIRED", "profit_loss_pips": None},
                {"symbol": "EUR/USD", "confidence": 89, "outcome": "MANUALLY_CLOSED", "profit_loss_pips": 6.0},
                {"symbol": "EUR/USD", "confidence": 72, "outcome": "PENDING", "profit_loss_pips": None},
                {"symbol": "USD/JPY", "confidence": 95, "outcome": "TP2_HIT", "profit_loss_pips": 30.0},
            ]
        )
        metrics = {(m.symbol, m.confidence_range): m for m in metrics_from_history(df)}
        self.assertEqual(set(metrics), {("EUR/USD", "86-90"), ("USD/JPY", "91-100")})
        eur = metrics[("EUR/USD", "86-90")]
        self.assertEqual(eur.total_trades, 3)
        self.assertEqual(eur.winning_trades, 2)
        self.assertEqual(eur.losing_trades, 1)
        self.assertAlmostEqual(eur.avg_profit, 13.0)
        self.assertAlmostEqual(eur.avg_loss, 10.0)
        self.assertAlmostEqual(eur.profit_factor, 2.6)

    def test_empty(self):
        self.assertEqual(metrics_from_history(pd.DataFrame()), [])


if __name__ == "__main__":
    unittest.main()
