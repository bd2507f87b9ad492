"""
Unit tests for position sizing, dollar P/L and prop-firm projections.
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.profit_calculator import (
    BracketPerformance,
    actual_profit,
    format_dollars,
    meets_prop_firm_requirements,
    net_profit,
    optimal_risk_percent,
    position_size,
    potential_profit,
    prop_firm_projection,
    total_profit,
)


SIGNAL = {
    "symbol": "EUR/USD",
    "confidence": 85,
    "entry_price": 1.1000,
    "stop_loss": 1.0980,
    "tp1": 1.1040,
}


class TestRiskAndSize(unittest.TestCase):
    def test_paper_trade_below_80(self):
        self.assertEqual(optimal_risk_percent(79.9), 0.0)

    def test_default_high_confidence(self):
        self.assertEqual(optimal_risk_percent(85), 1.5)

    def test_reduced_for_poor_bracket_with_history(self):
        perf = [BracketPerformance("80-89", win_rate=40.0, total_signals=12)]
        self.assertEqual(optimal_risk_percent(85, perf), 1.0)

    def test_small_sample_keeps_default(self):
        perf = [BracketPerformance("80-89", win_rate=10.0, total_signals=9)]
        self.assertEqual(optimal_risk_percent(85, perf), 1.5)

    def test_other_bracket_ignored(self):
        perf = [BracketPerformance("90-100", win_rate=10.0, total_signals=50)]
        self.assertEqual(optimal_risk_percent(85, perf), 1.5)

    def test_position_size(self):
        self.assertAlmostEqual(position_size(100_000, 1.5, 20, 10), 7.5)
        self.assertEqual(position_size(100_000, 1.5, 0), 0.0)


class TestProfit(unittest.TestCase):
    def test_potential_profit(self):
        est = potential_profit(100_000, SIGNAL)
        self.assertEqual(est.risk_percent, 1.5)
        self.assertAlmostEqual(est.position_size, 7.5, places=2)
        self.assertAlmostEqual(est.profit_usd, 3000.0, delta=0.05)
        self.assertAlmostEqual(est.risk_usd, 1500.0)

    def test_potential_profit_paper_trade(self):
        est = potential_profit(100_000, {**SIGNAL, "confidence": 75})
        self.assertEqual(est.profit_usd, 0.0)
        self.assertEqual(est.position_size, 0.0)

    def test_actual_loss(self):
        est = actual_profit(100_000, {**SIGNAL, "profit_loss_pips": -20.0})
        self.assertAlmostEqual(est.profit_usd, -1500.0, delta=0.05)

    def test_actual_without_pips(self):
        for pips in (None, float("nan"), 0):
            self.assertEqual(actual_profit(100_000, {**SIGNAL, "profit_loss_pips": pips}).profit_usd, 0.0)

    def test_total_profit(self):
        totals = total_profit(
            100_000,
            [
                {**SIGNAL, "profit_loss_pips": 40.0},
                {**SIGNAL, "profit_loss_pips": -20.0},
                {**SIGNAL, "confidence": 72, "profit_loss_pips": 40.0},
            ],
        )
        self.assertEqual(totals.total_trades, 3)
        self.assertEqual(totals.winning_trades, 1)
        self.assertEqual(totals.losing_trades, 1)
        self.assertAlmostEqual(totals.total_profit, 1500.0, delta=0.1)

    def test_jpy_pip_size(self):
        sig = {"symbol": "USD/JPY", "confidence": 90, "entry_price": 150.0, "stop_loss": 149.8, "tp1": 150.4}
        est = potential_profit(100_000, sig)
        self.assertAlmostEqual(est.position_size, 7.5, places=2)
        self.assertAlmostEqual(est.profit_usd, 3000.0, delta=0.5)


class TestPropFirm(unittest.TestCase):
    def test_projection(self):
        p = prop_firm_projection(100.0, 10, 100_000, 3)
        self.assertAlmostEqual(p.total_dollars, 1000.0)
        self.assertAlmostEqual(p.avg_dollars_per_trade, 100.0)
        self.assertAlmostEqual(p.projected_monthly_trades, 63.0)
        self.assertAlmostEqual(p.monthly_dollars, 6300.0)
        self.assertAlmostEqual(p.yearly_dollars, 75600.0)

    def test_projection_no_trades(self):
        self.assertEqual(prop_firm_projection(0.0, 0).monthly_dollars, 0.0)

    def test_net_profit(self):
        self.assertAlmostEqual(net_profit(1000.0), 800.0)
        self.assertAlmostEqual(net_profit(1000.0, 90), 900.0)

    def test_format_dollars(self):
        self.assertEqual(format_dollars(1500), "+$1.5K")
        self.assertEqual(format_dollars(-250), "-$250")
        self.assertEqual(format_dollars(2_500_000), "+$2.50M")

    def test_requirements_met(self):
        check = meets_prop_firm_requirements(55.0, 2.0, 100.0)
        self.assertTrue(check.meets_requirements)
        self.assertEqual(check.issues, [])

    def test_requirements_failed(self):
        check = meets_prop_firm_requirements(35.0, 1.2, 900.0)
        self.assertFalse(check.meets_requirements)
        self.assertEqual(len(check.issues), 3)


if __name__ == "__main__":
    unittest.main()
