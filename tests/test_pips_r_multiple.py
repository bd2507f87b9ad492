"""
Unit tests for pips and R-multiple calculation consistency.

Verifies that LONG wins (exit > entry) and SHORT wins (exit < entry) yield positive pips
and positive R when a stop is set, and that pip size follows the quote currency
(0.01 for JPY pairs, 0.0001 otherwise).
"""
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.models import compute_pips, compute_r_multiple, is_loss, is_win, pip_size_for


class TestPipSize(unittest.TestCase):
    def test_jpy_pair(self):
        self.assertEqual(pip_size_for("USD/JPY"), 0.01)
        self.assertEqual(pip_size_for("eurjpy"), 0.01)

    def test_non_jpy_pair(self):
        self.assertEqual(pip_size_for("EUR/USD"), 0.0001)
        self.assertEqual(pip_size_for(""), 0.0001)


class TestPipsAndRMultiple(unittest.TestCase):
    pip_size = 0.01

    def test_long_win_positive_pips(self):
        """LONG: exit > entry => winning trade => positive pips."""
        pips = compute_pips("LONG", 150.0, 150.5, self.pip_size)
        self.assertGreater(pips, 0, "long win should have positive pips")
        self.assertAlmostEqual(pips, 50.0, places=2)

    def test_short_win_positive_pips(self):
        """SHORT: exit < entry => winning trade => positive pips."""
        pips = compute_pips("SHORT", 150.5, 150.0, self.pip_size)
        self.assertGreater(pips, 0, "short win should have positive pips")
        self.assertAlmostEqual(pips, 50.0, places=2)

    def test_long_win_positive_r(self):
        entry, exit_price, stop = 150.0, 150.5, 149.5
        pips = compute_pips("LONG", entry, exit_price, self.pip_size)
        risk_pips, r_mult = compute_r_multiple(pips, entry, stop, self.pip_size)
        self.assertAlmostEqual(risk_pips, 50.0, places=2)
        self.assertIsNotNone(r_mult, "R should be computed when stop is set")
        self.assertAlmostEqual(r_mult, 1.0, places=2)

    def test_short_win_positive_r(self):
        entry, exit_price, stop = 150.5, 150.0, 151.0
        pips = compute_pips("SHORT", entry, exit_price, self.pip_size)
        _, r_mult = compute_r_multiple(pips, entry, stop, self.pip_size)
        self.assertAlmostEqual(r_mult, 1.0, places=2)

    def test_long_loss_negative_pips(self):
        self.assertLess(compute_pips("LONG", 150.0, 149.5, self.pip_size), 0)

    def test_short_loss_negative_pips(self):
        self.assertLess(compute_pips("SHORT", 150.0, 150.5, self.pip_size), 0)

    def test_non_jpy_pips(self):
        self.assertAlmostEqual(compute_pips("LONG", 1.1000, 1.1025, 0.0001), 25.0, places=6)

    def test_direction_is_case_insensitive(self):
        self.assertAlmostEqual(compute_pips("long", 150.0, 150.1, self.pip_size), 10.0, places=6)

    def test_bad_direction_raises(self):
        with self.assertRaises(ValueError):
            compute_pips("buy", 150.0, 150.5, self.pip_size)

    def test_no_stop_gives_no_r(self):
        self.assertEqual(compute_r_multiple(10.0, 150.0, None, self.pip_size), (None, None))

    def test_zero_risk_gives_no_r(self):
        risk_pips, r_mult = compute_r_multiple(10.0, 150.0, 150.0, self.pip_size)
        self.assertEqual(risk_pips, 0.0)
        self.assertIsNone(r_mult)


class TestWinLossClassification(unittest.TestCase):
    def test_tp_hits_are_wins(self):
        for outcome in ("TP1_HIT", "TP2_HIT", "TP3_HIT"):
            self.assertTrue(is_win(outcome, None))
            self.assertFalse(is_loss(outcome, None))

    def test_stop_is_loss(self):
        self.assertTrue(is_loss("STOP_HIT", None))
        self.assertFalse(is_win("STOP_HIT", None))

    def test_manual_close_by_sign(self):
        self.assertTrue(is_win("MANUALLY_CLOSED", 12.0))
        self.assertTrue(is_loss("MANUALLY_CLOSED", -3.0))
        self.assertFalse(is_win("MANUALLY_CLOSED", 0.0))
        self.assertFalse(is_loss("MANUALLY_CLOSED", 0.0))

    def test_expired_is_neither(self):
        self.assertFalse(is_win("EXPIRED", 5.0))
        self.assertFalse(is_loss("EXPIRED", -5.0))


if __name__ == "__main__":
    unittest.main()
