"""Confidence learning for tracked signals.

Historical outcomes are grouped by (symbol, confidence range). Once a group
has enough closed trades, its win rate, profit factor and average P/L ratio
are blended into a bounded multiplier that scales the confidence of future
signals in the same group.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

from .models import is_loss, is_win
from .settings import LearningConfig
from .trade_statistics import RATIO_CAP


CONFIDENCE_RANGES: tuple[str, ...] = ("91-100", "86-90", "81-85", "76-80", "70-75")


@dataclass
class StrategyMetric:
    symbol: str
    confidence_range: str
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_profit: float = 0.0
    avg_loss: float = 0.0  # absolute value
    win_rate: float = 0.0  # percent
    profit_factor: float = 0.0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["last_updated"] = self.last_updated.isoformat(timespec="seconds")
        return d


@dataclass(frozen=True)
class PerformanceMultiplier:
    symbol: str
    confidence_range: str
    multiplier: float
    sample_size: int


def confidence_range(confidence: float) -> str:
    if confidence >= 91:
        return "91-100"
    if confidence >= 86:
        return "86-90"
    if confidence >= 81:
        return "81-85"
    if confidence >= 76:
        return "76-80"
    return "70-75"


def _metric_key(symbol: str, range_: str) -> str:
    return f"{symbol}:{range_}"


def _derived_profit_factor(avg_profit: float, wins: int, avg_loss: float, losses: int) -> float:
    total_profit = avg_profit * wins
    total_loss = avg_loss * losses
    if total_loss > 0:
        return total_profit / total_loss
    return RATIO_CAP if total_profit > 0 else 0.0


class LearningEngine:
    def __init__(self, initial_metrics: Optional[list[StrategyMetric]] = None, config: Optional[LearningConfig] = None) -> None:
        self.config = config or LearningConfig()
        self._metrics: dict[str, StrategyMetric] = {}
        self._multipliers: dict[str, float] = {}
        if initial_metrics:
            self.load_metrics(initial_metrics)

    def load_metrics(self, metrics: list[StrategyMetric]) -> None:
        self._metrics.clear()
        self._multipliers.clear()
        for metric in metrics:
            key = _metric_key(metric.symbol, metric.confidence_range)
            self._metrics[key] = metric
            if metric.total_trades >= self.config.min_sample_size:
                self._multipliers[key] = self.calculate_multiplier(metric)
        print(f"[learning_engine] loaded {len(metrics)} strategy metrics, active multipliers: {len(self._multipliers)}")

    def calculate_multiplier(self, metric: StrategyMetric) -> float:
        """Blend win rate (40%), profit factor (40%) and avg P/L ratio (20%) into a clamped multiplier."""
        cfg = self.config
        if metric.total_trades < cfg.min_sample_size:
            return 1.0

        score = 0.0
        # 50% win rate is neutral
        score += (metric.win_rate - 50.0) / 50.0 * 0.4
        # PF of 1.0 is neutral
        score += (metric.profit_factor - 1.0) / 2.0 * 0.4
        avg_pl_ratio = (metric.avg_profit / abs(metric.avg_loss)) - 1.0 if metric.avg_loss != 0 else 0.0
        score += (avg_pl_ratio / 2.0) * 0.2

        sample_confidence = min(metric.total_trades / float(cfg.full_confidence_trades), 1.0)
        score *= sample_confidence

        multiplier = 1.0 + score * 0.3
        return max(cfg.min_multiplier, min(cfg.max_multiplier, multiplier))

    def update_metric(self, symbol: str, confidence: float, won: bool, profit_loss: float) -> StrategyMetric:
        """Fold one closed trade into its (symbol, range) metric.

        The `won` flag decides which running average the trade feeds, so the
        averages always divide by a non-zero count.
        """
        range_ = confidence_range(confidence)
        key = _metric_key(symbol, range_)
        metric = self._metrics.get(key)
        if metric is None:
            metric = StrategyMetric(symbol=symbol, confidence_range=range_)

        metric.total_trades += 1
        if won:
            metric.winning_trades += 1
            prev_total = metric.avg_profit * (metric.winning_trades - 1)
            metric.avg_profit = (prev_total + abs(profit_loss)) / metric.winning_trades
        else:
            metric.losing_trades += 1
            prev_total = metric.avg_loss * (metric.losing_trades - 1)
            metric.avg_loss = (prev_total + abs(profit_loss)) / metric.losing_trades

        metric.win_rate = metric.winning_trades / metric.total_trades * 100.0
        metric.profit_factor = _derived_profit_factor(
            metric.avg_profit, metric.winning_trades, metric.avg_loss, metric.losing_trades
        )
        metric.last_updated = datetime.now(timezone.utc)
        self._metrics[key] = metric

        if metric.total_trades >= self.config.min_sample_size:
            multiplier = self.calculate_multiplier(metric)
            self._multipliers[key] = multiplier
            print(
                f"[learning_engine] {symbol} {range_} -> {multiplier * 100:.0f}% confidence adjustment "
                f"({metric.total_trades} trades, {metric.win_rate:.1f}% win rate)"
            )
        return metric

    def get_multiplier(self, symbol: str, confidence: float) -> float:
        return self._multipliers.get(_metric_key(symbol, confidence_range(confidence)), 1.0)

    def adjust_confidence(self, symbol: str, base_confidence: float) -> float:
        adjusted = base_confidence * self.get_multiplier(symbol, base_confidence)
        return max(0.0, min(100.0, adjusted))

    def symbol_performance(self, symbol: str) -> list[StrategyMetric]:
        prefix = f"{symbol}:"
        out = [m for k, m in self._metrics.items() if k.startswith(prefix)]
        return sorted(out, key=lambda m: m.total_trades, reverse=True)

    def multipliers(self) -> list[PerformanceMultiplier]:
        out: list[PerformanceMultiplier] = []
        for key, multiplier in self._multipliers.items():
            metric = self._metrics.get(key)
            if metric is None:
                continue
            out.append(
                PerformanceMultiplier(
                    symbol=metric.symbol,
                    confidence_range=metric.confidence_range,
                    multiplier=multiplier,
                    sample_size=metric.total_trades,
                )
            )
        return sorted(out, key=lambda m: m.sample_size, reverse=True)

    def _qualified(self) -> list[StrategyMetric]:
        return [m for m in self._metrics.values() if m.total_trades >= self.config.min_sample_size]

    def top_performers(self, limit: int = 5) -> list[StrategyMetric]:
        ranked = sorted(self._qualified(), key=lambda m: (m.profit_factor, m.win_rate), reverse=True)
        return ranked[:limit]

    def worst_performers(self, limit: int = 5) -> list[StrategyMetric]:
        ranked = sorted(self._qualified(), key=lambda m: (m.profit_factor, m.win_rate))
        return ranked[:limit]

    def overall_stats(self) -> dict[str, Any]:
        metrics = list(self._metrics.values())
        qualified = self._qualified()
        n = len(qualified)
        return {
            "total_metrics": len(metrics),
            "active_multipliers": len(self._multipliers),
            "avg_win_rate": sum(m.win_rate for m in qualified) / n if n else 0.0,
            "avg_profit_factor": sum(m.profit_factor for m in qualified) / n if n else 0.0,
            "total_trades": sum(m.total_trades for m in metrics),
        }

    def reset(self) -> None:
        self._metrics.clear()
        self._multipliers.clear()
        print("[learning_engine] reset")


def metrics_from_history(df: pd.DataFrame) -> list[StrategyMetric]:
    """Rebuild StrategyMetrics from signal_history rows.

    Only decided trades count: TP hits and stops, plus manual closes with a
    non-zero result. Expired and pending signals are ignored.
    """
    if df is None or df.empty:
        return []
    needed = {"symbol", "confidence", "outcome", "profit_loss_pips"}
    if not needed.issubset(df.columns):
        return []

    tmp = df[list(needed)].copy()
    tmp["pips"] = pd.to_numeric(tmp["profit_loss_pips"], errors="coerce")
    tmp["confidence"] = pd.to_numeric(tmp["confidence"], errors="coerce").fillna(0.0)
    tmp["won"] = [is_win(str(o), None if pd.isna(p) else float(p)) for o, p in zip(tmp["outcome"], tmp["pips"])]
    tmp["lost"] = [is_loss(str(o), None if pd.isna(p) else float(p)) for o, p in zip(tmp["outcome"], tmp["pips"])]
    tmp = tmp[tmp["won"] | tmp["lost"]]
    if tmp.empty:
        return []
    tmp["range"] = tmp["confidence"].apply(confidence_range)
    tmp["abs_pips"] = tmp["pips"].abs().fillna(0.0)

    now = datetime.now(timezone.utc)
    out: list[StrategyMetric] = []
    for (symbol, range_), grp in tmp.groupby(["symbol", "range"], sort=True):
        wins = grp[grp["won"]]
        losses = grp[grp["lost"]]
        n_w, n_l = len(wins), len(losses)
        avg_profit = float(wins["abs_pips"].mean()) if n_w else 0.0
        avg_loss = float(losses["abs_pips"].mean()) if n_l else 0.0
        total = n_w + n_l
        out.append(
            StrategyMetric(
                symbol=str(symbol),
                confidence_range=str(range_),
                total_trades=total,
                winning_trades=n_w,
                losing_trades=n_l,
                avg_profit=avg_profit,
                avg_loss=avg_loss,
                win_rate=n_w / total * 100.0 if total else 0.0,
                profit_factor=_derived_profit_factor(avg_profit, n_w, avg_loss, n_l),
                last_updated=now,
            )
        )
    return out
