"""Risk-adjusted performance metrics over closed-trade pip returns.

All functions take plain sequences (or pandas Series) of pips per trade and
return floats or small dataclasses. Ratios that would divide by zero on an
all-winning record are capped at RATIO_CAP so the dashboard can still sort.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np
import pandas as pd


TRADING_DAYS_PER_YEAR = 252
RATIO_CAP = 999.0


@dataclass(frozen=True)
class StatisticsResult:
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    interpretation: dict[str, str] = field(
        default_factory=lambda: {
            "sharpe": "Insufficient Data",
            "sortino": "Insufficient Data",
            "profit_factor": "Insufficient Data",
        }
    )


@dataclass(frozen=True)
class Streaks:
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    current_streak: int = 0


def _as_array(pips: Iterable[float]) -> np.ndarray:
    s = pd.to_numeric(pd.Series(list(pips), dtype="object"), errors="coerce").dropna()
    return s.to_numpy(dtype=float)


def _mean(values: np.ndarray) -> float:
    return float(values.mean()) if values.size else 0.0


def sharpe_ratio(pips: Iterable[float]) -> float:
    """Annualized mean / population stdev of pip returns (risk-free rate 0)."""
    r = _as_array(pips)
    if r.size < 2:
        return 0.0
    std = float(r.std(ddof=0))
    if std == 0:
        return 0.0
    return _mean(r) / std * math.sqrt(TRADING_DAYS_PER_YEAR)


def sortino_ratio(pips: Iterable[float]) -> float:
    """Annualized mean / downside deviation. Downside deviation divides by all trades, not just losers."""
    r = _as_array(pips)
    if r.size < 2:
        return 0.0
    avg = _mean(r)
    downside = r[r < 0]
    if downside.size == 0:
        return RATIO_CAP if avg > 0 else 0.0
    downside_dev = math.sqrt(float((downside ** 2).sum()) / r.size)
    if downside_dev == 0:
        return 0.0
    return avg / downside_dev * math.sqrt(TRADING_DAYS_PER_YEAR)


def profit_factor(pips: Iterable[float]) -> float:
    r = _as_array(pips)
    gross_profit = float(r[r > 0].sum())
    gross_loss = abs(float(r[r < 0].sum()))
    if gross_loss == 0:
        return RATIO_CAP if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def expectancy(pips: Iterable[float]) -> float:
    """Expected pips per trade: win% * avg win - loss% * avg |loss|."""
    r = _as_array(pips)
    if r.size == 0:
        return 0.0
    wins = r[r > 0]
    losses = r[r < 0]
    win_rate = wins.size / r.size
    loss_rate = losses.size / r.size
    return win_rate * _mean(wins) - loss_rate * abs(_mean(losses))


def max_drawdown_pips(pips: Iterable[float]) -> float:
    """Largest peak-to-trough decline of the cumulative pip curve (positive number)."""
    r = _as_array(pips)
    if r.size == 0:
        return 0.0
    equity = np.concatenate([[0.0], np.cumsum(r)])
    peaks = np.maximum.accumulate(equity)
    return float((peaks - equity).max())


def r_multiple(profit_pips: float, risk_pips: float) -> float:
    if risk_pips == 0:
        return 0.0
    return profit_pips / risk_pips


def interpret_sharpe(sharpe: float) -> str:
    if sharpe >= 3.0:
        return "Exceptional"
    if sharpe >= 2.0:
        return "Excellent"
    if sharpe >= 1.0:
        return "Good"
    if sharpe >= 0.5:
        return "Acceptable"
    return "Poor"


def interpret_sortino(sortino: float) -> str:
    if sortino >= 3.0:
        return "Exceptional"
    if sortino >= 2.0:
        return "Excellent"
    if sortino >= 1.0:
        return "Good"
    return "Needs Improvement"


def interpret_profit_factor(pf: float) -> str:
    if pf >= 2.0:
        return "Excellent"
    if pf >= 1.5:
        return "Good"
    if pf >= 1.0:
        return "Acceptable"
    return "Losing Strategy"


def calculate_statistics(pips: Iterable[float]) -> StatisticsResult:
    r = _as_array(pips)
    if r.size == 0:
        return StatisticsResult()

    wins = r[r > 0]
    losses = r[r < 0]
    sharpe = sharpe_ratio(r)
    sortino = sortino_ratio(r)
    pf = profit_factor(r)

    return StatisticsResult(
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        profit_factor=pf,
        expectancy=expectancy(r),
        win_rate=wins.size / r.size * 100.0,
        avg_win=_mean(wins),
        avg_loss=abs(_mean(losses)),
        total_trades=int(r.size),
        winning_trades=int(wins.size),
        losing_trades=int(losses.size),
        largest_win=float(wins.max()) if wins.size else 0.0,
        largest_loss=float(losses.min()) if losses.size else 0.0,
        interpretation={
            "sharpe": interpret_sharpe(sharpe),
            "sortino": interpret_sortino(sortino),
            "profit_factor": interpret_profit_factor(pf),
        },
    )


def streaks(trades: Sequence[dict[str, Any]] | pd.DataFrame) -> Streaks:
    """Win/loss streaks; trades need profit_loss_pips and outcome_time or created_at.

    current_streak is the run ending at the most recent trade: positive for
    wins, negative for losses. Breakeven trades neither extend nor break a run.
    """
    df = trades.copy() if isinstance(trades, pd.DataFrame) else pd.DataFrame(list(trades))
    if df.empty or "profit_loss_pips" not in df.columns:
        return Streaks()

    t_out = pd.to_datetime(df["outcome_time"], utc=True, errors="coerce") if "outcome_time" in df.columns else None
    t_new = pd.to_datetime(df["created_at"], utc=True, errors="coerce") if "created_at" in df.columns else None
    if t_out is not None and t_new is not None:
        sort_key = t_out.fillna(t_new)
    else:
        sort_key = t_out if t_out is not None else t_new
    df["_pips"] = pd.to_numeric(df["profit_loss_pips"], errors="coerce")
    if sort_key is not None:
        df["_t"] = sort_key.fillna(pd.Timestamp(0, tz="UTC"))
        df = df.sort_values("_t", ascending=True, kind="stable")

    longest_win = longest_loss = 0
    cur_win = cur_loss = 0
    for p in df["_pips"]:
        if pd.isna(p):
            continue
        if p > 0:
            cur_win += 1
            cur_loss = 0
            longest_win = max(longest_win, cur_win)
        elif p < 0:
            cur_loss += 1
            cur_win = 0
            longest_loss = max(longest_loss, cur_loss)

    current = cur_win if cur_win > 0 else -cur_loss
    return Streaks(longest_win_streak=longest_win, longest_loss_streak=longest_loss, current_streak=current)
