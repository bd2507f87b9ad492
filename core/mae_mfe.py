from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import pandas as pd

from .models import pip_size_for


@dataclass(frozen=True)
class MaeMfeResult:
    mae: float = 0.0  # pips, >= 0
    mfe: float = 0.0  # pips, >= 0
    mae_percent: float = 0.0  # MAE as % of stop distance
    mfe_ratio: float = 0.0  # MFE / MAE
    worst_drawdown: float = 0.0
    best_profit: float = 0.0
    interpretation: dict[str, str] = field(
        default_factory=lambda: {"execution_quality": "Insufficient Data", "exit_timing": "Insufficient Data"}
    )


@dataclass(frozen=True)
class PortfolioExcursions:
    avg_mae: float = 0.0
    avg_mfe: float = 0.0
    avg_efficiency: float = 0.0
    best_efficiency: float = 0.0
    worst_efficiency: float = 0.0


def candles_frame(candles: Any) -> pd.DataFrame:
    """Normalize stored candles (JSON text, list of dicts or DataFrame) to a frame with high/low."""
    if candles is None:
        return pd.DataFrame()
    if isinstance(candles, (str, bytes)):
        try:
            candles = json.loads(candles)
        except ValueError:
            return pd.DataFrame()
    if isinstance(candles, pd.DataFrame):
        df = candles.copy()
    elif isinstance(candles, list):
        df = pd.DataFrame(candles)
    else:
        return pd.DataFrame()
    if df.empty or "high" not in df.columns or "low" not in df.columns:
        return pd.DataFrame()
    df["high"] = pd.to_numeric(df["high"], errors="coerce")
    df["low"] = pd.to_numeric(df["low"], errors="coerce")
    df = df.dropna(subset=["high", "low"])
    if "time" not in df.columns and "timestamp" in df.columns:
        df["time"] = df["timestamp"]
    return df.reset_index(drop=True)


def interpret_mae(mae_percent: float) -> str:
    if mae_percent < 20:
        return "Excellent - minimal drawdown"
    if mae_percent < 50:
        return "Good - acceptable drawdown"
    if mae_percent < 80:
        return "Fair - came close to stop loss"
    if mae_percent < 100:
        return "Poor - nearly stopped out"
    return "Very Poor - exceeded stop loss (slippage)"


def interpret_mfe_ratio(ratio: float) -> str:
    if ratio >= 5.0:
        return "Excellent - captured most of the move"
    if ratio >= 3.0:
        return "Good - strong profit capture"
    if ratio >= 2.0:
        return "Fair - moderate profit capture"
    if ratio >= 1.0:
        return "Poor - gave back significant profits"
    return "Very Poor - stopped out near worst point"


def calculate_mae_mfe(
    *,
    direction: str,
    entry_price: float,
    stop_loss: float,
    symbol: str,
    candles: Any,
) -> MaeMfeResult:
    df = candles_frame(candles)
    if df.empty:
        return MaeMfeResult()

    d = (direction or "").upper()
    if d not in ("LONG", "SHORT"):
        raise ValueError("direction must be 'LONG' or 'SHORT'")

    pip = pip_size_for(symbol)
    if d == "LONG":
        adverse = entry_price - float(df["low"].min())
        favorable = float(df["high"].max()) - entry_price
    else:
        adverse = float(df["high"].max()) - entry_price
        favorable = entry_price - float(df["low"].min())

    # Excursions never go below zero: a trade that never moved against us has MAE 0.
    mae = max(adverse, 0.0) / pip
    mfe = max(favorable, 0.0) / pip
    risk = abs(entry_price - stop_loss) / pip

    mae_percent = mae / risk * 100.0 if risk > 0 else 0.0
    mfe_ratio = mfe / mae if mae > 0 else 0.0

    return MaeMfeResult(
        mae=mae,
        mfe=mfe,
        mae_percent=mae_percent,
        mfe_ratio=mfe_ratio,
        worst_drawdown=mae,
        best_profit=mfe,
        interpretation={
            "execution_quality": interpret_mae(mae_percent),
            "exit_timing": interpret_mfe_ratio(mfe_ratio),
        },
    )


def break_even_time(*, direction: str, entry_price: float, candles: Any) -> Optional[pd.Timestamp]:
    """Time of the first candle that traded through entry in the trade's favour."""
    df = candles_frame(candles)
    if df.empty or "time" not in df.columns:
        return None
    is_long = (direction or "").upper() == "LONG"
    for _, c in df.iterrows():
        in_profit = c["high"] > entry_price if is_long else c["low"] < entry_price
        if in_profit:
            ts = pd.to_datetime(c["time"], utc=True, errors="coerce")
            return None if pd.isna(ts) else ts
    return None


def efficiency_score(result: MaeMfeResult) -> float:
    score = 100.0

    if result.mae_percent > 80:
        score -= 30
    elif result.mae_percent > 50:
        score -= 15
    elif result.mae_percent > 20:
        score -= 5

    if result.mfe_ratio >= 5.0:
        pass
    elif result.mfe_ratio >= 3.0:
        score -= 5
    elif result.mfe_ratio >= 2.0:
        score -= 15
    elif result.mfe_ratio >= 1.0:
        score -= 25
    else:
        score -= 40

    return max(0.0, min(100.0, score))


def analyze_portfolio(trades: list[dict[str, Any]]) -> PortfolioExcursions:
    """Average excursions over signal rows (type, entry_price, stop_loss, symbol, candles)."""
    if not trades:
        return PortfolioExcursions()

    results = [
        calculate_mae_mfe(
            direction=str(t.get("type") or ""),
            entry_price=float(t["entry_price"]),
            stop_loss=float(t["stop_loss"]),
            symbol=str(t.get("symbol") or ""),
            candles=t.get("candles"),
        )
        for t in trades
    ]
    eff = [efficiency_score(r) for r in results]
    n = len(results)
    return PortfolioExcursions(
        avg_mae=sum(r.mae for r in results) / n,
        avg_mfe=sum(r.mfe for r in results) / n,
        avg_efficiency=sum(eff) / n,
        best_efficiency=max(eff),
        worst_efficiency=min(eff),
    )
