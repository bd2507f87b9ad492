"""Group closed trades by the FX session (UTC hour) in which they were opened."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

import pandas as pd


Session = Literal["ASIA", "LONDON", "NY", "LONDON_NY_OVERLAP", "OFF_HOURS"]

ALL_SESSIONS: tuple[Session, ...] = ("ASIA", "LONDON", "NY", "LONDON_NY_OVERLAP", "OFF_HOURS")

# [start, end) UTC hours, checked in this order; first match wins.
SESSION_HOURS: tuple[tuple[Session, int, int], ...] = (
    ("LONDON_NY_OVERLAP", 12, 16),
    ("LONDON", 7, 16),
    ("NY", 12, 21),
    ("ASIA", 23, 8),  # wraps midnight
)

_SESSION_NAMES: dict[str, str] = {
    "ASIA": "Asian Session",
    "LONDON": "London Session",
    "NY": "New York Session",
    "LONDON_NY_OVERLAP": "London/NY Overlap",
    "OFF_HOURS": "Off-Hours",
}

_SESSION_DESCRIPTIONS: dict[str, str] = {
    "ASIA": "Asian Session (quieter, ranging)",
    "LONDON": "London Session (high volatility)",
    "NY": "New York Session (USD pairs active)",
    "LONDON_NY_OVERLAP": "London/NY Overlap (most liquid)",
    "OFF_HOURS": "Off-Hours (low liquidity)",
}

SESSION_CHARACTERISTICS: dict[str, dict[str, Any]] = {
    "ASIA": {
        "name": "Asian Session",
        "utc_hours": "23:00 - 08:00 UTC",
        "characteristics": [
            "Lower volatility and tighter ranges",
            "JPY pairs most active",
            "Good for range trading strategies",
            "Fewer breakouts, more consolidation",
        ],
        "best_pairs": ["USDJPY", "EURJPY", "AUDJPY", "NZDJPY"],
        "volatility": "Low to Medium",
    },
    "LONDON": {
        "name": "London Session",
        "utc_hours": "07:00 - 16:00 UTC",
        "characteristics": [
            "High volatility with strong trends",
            "EUR and GBP pairs most active",
            "Major economic news releases",
            "Best for breakout strategies",
        ],
        "best_pairs": ["EURUSD", "GBPUSD", "EURGBP", "EURJPY"],
        "volatility": "High",
    },
    "NY": {
        "name": "New York Session",
        "utc_hours": "12:00 - 21:00 UTC",
        "characteristics": [
            "USD pairs dominate",
            "High liquidity and volume",
            "US economic data releases",
            "Afternoon reversals common",
        ],
        "best_pairs": ["EURUSD", "GBPUSD", "USDJPY", "USDCAD"],
        "volatility": "High",
    },
    "LONDON_NY_OVERLAP": {
        "name": "London/NY Overlap",
        "utc_hours": "12:00 - 16:00 UTC",
        "characteristics": [
            "Highest liquidity period globally",
            "Tightest spreads",
            "Major moves and breakouts",
            "Ideal for day trading",
        ],
        "best_pairs": ["EURUSD", "GBPUSD", "USDJPY", "EURGBP"],
        "volatility": "Very High",
    },
    "OFF_HOURS": {
        "name": "Off-Hours",
        "utc_hours": "Between major sessions",
        "characteristics": [
            "Very low liquidity",
            "Wider spreads",
            "Risk of false breakouts",
            "Generally avoid trading",
        ],
        "best_pairs": [],
        "volatility": "Very Low",
    },
}


@dataclass(frozen=True)
class SessionStats:
    session: Session
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_profit: float
    total_pips: float
    best_trade: float
    worst_trade: float
    interpretation: str


@dataclass(frozen=True)
class SessionPerformance:
    sessions: list[SessionStats] = field(default_factory=list)
    best_session: Session = "LONDON_NY_OVERLAP"
    worst_session: Session = "OFF_HOURS"
    recommendation: str = "Insufficient data to generate session-based recommendations"


def _in_range(hour: int, start: int, end: int) -> bool:
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def detect_session(ts: datetime | pd.Timestamp | str) -> Session:
    t = pd.to_datetime(ts, utc=True)
    hour = int(t.hour)
    for session, start, end in SESSION_HOURS:
        if _in_range(hour, start, end):
            return session
    return "OFF_HOURS"


def session_name(session: str) -> str:
    return _SESSION_NAMES[session]


def session_characteristics(session: str) -> Optional[dict[str, Any]]:
    return SESSION_CHARACTERISTICS.get(session)


def interpret_session(session: str, win_rate: float) -> str:
    name = _SESSION_DESCRIPTIONS[session]
    if win_rate >= 70:
        return f"Strong performance during {name}"
    if win_rate >= 60:
        return f"Good results in {name}"
    if win_rate >= 50:
        return f"Moderate success in {name}"
    if win_rate >= 40:
        return f"Below average in {name} - needs improvement"
    return f"Poor performance in {name} - avoid or adjust strategy"


def _session_stats(session: Session, pips: pd.Series) -> SessionStats:
    n = int(len(pips))
    wins = int((pips > 0).sum())
    losses = int((pips < 0).sum())
    total = float(pips.sum())
    win_rate = wins / n * 100.0
    return SessionStats(
        session=session,
        total_trades=n,
        winning_trades=wins,
        losing_trades=losses,
        win_rate=win_rate,
        avg_profit=total / n,
        total_pips=total,
        best_trade=float(pips.max()),
        worst_trade=float(pips.min()),
        interpretation=interpret_session(session, win_rate),
    )


def _recommendation(sessions: list[SessionStats], best: Session, worst: Session) -> str:
    b = next((s for s in sessions if s.session == best), None)
    w = next((s for s in sessions if s.session == worst), None)
    if b is None or w is None:
        return "Insufficient data to generate session-based recommendations"

    diff = b.win_rate - w.win_rate
    if diff > 30:
        return (
            f"Strong preference for {session_name(best)} trading. "
            f"Consider avoiding {session_name(worst)} or adjusting strategy. "
            f"{b.win_rate:.1f}% win rate vs {w.win_rate:.1f}% win rate."
        )
    if diff > 15:
        return (
            f"Better results during {session_name(best)} ({b.win_rate:.1f}% win rate). "
            f"Monitor {session_name(worst)} trades more carefully."
        )
    return f"Consistent performance across sessions. Current best: {session_name(best)}"


def analyze_by_session(trades: list[dict[str, Any]] | pd.DataFrame) -> SessionPerformance:
    """Trades need created_at and profit_loss_pips; rows missing either are skipped."""
    df = trades.copy() if isinstance(trades, pd.DataFrame) else pd.DataFrame(list(trades))
    if df.empty or "created_at" not in df.columns or "profit_loss_pips" not in df.columns:
        return SessionPerformance()

    df["_t"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce")
    df["_pips"] = pd.to_numeric(df["profit_loss_pips"], errors="coerce")
    df = df.dropna(subset=["_t", "_pips"])
    if df.empty:
        return SessionPerformance()
    df["_session"] = df["_t"].apply(detect_session)

    sessions = [
        _session_stats(s, df.loc[df["_session"] == s, "_pips"])
        for s in ALL_SESSIONS
        if (df["_session"] == s).any()
    ]

    best = sessions[0]
    worst = sessions[0]
    for s in sessions[1:]:
        if s.win_rate > best.win_rate:
            best = s
        if s.win_rate < worst.win_rate:
            worst = s

    return SessionPerformance(
        sessions=sessions,
        best_session=best.session,
        worst_session=worst.session,
        recommendation=_recommendation(sessions, best.session, worst.session),
    )
