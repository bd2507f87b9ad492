from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional


Direction = Literal["LONG", "SHORT"]
Outcome = Literal["PENDING", "TP1_HIT", "TP2_HIT", "TP3_HIT", "STOP_HIT", "EXPIRED", "MANUALLY_CLOSED"]
Tier = Literal["HIGH", "MEDIUM"]

WIN_OUTCOMES: tuple[str, ...] = ("TP1_HIT", "TP2_HIT", "TP3_HIT")
LOSS_OUTCOMES: tuple[str, ...] = ("STOP_HIT",)
CLOSED_OUTCOMES: tuple[str, ...] = WIN_OUTCOMES + LOSS_OUTCOMES + ("EXPIRED", "MANUALLY_CLOSED")


@dataclass(frozen=True)
class SignalRecord:
    signal_id: str
    symbol: str
    type: Direction
    confidence: float
    entry_price: float
    stop_loss: float
    tp1: float
    tp2: Optional[float] = None
    tp3: Optional[float] = None
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    outcome: Outcome = "PENDING"
    strategy_version: str = "1.0.0"

    @classmethod
    def from_row(cls, row: Any) -> "SignalRecord":
        """Build from a sqlite3.Row, pandas row or plain dict."""
        def _get(key: str, default: Any = None) -> Any:
            try:
                v = row[key]
            except (KeyError, IndexError):
                return default
            return default if v is None else v

        return cls(
            signal_id=str(_get("signal_id")),
            symbol=str(_get("symbol")),
            type=str(_get("type", "LONG")).upper(),  # type: ignore[arg-type]
            confidence=float(_get("confidence", 0.0)),
            entry_price=float(_get("entry_price")),
            stop_loss=float(_get("stop_loss")),
            tp1=float(_get("tp1")),
            tp2=_float_or_none(_get("tp2")),
            tp3=_float_or_none(_get("tp3")),
            created_at=_get("created_at"),
            expires_at=_get("expires_at"),
            outcome=str(_get("outcome", "PENDING")),  # type: ignore[arg-type]
            strategy_version=str(_get("strategy_version", "1.0.0")),
        )


@dataclass(frozen=True)
class OutcomeResult:
    outcome: Outcome
    price: float
    time_utc: Optional[str] = None


@dataclass
class ValidationSummary:
    checked: int = 0
    updated: int = 0
    expired: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def _float_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def pip_size_for(symbol: str) -> float:
    """JPY pairs quote to 2 decimals (pip = 0.01), everything else to 4."""
    return 0.01 if "JPY" in (symbol or "").upper() else 0.0001


def compute_pips(direction: str, entry: float, exit_: float, pip_size: float) -> float:
    d = (direction or "").upper()
    if d == "LONG":
        return (exit_ - entry) / pip_size
    if d == "SHORT":
        return (entry - exit_) / pip_size
    raise ValueError("direction must be 'LONG' or 'SHORT'")


def compute_r_multiple(pips: float, entry: float, stop: float | None, pip_size: float) -> tuple[float | None, float | None]:
    if stop is None:
        return None, None
    risk_pips = abs(entry - stop) / pip_size
    if risk_pips == 0:
        return float(risk_pips), None
    return float(risk_pips), float(pips / risk_pips)


def is_win(outcome: str, pips: float | None) -> bool:
    if outcome in WIN_OUTCOMES:
        return True
    if outcome == "MANUALLY_CLOSED":
        return pips is not None and pips > 0
    return False


def is_loss(outcome: str, pips: float | None) -> bool:
    if outcome in LOSS_OUTCOMES:
        return True
    if outcome == "MANUALLY_CLOSED":
        return pips is not None and pips < 0
    return False


def confidence_bracket(confidence: float) -> str:
    """Coarse bracket used by the performance table and risk sizing."""
    if confidence >= 90:
        return "90-100"
    if confidence >= 80:
        return "80-89"
    return "70-79"
