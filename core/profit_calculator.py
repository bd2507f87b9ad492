"""Position sizing and dollar P/L for tracked signals.

Pip values assume a USD-quoted standard lot ($10 per pip per lot). Risk per
trade follows the tier rules: HIGH-confidence signals (80+) risk 1.5% of the
account, everything below is paper traded at 0%.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from .models import confidence_bracket, pip_size_for


STANDARD_PIP_VALUE = 10.0  # USD per pip per standard lot
TRADING_DAYS_PER_MONTH = 21


@dataclass(frozen=True)
class BracketPerformance:
    confidence_bracket: str
    win_rate: float  # percent
    total_signals: int


@dataclass(frozen=True)
class ProfitEstimate:
    profit_usd: float
    risk_percent: float
    position_size: float
    risk_usd: Optional[float] = None


@dataclass(frozen=True)
class ProfitTotals:
    total_profit: float
    total_trades: int
    winning_trades: int
    losing_trades: int


@dataclass(frozen=True)
class PropFirmProjection:
    total_pips: float
    total_dollars: float
    monthly_dollars: float
    yearly_dollars: float
    account_size: float
    avg_pips_per_trade: float
    avg_dollars_per_trade: float
    projected_monthly_trades: float


@dataclass(frozen=True)
class RequirementsCheck:
    meets_requirements: bool
    issues: list[str] = field(default_factory=list)


def optimal_risk_percent(confidence: float, performance: Iterable[BracketPerformance] = ()) -> float:
    """Percent of account to risk. Needs 10+ signals in the bracket before history can lower it."""
    if confidence < 80:
        return 0.0
    bracket = confidence_bracket(confidence)
    perf = next((p for p in performance if p.confidence_bracket == bracket), None)
    if perf is not None and perf.total_signals >= 10 and perf.win_rate < 50:
        return 1.0
    return 1.5


def position_size(account_size: float, risk_percent: float, stop_loss_pips: float, pip_value: float = STANDARD_PIP_VALUE) -> float:
    """Lots = risk amount / (stop distance in pips * pip value per lot)."""
    if stop_loss_pips <= 0 or pip_value <= 0:
        return 0.0
    risk_amount = account_size * (risk_percent / 100.0)
    return risk_amount / (stop_loss_pips * pip_value)


def _pip(signal: Mapping[str, Any]) -> float:
    return pip_size_for(str(signal.get("symbol") or ""))


def potential_profit(
    account_size: float,
    signal: Mapping[str, Any],
    performance: Iterable[BracketPerformance] = (),
    pip_value: float = STANDARD_PIP_VALUE,
) -> ProfitEstimate:
    """Dollar profit if a pending signal reaches TP1."""
    pip = _pip(signal)
    entry = float(signal["entry_price"])
    stop_pips = abs(entry - float(signal["stop_loss"])) / pip
    tp1_pips = abs(float(signal["tp1"]) - entry) / pip

    risk_pct = optimal_risk_percent(float(signal["confidence"]), list(performance))
    size = position_size(account_size, risk_pct, stop_pips, pip_value)
    profit = size * tp1_pips * pip_value
    return ProfitEstimate(
        profit_usd=round(profit, 2),
        risk_percent=risk_pct,
        position_size=round(size, 2),
        risk_usd=round(account_size * risk_pct / 100.0, 2),
    )


def actual_profit(
    account_size: float,
    signal: Mapping[str, Any],
    performance: Iterable[BracketPerformance] = (),
    pip_value: float = STANDARD_PIP_VALUE,
) -> ProfitEstimate:
    pl_pips = signal.get("profit_loss_pips")
    if pl_pips is None or math.isnan(float(pl_pips)) or float(pl_pips) == 0:
        return ProfitEstimate(profit_usd=0.0, risk_percent=0.0, position_size=0.0)

    pip = _pip(signal)
    stop_pips = abs(float(signal["entry_price"]) - float(signal["stop_loss"])) / pip
    risk_pct = optimal_risk_percent(float(signal["confidence"]), list(performance))
    size = position_size(account_size, risk_pct, stop_pips, pip_value)
    return ProfitEstimate(
        profit_usd=round(size * float(pl_pips) * pip_value, 2),
        risk_percent=risk_pct,
        position_size=round(size, 2),
    )


def total_profit(
    account_size: float,
    completed: Iterable[Mapping[str, Any]],
    performance: Iterable[BracketPerformance] = (),
    pip_value: float = STANDARD_PIP_VALUE,
) -> ProfitTotals:
    perf = list(performance)
    total = 0.0
    wins = losses = n = 0
    for signal in completed:
        n += 1
        p = actual_profit(account_size, signal, perf, pip_value).profit_usd
        total += p
        if p > 0:
            wins += 1
        elif p < 0:
            losses += 1
    return ProfitTotals(total_profit=round(total, 2), total_trades=n, winning_trades=wins, losing_trades=losses)


# --- Prop-firm challenge helpers ---


def dollars_per_pip(account_size: float) -> float:
    # 1 standard lot per $100K of account -> $10/pip
    return account_size / 10_000.0


def prop_firm_projection(
    total_pips: float,
    total_trades: int,
    account_size: float = 100_000.0,
    avg_trades_per_day: float = 3.0,
) -> PropFirmProjection:
    dpp = dollars_per_pip(account_size)
    total_dollars = total_pips * dpp
    avg_pips = total_pips / total_trades if total_trades > 0 else 0.0
    avg_dollars = total_dollars / total_trades if total_trades > 0 else 0.0
    monthly_trades = avg_trades_per_day * TRADING_DAYS_PER_MONTH
    monthly = avg_dollars * monthly_trades
    return PropFirmProjection(
        total_pips=total_pips,
        total_dollars=total_dollars,
        monthly_dollars=monthly,
        yearly_dollars=monthly * 12,
        account_size=account_size,
        avg_pips_per_trade=avg_pips,
        avg_dollars_per_trade=avg_dollars,
        projected_monthly_trades=monthly_trades,
    )


def net_profit(gross_profit: float, split_percentage: float = 80.0) -> float:
    return gross_profit * (split_percentage / 100.0)


def format_dollars(amount: float) -> str:
    sign = "+" if amount >= 0 else "-"
    a = abs(amount)
    if a >= 1_000_000:
        return f"{sign}${a / 1_000_000:.2f}M"
    if a >= 1_000:
        return f"{sign}${a / 1_000:.1f}K"
    return f"{sign}${a:.0f}"


def meets_prop_firm_requirements(
    win_rate: float,
    profit_factor: float,
    max_drawdown_pips: float,
    account_size: float = 100_000.0,
    max_drawdown_pct: float = 8.0,
) -> RequirementsCheck:
    issues: list[str] = []
    if win_rate < 40:
        issues.append(f"Win rate {win_rate:.1f}% is below recommended 40%")
    if profit_factor < 1.5:
        issues.append(f"Profit factor {profit_factor:.2f} is below recommended 1.5")

    dd_dollars = max_drawdown_pips * dollars_per_pip(account_size)
    allowed = account_size * (max_drawdown_pct / 100.0)
    if dd_dollars > allowed:
        issues.append(f"Max drawdown ${dd_dollars:.0f} exceeds {max_drawdown_pct:g}% limit (${allowed:.0f})")

    return RequirementsCheck(meets_requirements=not issues, issues=issues)
