from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ExecutionMetrics:
    entry_slippage: Optional[float] = None  # pips
    exit_slippage: Optional[float] = None  # pips
    fill_latency: Optional[float] = None  # ms
    max_adverse_excursion: Optional[float] = None  # pips
    stop_loss_distance: Optional[float] = None  # pips


@dataclass(frozen=True)
class ExecutionGrade:
    grade: str
    score: float
    breakdown: dict[str, float]
    interpretation: str
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AggregateQuality:
    avg_grade: str = "N/A"
    avg_score: float = 0.0
    total_a: int = 0
    total_b: int = 0
    total_c: int = 0
    total_df: int = 0
    consistency: str = "Insufficient Data"


# (minimum score, grade), highest first
_GRADE_TABLE: tuple[tuple[float, str], ...] = (
    (98, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (65, "D+"),
    (60, "D"),
)


def score_to_grade(score: float) -> str:
    for floor, grade in _GRADE_TABLE:
        if score >= floor:
            return grade
    return "F"


def interpret_grade(score: float) -> str:
    if score >= 95:
        return "Outstanding execution - institutional-grade quality"
    if score >= 90:
        return "Excellent execution - professional standard"
    if score >= 85:
        return "Very good execution - minor improvements possible"
    if score >= 80:
        return "Good execution - solid performance"
    if score >= 75:
        return "Above average - some areas need attention"
    if score >= 70:
        return "Average execution - notable room for improvement"
    if score >= 60:
        return "Below average - execution issues impacting performance"
    return "Poor execution - significant improvements needed"


def calculate_grade(metrics: ExecutionMetrics) -> ExecutionGrade:
    score = 100.0
    breakdown = {"slippage_score": 100.0, "latency_score": 100.0, "mae_score": 100.0}
    recs: list[str] = []

    # --- Slippage (max -20) ---
    total_slippage = abs(metrics.entry_slippage or 0.0) + abs(metrics.exit_slippage or 0.0)
    if total_slippage > 2.0:
        score -= 20
        breakdown["slippage_score"] = 60.0
        recs.append("High slippage detected - consider limit orders or trading during liquid hours")
    elif total_slippage > 1.0:
        score -= 10
        breakdown["slippage_score"] = 80.0
        recs.append("Moderate slippage - acceptable but room for improvement")
    elif total_slippage > 0.5:
        score -= 5
        breakdown["slippage_score"] = 90.0

    # --- Fill latency (max -20) ---
    latency = metrics.fill_latency or 0.0
    if latency > 500:
        score -= 20
        breakdown["latency_score"] = 60.0
        recs.append("Slow order execution - check broker connection or VPS setup")
    elif latency > 200:
        score -= 10
        breakdown["latency_score"] = 80.0
        recs.append("Fill latency could be improved - consider faster broker or VPS")
    elif latency > 100:
        score -= 5
        breakdown["latency_score"] = 90.0

    # --- MAE vs stop distance (max -30, +5 bonus) ---
    if metrics.max_adverse_excursion is not None and metrics.stop_loss_distance:
        mae_ratio = metrics.max_adverse_excursion / metrics.stop_loss_distance
        if mae_ratio > 0.9:
            score -= 30
            breakdown["mae_score"] = 50.0
            recs.append("Trade came very close to stop loss - consider wider stops or better entries")
        elif mae_ratio > 0.8:
            score -= 20
            breakdown["mae_score"] = 70.0
            recs.append("Significant drawdown experienced - entry timing could be improved")
        elif mae_ratio > 0.5:
            score -= 10
            breakdown["mae_score"] = 85.0
        elif mae_ratio < 0.2:
            score += 5

    score = min(100.0, max(0.0, score))
    return ExecutionGrade(
        grade=score_to_grade(score),
        score=score,
        breakdown=breakdown,
        interpretation=interpret_grade(score),
        recommendations=recs or ["Excellent execution quality - maintain current approach"],
    )


def analyze_slippage(entry_slippage: float, exit_slippage: float) -> dict[str, object]:
    total = abs(entry_slippage) + abs(exit_slippage)
    if total < 0.5:
        rating, impact = "Excellent", "Negligible impact on profitability"
    elif total < 1.0:
        rating, impact = "Good", "Minor impact - within acceptable range"
    elif total < 2.0:
        rating, impact = "Fair", "Moderate impact - consider optimization"
    else:
        rating, impact = "Poor", "Significant impact - execution improvements critical"
    return {"total": total, "rating": rating, "impact": impact}


def analyze_latency(latency_ms: float) -> dict[str, str]:
    if latency_ms < 50:
        return {
            "rating": "Exceptional",
            "category": "Co-located / Low-latency",
            "recommendation": "Maintain current setup - excellent for scalping",
        }
    if latency_ms < 100:
        return {
            "rating": "Excellent",
            "category": "Professional-grade",
            "recommendation": "Good for all trading styles including scalping",
        }
    if latency_ms < 200:
        return {
            "rating": "Good",
            "category": "Retail VPS / Fast broker",
            "recommendation": "Suitable for day trading and swing trading",
        }
    if latency_ms < 500:
        return {
            "rating": "Fair",
            "category": "Standard retail connection",
            "recommendation": "Consider VPS for intraday trading",
        }
    return {
        "rating": "Poor",
        "category": "Slow connection",
        "recommendation": "Upgrade broker or use VPS - latency affecting execution",
    }


def aggregate_quality(trades: list[ExecutionMetrics]) -> AggregateQuality:
    if not trades:
        return AggregateQuality()

    grades = [calculate_grade(t) for t in trades]
    n = len(grades)
    avg = sum(g.score for g in grades) / n
    std = math.sqrt(sum((g.score - avg) ** 2 for g in grades) / n)

    if std < 5:
        consistency = "Highly Consistent"
    elif std < 10:
        consistency = "Consistent"
    elif std < 15:
        consistency = "Moderately Consistent"
    else:
        consistency = "Inconsistent"

    return AggregateQuality(
        avg_grade=score_to_grade(avg),
        avg_score=avg,
        total_a=sum(1 for g in grades if g.grade.startswith("A")),
        total_b=sum(1 for g in grades if g.grade.startswith("B")),
        total_c=sum(1 for g in grades if g.grade.startswith("C")),
        total_df=sum(1 for g in grades if g.grade.startswith("D") or g.grade == "F"),
        consistency=consistency,
    )
