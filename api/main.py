"""FastAPI backend for FX Signal Assistant.

Run with: uvicorn api.main:app --host 127.0.0.1 --port 8000 --reload
"""
from __future__ import annotations

import json
import sys
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Optional

import pandas as pd
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent

# ---------------------------------------------------------------------------
# Imports from existing modules
# ---------------------------------------------------------------------------
sys.path.insert(0, str(BASE_DIR))

from adapters.price_feed import PriceFeed, get_price_feed
from core.execution_quality import (
    ExecutionMetrics,
    aggregate_quality,
    analyze_latency,
    analyze_slippage,
    calculate_grade,
)
from core.learning_engine import LearningEngine, confidence_range, metrics_from_history
from core.mae_mfe import analyze_portfolio, break_even_time, calculate_mae_mfe, efficiency_score
from core.models import compute_pips, confidence_bracket, pip_size_for
from core.outcome_validator import OutcomeValidator
from core.profit_calculator import (
    BracketPerformance,
    actual_profit,
    format_dollars,
    meets_prop_firm_requirements,
    net_profit,
    potential_profit,
    prop_firm_projection,
    total_profit,
)
from core.session_analyzer import ALL_SESSIONS, analyze_by_session, detect_session, session_characteristics
from core.settings import SettingsV1, data_dir, database_path, load_settings
from core.trade_statistics import calculate_statistics, max_drawdown_pips, streaks
from storage.sqlite_store import SqliteStore, losses_mask, wins_mask

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure()
    yield


app = FastAPI(title="FX Signal Assistant API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

INSIGHTS_UNLOCK_SIGNALS = 10
ADVANCED_UNLOCK_SIGNALS = 30

# ---------------------------------------------------------------------------
# Application state (replaced wholesale by configure())
# ---------------------------------------------------------------------------
_settings: SettingsV1 = SettingsV1()
_store: SqliteStore = SqliteStore(database_path())
_price_feed: Optional[PriceFeed] = None
_engine: LearningEngine = LearningEngine()
_validator: OutcomeValidator = OutcomeValidator(_store, None)

# ---------------------------------------------------------------------------
# Short-lived endpoint response cache for analytics reads
# ---------------------------------------------------------------------------
import time as _time

_endpoint_response_cache: dict[str, tuple[float, Any]] = {}
_ENDPOINT_CACHE_TTL_SECONDS: dict[str, float] = {
    "performance": 10.0,
    "statistics": 10.0,
    "sessions": 10.0,
    "mae_mfe": 10.0,
    "execution_quality": 10.0,
    "profit_summary": 10.0,
}


def _cache_compose_key(endpoint: str, *parts: Any) -> str:
    safe_parts = [str(p) for p in parts]
    return f"{endpoint}|" + "|".join(safe_parts)


def _cache_get(endpoint: str, key: str) -> Any | None:
    ttl = _ENDPOINT_CACHE_TTL_SECONDS.get(endpoint)
    if ttl is None:
        return None
    cached = _endpoint_response_cache.get(key)
    if not cached:
        return None
    ts, payload = cached
    if (_time.monotonic() - ts) >= ttl:
        _endpoint_response_cache.pop(key, None)
        return None
    return payload


def _cache_set(endpoint: str, key: str, payload: Any) -> None:
    if endpoint in _ENDPOINT_CACHE_TTL_SECONDS:
        _endpoint_response_cache[key] = (_time.monotonic(), payload)


def _cache_invalidate_all() -> None:
    _endpoint_response_cache.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reload_learning() -> None:
    df = _store.read_signals_df(closed_only=True)
    _engine.load_metrics(metrics_from_history(df))


def _on_outcomes_changed() -> None:
    _cache_invalidate_all()
    _reload_learning()


def configure(
    data_base: Optional[Path] = None,
    settings: Optional[SettingsV1] = None,
    feed: Optional[PriceFeed] = None,
) -> None:
    """(Re)build store, price feed, learning engine and validator for a data directory."""
    global _settings, _store, _price_feed, _engine, _validator
    base = Path(data_base) if data_base is not None else data_dir()
    _settings = settings or load_settings(base / "settings.json")
    _store = SqliteStore(database_path(base))
    _store.init_db()
    _price_feed = feed if feed is not None else get_price_feed(_settings.price_feed)
    _engine = LearningEngine(config=_settings.learning)
    _validator = OutcomeValidator(_store, _price_feed, _settings, on_resolved=_on_outcomes_changed)
    _cache_invalidate_all()
    _reload_learning()
    print(f"[api] data dir {base}, price feed: {type(_price_feed).__name__ if _price_feed else 'none'}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _records(df: pd.DataFrame, drop: tuple[str, ...] = ("candles_json",)) -> list[dict[str, Any]]:
    """DataFrame -> JSON-safe list of dicts (NaN -> None, indicators parsed)."""
    if df.empty:
        return []
    out = df.drop(columns=[c for c in drop if c in df.columns])
    out = out.astype(object).where(out.notna(), None)
    rows = out.to_dict(orient="records")
    for r in rows:
        raw = r.pop("indicators_json", None)
        if raw:
            try:
                r["indicators"] = json.loads(raw)
            except ValueError:
                r["indicators"] = None
    return rows


def _signal_or_404(signal_id: str) -> dict[str, Any]:
    row = _store.get_signal(signal_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return dict(row)


def _closed_df(symbol: Optional[str] = None, days: int = 0) -> pd.DataFrame:
    since = None
    if days > 0:
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat(timespec="seconds")
    return _store.read_signals_df(symbol=symbol, closed_only=True, since_utc=since)


def _decided_df(symbol: Optional[str] = None, days: int = 0) -> pd.DataFrame:
    """Closed trades that count as a win or loss, oldest first."""
    df = _closed_df(symbol, days)
    if df.empty:
        return df
    df = df[wins_mask(df) | losses_mask(df)].copy()
    t = pd.to_datetime(df["outcome_time"], utc=True, errors="coerce")
    df["_t"] = t.fillna(pd.to_datetime(df["created_at"], utc=True, errors="coerce"))
    return df.sort_values(["_t", "id"]).drop(columns=["_t"]).reset_index(drop=True)


def _bracket_performance() -> list[BracketPerformance]:
    df = _closed_df()
    if df.empty:
        return []
    won = wins_mask(df)
    lost = losses_mask(df)
    df = df.assign(
        _bracket=pd.to_numeric(df["confidence"], errors="coerce").fillna(0.0).apply(confidence_bracket),
        _won=won,
        _decided=won | lost,
    )
    out: list[BracketPerformance] = []
    for bracket, grp in df.groupby("_bracket"):
        decided = int(grp["_decided"].sum())
        win_rate = float(grp["_won"].sum()) / decided * 100.0 if decided else 0.0
        out.append(BracketPerformance(confidence_bracket=str(bracket), win_rate=win_rate, total_signals=int(len(grp))))
    return out


def _execution_metrics(row: dict[str, Any]) -> ExecutionMetrics:
    def _f(key: str) -> Optional[float]:
        v = row.get(key)
        return None if v is None or pd.isna(v) else float(v)

    stop_pips = abs(float(row["entry_price"]) - float(row["stop_loss"])) / pip_size_for(str(row["symbol"]))
    return ExecutionMetrics(
        entry_slippage=_f("entry_slippage_pips"),
        exit_slippage=_f("exit_slippage_pips"),
        fill_latency=_f("fill_latency_ms"),
        max_adverse_excursion=_f("max_adverse_pips"),
        stop_loss_distance=stop_pips,
    )


def _recompute_performance(symbol: str, confidence: float, strategy_version: str) -> None:
    _store.recompute_strategy_performance(symbol, confidence_bracket(confidence), strategy_version)
    _store.recompute_strategy_performance(symbol, "ALL", strategy_version)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignalPayload(BaseModel):
    id: str
    symbol: str
    type: Literal["LONG", "SHORT"]
    confidence: float = Field(ge=0, le=100)
    entry: float
    stop: float
    targets: list[float]
    current_price: Optional[float] = None
    tier: Optional[Literal["HIGH", "MEDIUM"]] = None
    trade_live: Optional[bool] = None
    position_size_percent: Optional[float] = None
    stop_limit_price: Optional[float] = None
    order_type: Optional[str] = None
    execution_type: Optional[str] = None
    strategy: Optional[str] = None
    version: str = "1.0.0"
    indicators: Optional[dict[str, Any]] = None
    entry_slippage_pips: Optional[float] = None
    fill_latency_ms: Optional[float] = None


class TrackSignalRequest(BaseModel):
    signal: SignalPayload
    candles: Optional[list[dict[str, Any]]] = None


class CloseSignalRequest(BaseModel):
    close_price: float = Field(gt=0)
    exit_slippage_pips: Optional[float] = None


class AdjustConfidenceRequest(BaseModel):
    symbol: str
    confidence: float = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "time_utc": _now_iso(),
        "price_feed": type(_price_feed).__name__ if _price_feed else None,
        "validator_running": _validator.running,
        "active_multipliers": len(_engine.multipliers()),
    }


# ---------------------------------------------------------------------------
# Endpoints: Signals
# ---------------------------------------------------------------------------


@app.post("/api/signals/track")
def track_signal(req: TrackSignalRequest) -> dict[str, Any]:
    cfg = _settings.tracking
    s = req.signal
    if s.confidence < cfg.min_confidence:
        raise HTTPException(
            status_code=400, detail=f"Only signals with {cfg.min_confidence:g}%+ confidence can be tracked"
        )
    if not s.targets:
        raise HTTPException(status_code=400, detail="At least one target is required")

    live = s.confidence >= cfg.live_tier_confidence
    targets = list(s.targets) + [None, None]
    now = datetime.now(timezone.utc)
    row = {
        "signal_id": s.id,
        "symbol": s.symbol,
        "type": s.type,
        "confidence": s.confidence,
        "tier": s.tier or ("HIGH" if live else "MEDIUM"),
        "trade_live": int(s.trade_live if s.trade_live is not None else live),
        "position_size_percent": (
            s.position_size_percent
            if s.position_size_percent is not None
            else (cfg.live_position_size_percent if live else 0.0)
        ),
        "entry_price": s.entry,
        "current_price": s.current_price,
        "stop_loss": s.stop,
        "tp1": targets[0],
        "tp2": targets[1],
        "tp3": targets[2],
        "stop_limit_price": s.stop_limit_price,
        "order_type": s.order_type,
        "execution_type": s.execution_type,
        "strategy_name": s.strategy,
        "strategy_version": s.version,
        "indicators_json": json.dumps(s.indicators) if s.indicators is not None else None,
        "candles_json": json.dumps(req.candles) if req.candles is not None else None,
        "created_at": now.isoformat(timespec="seconds"),
        "expires_at": (now + timedelta(hours=cfg.expiry_hours)).isoformat(timespec="seconds"),
        "entry_slippage_pips": s.entry_slippage_pips,
        "fill_latency_ms": s.fill_latency_ms,
        "updated_at": now.isoformat(timespec="seconds"),
    }
    inserted = _store.insert_signal(row)
    if inserted:
        _cache_invalidate_all()
        print(f"[api] tracking {s.id} {s.symbol} {s.type} @ {s.confidence:g}%")
    return {
        "success": True,
        "message": "Signal tracked successfully" if inserted else "Signal already tracked",
        "signal_id": s.id,
        "inserted": inserted,
        "adjusted_confidence": round(_engine.adjust_confidence(s.symbol, s.confidence), 2),
    }


@app.get("/api/signals/active")
def get_active_signals() -> dict[str, Any]:
    rows = [dict(r) for r in _store.list_active_signals()]
    return {"signals": _records(pd.DataFrame(rows))}


@app.get("/api/signals/history")
def get_signal_history(limit: int = 50, offset: int = 0, days: int = 0) -> dict[str, Any]:
    """Closed signals, newest outcome first. days=0 means all time."""
    limit = max(1, min(int(limit), 500))
    offset = max(0, int(offset))
    df = _store.read_signals_df(closed_only=True)
    if not df.empty:
        df["_t"] = pd.to_datetime(df["outcome_time"], utc=True, errors="coerce")
        if days > 0:
            cutoff = pd.Timestamp.now(tz="UTC") - pd.Timedelta(days=days)
            df = df[df["_t"] >= cutoff]
        df = df.sort_values(["_t", "id"], ascending=[False, False], na_position="last").drop(columns=["_t"])
    total = int(len(df))
    page = df.iloc[offset : offset + limit]
    history = _records(page)
    return {
        "history": history,
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + len(history) < total,
    }


@app.get("/api/signals/performance")
def get_performance() -> dict[str, Any]:
    cache_key = _cache_compose_key("performance")
    cached_payload = _cache_get("performance", cache_key)
    if cached_payload is not None:
        return cached_payload

    df = _store.read_signals_df()
    if df.empty:
        total = wins = losses = expired = pending = 0
        avg_win = avg_loss = 0.0
    else:
        outcome = df["outcome"]
        pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce")
        won = wins_mask(df)
        lost = losses_mask(df)
        total = int(len(df))
        wins = int(won.sum())
        losses = int(lost.sum())
        expired = int((outcome == "EXPIRED").sum())
        pending = int((outcome == "PENDING").sum())
        avg_win = float(pips[won].mean()) if won.any() else 0.0
        avg_loss = float(pips[lost].abs().mean()) if lost.any() else 0.0
    decided = wins + losses
    completed = total - pending

    perf = _store.read_strategy_performance_df()
    by_symbol = []
    if not perf.empty:
        perf = perf.assign(wins=perf["tp1_hit"] + perf["tp2_hit"] + perf["tp3_hit"], losses=perf["stop_hit"])
        by_symbol = _records(
            perf[["symbol", "confidence_bracket", "strategy_version", "total_signals", "wins", "losses", "expired", "win_rate", "avg_profit_pips", "avg_loss_pips"]]
        )

    payload = {
        "overall": {
            "total_signals": total,
            "wins": wins,
            "losses": losses,
            "expired": expired,
            "pending": pending,
            "win_rate": round(wins / decided * 100.0, 2) if decided else 0.0,
            "avg_win_pips": round(avg_win, 2),
            "avg_loss_pips": round(avg_loss, 2),
        },
        "by_symbol": by_symbol,
        "unlocks": {
            "insights_unlocked": completed >= INSIGHTS_UNLOCK_SIGNALS,
            "advanced_unlocked": completed >= ADVANCED_UNLOCK_SIGNALS,
            "signals_needed_for_insights": max(0, INSIGHTS_UNLOCK_SIGNALS - completed),
            "signals_needed_for_advanced": max(0, ADVANCED_UNLOCK_SIGNALS - completed),
        },
    }
    _cache_set("performance", cache_key, payload)
    return payload


@app.post("/api/signals/{signal_id}/close")
def close_signal(signal_id: str, req: CloseSignalRequest) -> dict[str, Any]:
    row = _signal_or_404(signal_id)
    if row["outcome"] != "PENDING":
        raise HTTPException(status_code=409, detail=f"Signal already closed ({row['outcome']})")

    pips = compute_pips(str(row["type"]), float(row["entry_price"]), req.close_price, pip_size_for(str(row["symbol"])))
    updates: dict[str, Any] = {
        "outcome": "MANUALLY_CLOSED",
        "outcome_price": req.close_price,
        "outcome_time": _now_iso(),
        "profit_loss_pips": round(pips, 1),
        "manually_closed_by_user": 1,
    }
    if req.exit_slippage_pips is not None:
        updates["exit_slippage_pips"] = req.exit_slippage_pips
    if not _store.resolve_signal(signal_id, updates):
        raise HTTPException(status_code=409, detail="Signal was resolved while closing")
    _recompute_performance(str(row["symbol"]), float(row["confidence"]), str(row.get("strategy_version") or "1.0.0"))
    _on_outcomes_changed()
    print(f"[api] {signal_id} closed manually at {req.close_price} ({pips:+.1f} pips)")
    return {"success": True, "message": "Signal closed successfully", "profit_loss_pips": round(pips, 1)}


@app.get("/api/signals/{signal_id}/mae-mfe")
def get_signal_mae_mfe(signal_id: str) -> dict[str, Any]:
    row = _signal_or_404(signal_id)
    candles = row.get("candles_json")
    res = calculate_mae_mfe(
        direction=str(row["type"]),
        entry_price=float(row["entry_price"]),
        stop_loss=float(row["stop_loss"]),
        symbol=str(row["symbol"]),
        candles=candles,
    )
    be = break_even_time(direction=str(row["type"]), entry_price=float(row["entry_price"]), candles=candles)
    return {
        "signal_id": signal_id,
        **asdict(res),
        "efficiency_score": efficiency_score(res),
        "break_even_time": be.isoformat() if be is not None else None,
        "has_candles": bool(candles),
    }


@app.get("/api/signals/{signal_id}/execution-quality")
def get_signal_execution_quality(signal_id: str) -> dict[str, Any]:
    row = _signal_or_404(signal_id)
    metrics = _execution_metrics(row)
    out: dict[str, Any] = {"signal_id": signal_id, **asdict(calculate_grade(metrics))}
    if metrics.entry_slippage is not None or metrics.exit_slippage is not None:
        out["slippage"] = analyze_slippage(metrics.entry_slippage or 0.0, metrics.exit_slippage or 0.0)
    if metrics.fill_latency is not None:
        out["latency"] = analyze_latency(metrics.fill_latency)
    return out


@app.get("/api/signals/{signal_id}/profit")
def get_signal_profit(signal_id: str, account_size: Optional[float] = None) -> dict[str, Any]:
    row = _signal_or_404(signal_id)
    acct = _settings.account
    size = float(account_size) if account_size else acct.account_size
    perf = _bracket_performance()
    if row["outcome"] == "PENDING":
        est = potential_profit(size, row, perf, acct.pip_value_per_lot)
        kind = "potential"
    else:
        est = actual_profit(size, row, perf, acct.pip_value_per_lot)
        kind = "actual"
    return {
        "signal_id": signal_id,
        "kind": kind,
        "account_size": size,
        **asdict(est),
        "formatted": format_dollars(est.profit_usd),
    }


# ---------------------------------------------------------------------------
# Endpoints: Analytics
# ---------------------------------------------------------------------------


@app.get("/api/analytics/statistics")
def get_statistics(symbol: Optional[str] = None, days: int = 0) -> dict[str, Any]:
    cache_key = _cache_compose_key("statistics", symbol or "", days)
    cached_payload = _cache_get("statistics", cache_key)
    if cached_payload is not None:
        return cached_payload

    df = _decided_df(symbol, days)
    pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce").dropna() if not df.empty else pd.Series(dtype=float)
    payload = {
        **asdict(calculate_statistics(pips)),
        "streaks": asdict(streaks(df)),
        "max_drawdown_pips": round(max_drawdown_pips(pips), 1),
        "total_pips": round(float(pips.sum()), 1),
    }
    _cache_set("statistics", cache_key, payload)
    return payload


@app.get("/api/analytics/sessions")
def get_sessions(symbol: Optional[str] = None, days: int = 0) -> dict[str, Any]:
    cache_key = _cache_compose_key("sessions", symbol or "", days)
    cached_payload = _cache_get("sessions", cache_key)
    if cached_payload is not None:
        return cached_payload

    perf = analyze_by_session(_decided_df(symbol, days))
    payload = asdict(perf)
    payload["current_session"] = detect_session(pd.Timestamp.now(tz="UTC"))
    _cache_set("sessions", cache_key, payload)
    return payload


@app.get("/api/analytics/sessions/{session}")
def get_session_detail(session: str) -> dict[str, Any]:
    key = session.upper()
    if key not in ALL_SESSIONS:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session}")
    perf = analyze_by_session(_decided_df())
    stats = next((s for s in perf.sessions if s.session == key), None)
    return {
        "session": key,
        "characteristics": session_characteristics(key),
        "stats": asdict(stats) if stats is not None else None,
    }


@app.get("/api/analytics/mae-mfe")
def get_portfolio_mae_mfe(symbol: Optional[str] = None, days: int = 0) -> dict[str, Any]:
    cache_key = _cache_compose_key("mae_mfe", symbol or "", days)
    cached_payload = _cache_get("mae_mfe", cache_key)
    if cached_payload is not None:
        return cached_payload

    df = _closed_df(symbol, days)
    trades: list[dict[str, Any]] = []
    if not df.empty:
        with_candles = df[df["candles_json"].notna()]
        for r in with_candles.to_dict(orient="records"):
            trades.append({**r, "candles": r["candles_json"]})
    payload = {**asdict(analyze_portfolio(trades)), "trades_analyzed": len(trades)}
    _cache_set("mae_mfe", cache_key, payload)
    return payload


@app.get("/api/analytics/execution-quality")
def get_execution_quality(symbol: Optional[str] = None, days: int = 0) -> dict[str, Any]:
    cache_key = _cache_compose_key("execution_quality", symbol or "", days)
    cached_payload = _cache_get("execution_quality", cache_key)
    if cached_payload is not None:
        return cached_payload

    df = _closed_df(symbol, days)
    metrics: list[ExecutionMetrics] = []
    if not df.empty:
        cols = ["entry_slippage_pips", "exit_slippage_pips", "fill_latency_ms", "max_adverse_pips"]
        has_data = df[cols].notna().any(axis=1)
        metrics = [_execution_metrics(r) for r in df[has_data].to_dict(orient="records")]
    payload = {**asdict(aggregate_quality(metrics)), "trades_analyzed": len(metrics)}
    _cache_set("execution_quality", cache_key, payload)
    return payload


@app.get("/api/analytics/profit-summary")
def get_profit_summary(account_size: Optional[float] = None, days: int = 0) -> dict[str, Any]:
    acct = _settings.account
    size = float(account_size) if account_size else acct.account_size
    cache_key = _cache_compose_key("profit_summary", size, days)
    cached_payload = _cache_get("profit_summary", cache_key)
    if cached_payload is not None:
        return cached_payload

    df = _decided_df(days=days)
    rows = df.to_dict(orient="records") if not df.empty else []
    totals = total_profit(size, rows, _bracket_performance(), acct.pip_value_per_lot)
    pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce").dropna() if not df.empty else pd.Series(dtype=float)
    stats = calculate_statistics(pips)
    projection = prop_firm_projection(float(pips.sum()), int(len(pips)), size, acct.avg_trades_per_day)
    check = meets_prop_firm_requirements(
        stats.win_rate, stats.profit_factor, max_drawdown_pips(pips), size, acct.max_drawdown_pct
    )
    payload = {
        "account_size": size,
        "totals": asdict(totals),
        "projection": asdict(projection),
        "net_monthly": net_profit(projection.monthly_dollars, acct.profit_split_pct),
        "formatted": {
            "total_profit": format_dollars(totals.total_profit),
            "monthly": format_dollars(projection.monthly_dollars),
            "yearly": format_dollars(projection.yearly_dollars),
        },
        "requirements": asdict(check),
    }
    _cache_set("profit_summary", cache_key, payload)
    return payload


# ---------------------------------------------------------------------------
# Endpoints: Learning engine
# ---------------------------------------------------------------------------


@app.get("/api/learning/multipliers")
def get_multipliers() -> dict[str, Any]:
    return {"multipliers": [asdict(m) for m in _engine.multipliers()]}


@app.get("/api/learning/overview")
def get_learning_overview(limit: int = 5) -> dict[str, Any]:
    return {
        **_engine.overall_stats(),
        "top_performers": [m.to_dict() for m in _engine.top_performers(limit)],
        "worst_performers": [m.to_dict() for m in _engine.worst_performers(limit)],
    }


@app.get("/api/learning/symbols/{symbol:path}")
def get_symbol_learning(symbol: str) -> dict[str, Any]:
    return {"symbol": symbol, "metrics": [m.to_dict() for m in _engine.symbol_performance(symbol)]}


@app.post("/api/learning/adjust")
def adjust_confidence(req: AdjustConfidenceRequest) -> dict[str, Any]:
    return {
        "symbol": req.symbol,
        "confidence_range": confidence_range(req.confidence),
        "base_confidence": req.confidence,
        "multiplier": _engine.get_multiplier(req.symbol, req.confidence),
        "adjusted_confidence": round(_engine.adjust_confidence(req.symbol, req.confidence), 2),
    }


@app.post("/api/learning/reload")
def reload_learning() -> dict[str, Any]:
    _reload_learning()
    return {"success": True, **_engine.overall_stats()}


@app.post("/api/learning/reset")
def reset_learning() -> dict[str, Any]:
    _engine.reset()
    return {"success": True}


# ---------------------------------------------------------------------------
# Endpoints: Outcome validator
# ---------------------------------------------------------------------------


@app.post("/api/validator/run")
def run_validator() -> dict[str, Any]:
    summary = _validator.validate_pending_signals()
    if summary is None:
        raise HTTPException(status_code=409, detail="Validator is already running")
    return asdict(summary)
