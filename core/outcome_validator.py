"""Resolve pending signals against live prices.

Each run walks the PENDING rows in signal_history: signals past their expiry
are closed as EXPIRED, the rest are compared with the current quote (or the
candles since creation) and closed at TP1 or the stop when either is reached.
Every touched (symbol, bracket) row of strategy_performance is rebuilt
afterwards, together with the symbol's ALL row.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pandas as pd

from adapters.price_feed import PriceFeed, PriceFeedError
from storage.sqlite_store import SqliteStore

from .mae_mfe import calculate_mae_mfe, candles_frame
from .models import (
    OutcomeResult,
    SignalRecord,
    ValidationSummary,
    compute_pips,
    confidence_bracket,
    pip_size_for,
)
from .settings import SettingsV1


def check_outcome(signal: SignalRecord, price: float) -> Optional[OutcomeResult]:
    """TP1 is checked before the stop."""
    if signal.type == "LONG":
        if price >= signal.tp1:
            return OutcomeResult(outcome="TP1_HIT", price=price)
        if price <= signal.stop_loss:
            return OutcomeResult(outcome="STOP_HIT", price=price)
        return None
    if signal.type == "SHORT":
        if price <= signal.tp1:
            return OutcomeResult(outcome="TP1_HIT", price=price)
        if price >= signal.stop_loss:
            return OutcomeResult(outcome="STOP_HIT", price=price)
        return None
    raise ValueError("direction must be 'LONG' or 'SHORT'")


def _after(df: pd.DataFrame, start: Any, end: Any = None) -> pd.DataFrame:
    if df.empty or "time" not in df.columns:
        return df
    t = pd.to_datetime(df["time"], utc=True, errors="coerce")
    mask = t.notna()
    if start is not None:
        mask &= t >= pd.to_datetime(start, utc=True)
    if end is not None:
        mask &= t <= pd.to_datetime(end, utc=True)
    out = df[mask].copy()
    out["time"] = t[mask]
    return out.sort_values("time").reset_index(drop=True)


def check_outcome_from_candles(signal: SignalRecord, candles: Any) -> Optional[OutcomeResult]:
    """First candle after creation that reaches TP1 or the stop.

    A candle whose range covers both levels counts as a stop: the intrabar
    order is unknown.
    """
    df = _after(candles_frame(candles), signal.created_at)
    if df.empty:
        return None
    is_long = signal.type == "LONG"
    if not is_long and signal.type != "SHORT":
        raise ValueError("direction must be 'LONG' or 'SHORT'")

    for _, c in df.iterrows():
        if is_long:
            hit_stop = c["low"] <= signal.stop_loss
            hit_tp = c["high"] >= signal.tp1
        else:
            hit_stop = c["high"] >= signal.stop_loss
            hit_tp = c["low"] <= signal.tp1
        ts = c["time"].isoformat() if "time" in df.columns else None
        if hit_stop:
            return OutcomeResult(outcome="STOP_HIT", price=signal.stop_loss, time_utc=ts)
        if hit_tp:
            return OutcomeResult(outcome="TP1_HIT", price=signal.tp1, time_utc=ts)
    return None


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="seconds")


class OutcomeValidator:
    def __init__(
        self,
        store: SqliteStore,
        feed: Optional[PriceFeed],
        settings: Optional[SettingsV1] = None,
        on_resolved: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.feed = feed
        self.settings = settings or SettingsV1()
        self.on_resolved = on_resolved
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def validate_pending_signals(self, now: Optional[datetime] = None) -> Optional[ValidationSummary]:
        """Run one pass. Returns None when a pass is already in progress."""
        if not self._lock.acquire(blocking=False):
            print("[outcome_validator] previous run still in progress, skipping")
            return None
        try:
            when = pd.to_datetime(now or datetime.now(timezone.utc), utc=True).to_pydatetime()
            return self._run(when)
        finally:
            self._lock.release()

    def _run(self, now: datetime) -> ValidationSummary:
        summary = ValidationSummary()
        pending = self.store.list_pending_signals()
        print(f"[outcome_validator] checking {len(pending)} pending signals")

        now_ts = pd.Timestamp(now)
        prices: dict[str, Optional[float]] = {}
        touched: set[tuple[str, str, str]] = set()

        for row in pending:
            summary.checked += 1
            try:
                signal = SignalRecord.from_row(row)
                expires = pd.to_datetime(signal.expires_at, utc=True, errors="coerce")
                if not pd.isna(expires) and now_ts >= expires:
                    if not self.store.resolve_signal(
                        signal.signal_id,
                        {"outcome": "EXPIRED", "outcome_time": _iso(now)},
                    ):
                        summary.skipped += 1
                        continue
                    summary.expired += 1
                    touched.add((signal.symbol, signal.strategy_version, confidence_bracket(signal.confidence)))
                    print(f"[outcome_validator] {signal.signal_id} expired")
                    continue

                feed = self.feed
                if feed is None:
                    summary.skipped += 1
                    continue

                available, result = self._resolve(feed, signal, prices)
                if not available:
                    summary.skipped += 1
                    continue
                if result is None:
                    continue

                if not self._record(feed, signal, result, now):
                    summary.skipped += 1
                    continue
                summary.updated += 1
                touched.add((signal.symbol, signal.strategy_version, confidence_bracket(signal.confidence)))
            except (ValueError, KeyError, TypeError, sqlite3.Error) as e:
                sid = row["signal_id"] if "signal_id" in row.keys() else "?"
                msg = f"{sid}: {e}"
                summary.errors.append(msg)
                print(f"[outcome_validator] error on {msg}")

        for symbol, version, bracket in sorted(touched):
            self.store.recompute_strategy_performance(symbol, bracket, version)
            self.store.recompute_strategy_performance(symbol, "ALL", version)

        if touched and self.on_resolved is not None:
            self.on_resolved()

        print(
            f"[outcome_validator] done: checked={summary.checked} updated={summary.updated} "
            f"expired={summary.expired} skipped={summary.skipped} errors={len(summary.errors)}"
        )
        return summary

    def _resolve(
        self, feed: PriceFeed, signal: SignalRecord, prices: dict[str, Optional[float]]
    ) -> tuple[bool, Optional[OutcomeResult]]:
        """(data available, outcome if one was reached)."""
        cfg = self.settings.validator
        if cfg.mode == "candles":
            try:
                candles = feed.get_candles(signal.symbol, cfg.candle_interval, cfg.candle_count)
            except PriceFeedError as e:
                print(f"[outcome_validator] candles unavailable for {signal.symbol}: {e}")
                return False, None
            return True, check_outcome_from_candles(signal, candles)

        if signal.symbol not in prices:
            try:
                prices[signal.symbol] = float(feed.get_price(signal.symbol))
            except PriceFeedError as e:
                print(f"[outcome_validator] price unavailable for {signal.symbol}: {e}")
                prices[signal.symbol] = None
        price = prices[signal.symbol]
        if price is None:
            return False, None
        self.store.update_signal(signal.signal_id, {"current_price": price})
        return True, check_outcome(signal, price)

    def _record(self, feed: PriceFeed, signal: SignalRecord, result: OutcomeResult, now: datetime) -> bool:
        """Persist a reached outcome. False when the signal was resolved elsewhere in the meantime."""
        pips = compute_pips(signal.type, signal.entry_price, result.price, pip_size_for(signal.symbol))
        outcome_time = result.time_utc or _iso(now)
        updates: dict[str, Any] = {
            "outcome": result.outcome,
            "outcome_price": result.price,
            "outcome_time": outcome_time,
            "profit_loss_pips": round(pips, 1),
        }
        if self.settings.validator.record_excursions:
            updates.update(self._excursions(feed, signal, outcome_time))
        if not self.store.resolve_signal(signal.signal_id, updates):
            print(f"[outcome_validator] {signal.signal_id} already resolved, leaving it")
            return False
        print(f"[outcome_validator] {signal.signal_id} {result.outcome} at {result.price} ({pips:+.1f} pips)")
        return True

    def _excursions(self, feed: PriceFeed, signal: SignalRecord, outcome_time: str) -> dict[str, Any]:
        cfg = self.settings.validator
        try:
            candles = feed.get_candles(signal.symbol, cfg.candle_interval, cfg.candle_count)
        except PriceFeedError as e:
            print(f"[outcome_validator] no candles for MAE/MFE on {signal.signal_id}: {e}")
            return {}
        window = _after(candles_frame(candles), signal.created_at, outcome_time)
        if window.empty:
            return {}
        res = calculate_mae_mfe(
            direction=signal.type,
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            symbol=signal.symbol,
            candles=window,
        )
        stored = window[["time", "open", "high", "low", "close"]] if {"open", "close"}.issubset(window.columns) else window[["time", "high", "low"]]
        stored = stored.assign(time=stored["time"].map(lambda t: t.isoformat()))
        return {
            "max_adverse_pips": round(res.mae, 1),
            "max_favorable_pips": round(res.mfe, 1),
            "candles_json": json.dumps(stored.to_dict(orient="records")),
        }
