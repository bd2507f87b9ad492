from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from core.models import LOSS_OUTCOMES, confidence_bracket, is_loss, is_win


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS signal_history (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  signal_id TEXT NOT NULL UNIQUE,
  symbol TEXT NOT NULL,
  type TEXT NOT NULL,
  confidence REAL NOT NULL,
  tier TEXT,
  trade_live INTEGER,
  position_size_percent REAL,

  entry_price REAL NOT NULL,
  current_price REAL,
  stop_loss REAL NOT NULL,
  tp1 REAL NOT NULL,
  tp2 REAL,
  tp3 REAL,
  stop_limit_price REAL,
  order_type TEXT,
  execution_type TEXT,
  strategy_name TEXT,
  strategy_version TEXT,
  indicators_json TEXT,
  candles_json TEXT,

  created_at TEXT NOT NULL,
  expires_at TEXT NOT NULL,

  outcome TEXT NOT NULL DEFAULT 'PENDING',
  outcome_price REAL,
  outcome_time TEXT,
  profit_loss_pips REAL,
  manually_closed_by_user INTEGER NOT NULL DEFAULT 0,
  updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_signal_history_outcome_time
  ON signal_history(outcome, created_at);

CREATE INDEX IF NOT EXISTS idx_signal_history_symbol
  ON signal_history(symbol, created_at);

CREATE TABLE IF NOT EXISTS strategy_performance (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  symbol TEXT NOT NULL,
  confidence_bracket TEXT NOT NULL,
  strategy_version TEXT NOT NULL,
  total_signals INTEGER NOT NULL,
  tp1_hit INTEGER NOT NULL,
  tp2_hit INTEGER NOT NULL,
  tp3_hit INTEGER NOT NULL,
  stop_hit INTEGER NOT NULL,
  expired INTEGER NOT NULL,
  win_rate REAL,
  avg_profit_pips REAL,
  avg_loss_pips REAL,
  updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_strategy_performance_key
  ON strategy_performance(symbol, confidence_bracket, strategy_version);
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class SqliteStore:
    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            # Execution and excursion fields arrived after the first schema
            self._ensure_column(conn, "signal_history", "entry_slippage_pips", "REAL")
            self._ensure_column(conn, "signal_history", "exit_slippage_pips", "REAL")
            self._ensure_column(conn, "signal_history", "fill_latency_ms", "REAL")
            self._ensure_column(conn, "signal_history", "max_adverse_pips", "REAL")
            self._ensure_column(conn, "signal_history", "max_favorable_pips", "REAL")
            conn.commit()

    def _ensure_column(self, conn: sqlite3.Connection, table: str, col: str, col_type: str) -> None:
        cur = conn.execute(f"PRAGMA table_info({table})")
        cols = {r[1] for r in cur.fetchall()}
        if col in cols:
            return
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {col} {col_type}")

    # --- signal_history ---

    def insert_signal(self, row: dict[str, Any]) -> bool:
        """Insert a tracked signal. Returns False when signal_id already exists."""
        cols = list(row.keys())
        q = f"INSERT OR IGNORE INTO signal_history ({', '.join(cols)}) VALUES ({', '.join(['?'] * len(cols))})"
        with self.connect() as conn:
            cur = conn.execute(q, [row[c] for c in cols])
            conn.commit()
            return cur.rowcount > 0

    def get_signal(self, signal_id: str) -> Optional[sqlite3.Row]:
        with self.connect() as conn:
            cur = conn.execute("SELECT * FROM signal_history WHERE signal_id=? LIMIT 1", [signal_id])
            return cur.fetchone()

    def list_pending_signals(self) -> list[sqlite3.Row]:
        with self.connect() as conn:
            cur = conn.execute("SELECT * FROM signal_history WHERE outcome='PENDING' ORDER BY created_at DESC, id DESC")
            return cur.fetchall()

    def list_active_signals(self, now_utc: str | None = None) -> list[sqlite3.Row]:
        """Pending signals that have not yet passed their expiry."""
        now = now_utc or _now_iso()
        with self.connect() as conn:
            cur = conn.execute(
                "SELECT * FROM signal_history WHERE outcome='PENDING' AND expires_at > ? ORDER BY created_at DESC, id DESC",
                [now],
            )
            return cur.fetchall()

    def update_signal(self, signal_id: str, updates: dict[str, Any]) -> None:
        if not updates:
            return
        updates = {**updates, "updated_at": updates.get("updated_at") or _now_iso()}
        sets = ", ".join([f"{k}=?" for k in updates.keys()])
        q = f"UPDATE signal_history SET {sets} WHERE signal_id=?"
        with self.connect() as conn:
            conn.execute(q, [*updates.values(), signal_id])
            conn.commit()

    def resolve_signal(self, signal_id: str, updates: dict[str, Any]) -> bool:
        """Write an outcome only while the signal is still PENDING. Returns False if it was already resolved."""
        updates = {**updates, "updated_at": updates.get("updated_at") or _now_iso()}
        sets = ", ".join([f"{k}=?" for k in updates.keys()])
        q = f"UPDATE signal_history SET {sets} WHERE signal_id=? AND outcome='PENDING'"
        with self.connect() as conn:
            cur = conn.execute(q, [*updates.values(), signal_id])
            conn.commit()
            return cur.rowcount > 0

    def read_signals_df(
        self,
        *,
        symbol: str | None = None,
        outcome: str | None = None,
        closed_only: bool = False,
        since_utc: str | None = None,
        limit: int | None = None,
    ) -> pd.DataFrame:
        where: list[str] = []
        params: list[Any] = []
        if symbol:
            where.append("symbol=?")
            params.append(symbol)
        if outcome:
            where.append("outcome=?")
            params.append(outcome)
        if closed_only:
            where.append("outcome != 'PENDING'")
        if since_utc:
            where.append("created_at >= ?")
            params.append(since_utc)
        q = "SELECT * FROM signal_history"
        if where:
            q += " WHERE " + " AND ".join(where)
        q += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            q += " LIMIT ?"
            params.append(int(limit))
        with self.connect() as conn:
            df = pd.read_sql_query(q, conn, params=params)
        return df

    # --- strategy_performance ---

    def recompute_strategy_performance(self, symbol: str, bracket: str, strategy_version: str) -> dict[str, Any]:
        """Rebuild one strategy_performance row from signal_history. bracket 'ALL' spans every confidence."""
        df = self.read_signals_df(symbol=symbol, closed_only=True)
        if not df.empty:
            df = df[df["strategy_version"].fillna("1.0.0") == strategy_version]
        if not df.empty and bracket != "ALL":
            conf = pd.to_numeric(df["confidence"], errors="coerce").fillna(0.0)
            df = df[conf.apply(confidence_bracket) == bracket]

        outcome = df["outcome"] if not df.empty else pd.Series(dtype="object")
        pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce") if not df.empty else pd.Series(dtype="float")
        won = wins_mask(df)
        lost = losses_mask(df)
        decided = int(won.sum() + lost.sum())

        row = {
            "symbol": symbol,
            "confidence_bracket": bracket,
            "strategy_version": strategy_version,
            "total_signals": int(len(df)),
            "tp1_hit": int((outcome == "TP1_HIT").sum()),
            "tp2_hit": int((outcome == "TP2_HIT").sum()),
            "tp3_hit": int((outcome == "TP3_HIT").sum()),
            "stop_hit": int(outcome.isin(LOSS_OUTCOMES).sum()),
            "expired": int((outcome == "EXPIRED").sum()),
            "win_rate": round(float(won.sum()) / decided * 100.0, 2) if decided else None,
            "avg_profit_pips": round(float(pips[won].mean()), 2) if won.any() else None,
            "avg_loss_pips": round(float(pips[lost].abs().mean()), 2) if lost.any() else None,
            "updated_at": _now_iso(),
        }
        cols = list(row.keys())
        q = (
            f"INSERT OR REPLACE INTO strategy_performance ({', '.join(cols)}) "
            f"VALUES ({', '.join(['?'] * len(cols))})"
        )
        with self.connect() as conn:
            conn.execute(q, [row[c] for c in cols])
            conn.commit()
        return row

    def read_strategy_performance_df(self, symbol: str | None = None) -> pd.DataFrame:
        q = "SELECT * FROM strategy_performance"
        params: list[Any] = []
        if symbol:
            q += " WHERE symbol=?"
            params.append(symbol)
        q += " ORDER BY symbol, confidence_bracket"
        with self.connect() as conn:
            df = pd.read_sql_query(q, conn, params=params)
        return df


def wins_mask(df: pd.DataFrame) -> pd.Series:
    """Boolean Series marking winning rows of a signal_history frame."""
    if df.empty:
        return pd.Series(dtype=bool)
    pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce")
    return pd.Series(
        [is_win(str(o), None if pd.isna(p) else float(p)) for o, p in zip(df["outcome"], pips)],
        index=df.index,
        dtype=bool,
    )


def losses_mask(df: pd.DataFrame) -> pd.Series:
    if df.empty:
        return pd.Series(dtype=bool)
    pips = pd.to_numeric(df["profit_loss_pips"], errors="coerce")
    return pd.Series(
        [is_loss(str(o), None if pd.isna(p) else float(p)) for o, p in zip(df["outcome"], pips)],
        index=df.index,
        dtype=bool,
    )

