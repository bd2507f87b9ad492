import argparse
from pathlib import Path

import pandas as pd

from core.learning_engine import LearningEngine, metrics_from_history
from core.models import compute_r_multiple, pip_size_for
from core.session_analyzer import analyze_by_session
from core.settings import data_dir, database_path, load_settings
from core.trade_statistics import calculate_statistics, max_drawdown_pips, streaks
from storage.sqlite_store import SqliteStore, losses_mask, wins_mask


def safe_mean(series: pd.Series):
    s = pd.to_numeric(series, errors="coerce")
    return float(s.mean()) if s.notna().any() else None


def _r3(x):
    return round(x, 3) if x is not None else None


def _r_multiples(df: pd.DataFrame) -> pd.Series:
    out = []
    for _, row in df.iterrows():
        pips = row["profit_loss_pips"]
        if pd.isna(pips):
            out.append(float("nan"))
            continue
        _, r = compute_r_multiple(float(pips), float(row["entry_price"]), float(row["stop_loss"]), pip_size_for(str(row["symbol"])))
        out.append(float("nan") if r is None else r)
    return pd.Series(out, index=df.index, dtype=float)


def main() -> None:
    ap = argparse.ArgumentParser(description="Print signal outcome statistics from the database.")
    ap.add_argument("--data-dir", default=None, help="Data directory (default: $FXSIGNALS_DATA_DIR or project root)")
    ap.add_argument("--symbol", default=None, help="Only this symbol, e.g. EUR/USD")
    args = ap.parse_args()

    base = Path(args.data_dir) if args.data_dir else data_dir()
    settings = load_settings(base / "settings.json")
    store = SqliteStore(database_path(base))

    print("=== REVIEW STATS ===")
    print("database:", store.path)
    if not store.path.exists():
        print("No signals database found yet. Track a signal first.")
        return
    store.init_db()

    df = store.read_signals_df(symbol=args.symbol)
    if df.empty:
        print("No tracked signals yet.")
        return

    closed = df[df["outcome"] != "PENDING"].copy()
    print("\n=== SIGNALS OVERVIEW ===")
    print("total_signals:", len(df))
    print("closed_signals:", len(closed))
    print("pending_signals:", int((df["outcome"] == "PENDING").sum()))
    print("expired_signals:", int((df["outcome"] == "EXPIRED").sum()))

    decided = closed[wins_mask(closed) | losses_mask(closed)].copy() if not closed.empty else closed
    if decided.empty:
        print("\nNo decided signals yet. Wait for a TP or stop to be hit.")
        return

    decided = decided.iloc[::-1]  # oldest first
    pips = pd.to_numeric(decided["profit_loss_pips"], errors="coerce")
    stats = calculate_statistics(pips)
    st = streaks(decided)

    print("\n=== PIPS STATS (DECIDED) ===")
    print("trades:", stats.total_trades, "wins:", stats.winning_trades, "losses:", stats.losing_trades)
    print("win_rate:", _r3(stats.win_rate))
    print("avg_pips:", _r3(safe_mean(pips)))
    print("avg_win:", _r3(stats.avg_win), "avg_loss:", _r3(stats.avg_loss))
    print("largest_win:", _r3(stats.largest_win), "largest_loss:", _r3(stats.largest_loss))
    print("expectancy:", _r3(stats.expectancy))
    print("max_drawdown_pips:", _r3(max_drawdown_pips(pips)))

    print("\n=== RISK-ADJUSTED ===")
    print("sharpe:", _r3(stats.sharpe_ratio), "-", stats.interpretation["sharpe"])
    print("sortino:", _r3(stats.sortino_ratio), "-", stats.interpretation["sortino"])
    print("profit_factor:", _r3(stats.profit_factor), "-", stats.interpretation["profit_factor"])
    print("streaks: longest_win", st.longest_win_streak, "longest_loss", st.longest_loss_streak, "current", st.current_streak)

    r = _r_multiples(decided)
    r_avail = int(r.notna().sum())
    print("\n=== R MULTIPLE STATS ===")
    print("r_available_count:", r_avail, "out of", len(decided))
    if r_avail > 0:
        print("avg_r:", _r3(safe_mean(r)))
        print("avg_r_win:", _r3(safe_mean(r[r > 0])))
        print("avg_r_loss:", _r3(safe_mean(r[r < 0])))

    print("\n=== BREAKDOWN BY SYMBOL ===")
    tmp = decided.copy()
    tmp["pips"] = pips
    table = tmp.groupby("symbol").agg(
        trades=("signal_id", "count"),
        total_pips=("pips", lambda x: round(float(x.sum()), 1)),
        avg_pips=("pips", lambda x: round(float(x.mean()), 3)),
        win_rate=("pips", lambda x: round(float((x > 0).mean()) * 100.0, 1)),
    ).sort_index()
    print(table.to_string())

    sessions = analyze_by_session(decided)
    if sessions.sessions:
        print("\n=== BY SESSION ===")
        for s in sessions.sessions:
            print(f"{s.session}: trades={s.total_trades} win_rate={s.win_rate:.1f}% total_pips={s.total_pips:.1f}")
        print("recommendation:", sessions.recommendation)

    engine = LearningEngine(metrics_from_history(closed), config=settings.learning)
    mults = engine.multipliers()
    if mults:
        print("\n=== CONFIDENCE MULTIPLIERS ===")
        for m in mults:
            print(f"{m.symbol} {m.confidence_range}: x{m.multiplier:.3f} ({m.sample_size} trades)")

    print("\n=== LAST 10 CLOSED SIGNALS ===")
    cols = ["signal_id", "created_at", "symbol", "type", "confidence", "entry_price", "outcome_price", "outcome", "profit_loss_pips"]
    cols = [c for c in cols if c in closed.columns]
    out = closed.head(10)[cols].copy()
    for c in ["entry_price", "outcome_price", "profit_loss_pips"]:
        out[c] = pd.to_numeric(out[c], errors="coerce")
        out[c] = out[c].apply(lambda x: round(x, 5) if pd.notna(x) else x)
    print(out.to_string(index=False))


if __name__ == "__main__":
    main()
