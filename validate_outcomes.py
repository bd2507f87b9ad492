"""Resolve pending signals against the configured price feed.

Usage: python validate_outcomes.py [--once] [--poll-seconds N] [--data-dir DIR]
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

# Ensure project root is on path (fixes ModuleNotFoundError when started as subprocess)
_PROJECT_ROOT = Path(__file__).resolve().parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from adapters.price_feed import get_price_feed
from core.outcome_validator import OutcomeValidator
from core.settings import data_dir, database_path, load_settings
from storage.sqlite_store import SqliteStore


def main() -> None:
    ap = argparse.ArgumentParser(description="Check pending signals for TP/SL hits and expiry.")
    ap.add_argument("--once", action="store_true", help="Run a single pass and exit")
    ap.add_argument("--poll-seconds", type=float, default=None, help="Override validator.poll_seconds")
    ap.add_argument("--data-dir", default=None, help="Data directory (default: $FXSIGNALS_DATA_DIR or project root)")
    args = ap.parse_args()

    base = Path(args.data_dir) if args.data_dir else data_dir()
    settings = load_settings(base / "settings.json")
    store = SqliteStore(database_path(base))
    store.init_db()

    feed = get_price_feed(settings.price_feed)
    if feed is None:
        print("[validate_outcomes] no price feed API key; only expiry will be processed")
    validator = OutcomeValidator(store, feed, settings)

    poll = max(1.0, float(args.poll_seconds if args.poll_seconds is not None else settings.validator.poll_seconds))
    print(f"[validate_outcomes] db={store.path} mode={settings.validator.mode} poll={poll:.0f}s")

    try:
        while True:
            summary = validator.validate_pending_signals()
            if summary is not None and summary.errors:
                for e in summary.errors:
                    print(f"[validate_outcomes] {e}")
            if args.once:
                return
            time.sleep(poll)
    except KeyboardInterrupt:
        print("\n[validate_outcomes] stopped.")


if __name__ == "__main__":
    main()
