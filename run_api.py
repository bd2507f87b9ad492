"""Run the FastAPI backend server.

Usage: python run_api.py [--port PORT] [--no-reload]

Local dev binds 127.0.0.1:8000 with auto-reload. When PORT is set the server
binds 0.0.0.0 on that port without reload. Data lives under FXSIGNALS_DATA_DIR
(settings.json, logs/signals.db); set TWELVE_DATA_KEY or ALPHAVANTAGE_KEY so
the outcome validator can fetch prices.
"""
from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path


def main() -> None:
    ap = argparse.ArgumentParser(description="Run the FX Signal Assistant API server.")
    ap.add_argument("--port", type=int, default=None, help="Port to run on (default: 8000 or $PORT)")
    ap.add_argument("--no-reload", action="store_true", help="Disable auto-reload in local dev")
    args = ap.parse_args()

    base_dir = Path(__file__).resolve().parent
    port_env = os.environ.get("PORT")
    if port_env is not None:
        port = int(port_env)
        host = "0.0.0.0"
        reload = False
    else:
        port = args.port if args.port is not None else 8000
        host = "127.0.0.1"
        reload = not args.no_reload

    print(f"Starting FX Signal Assistant API on http://{host}:{port}")
    print("Press Ctrl+C to stop.")

    uvicorn_args = [
        sys.executable, "-m", "uvicorn",
        "api.main:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        uvicorn_args.append("--reload")

    try:
        subprocess.run(uvicorn_args, cwd=str(base_dir))
    except KeyboardInterrupt:
        print("\nServer stopped.")


if __name__ == "__main__":
    main()
