from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict


SchemaVersion = Literal[1]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class TrackingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min_confidence: float = 70.0
    live_tier_confidence: float = 85.0  # HIGH tier / trade_live at or above this
    live_position_size_percent: float = 1.0
    expiry_hours: int = 48


class LearningConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min_sample_size: int = 5
    min_multiplier: float = 0.7
    max_multiplier: float = 1.3
    full_confidence_trades: int = 20  # sample-size factor saturates here


class ValidatorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    poll_seconds: float = 300.0
    mode: Literal["quote", "candles"] = "quote"
    candle_interval: str = "5min"
    candle_count: int = 600
    record_excursions: bool = True


class AccountConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_size: float = 100_000.0
    pip_value_per_lot: float = 10.0
    profit_split_pct: float = 80.0
    avg_trades_per_day: float = 3.0
    max_drawdown_pct: float = 8.0


class PriceFeedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Literal["twelvedata", "alphavantage"] = "twelvedata"
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    request_spacing_seconds: float = 0.0  # alphavantage free tier wants ~1s between calls


class SettingsV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: SchemaVersion = 1
    created_utc: str = Field(default_factory=utc_now_iso)
    symbols: list[str] = Field(default_factory=lambda: ["EUR/USD", "GBP/USD", "USD/JPY", "AUD/USD"])

    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    account: AccountConfig = Field(default_factory=AccountConfig)
    price_feed: PriceFeedConfig = Field(default_factory=PriceFeedConfig)


_API_KEY_ENV = {
    "twelvedata": "TWELVE_DATA_KEY",
    "alphavantage": "ALPHAVANTAGE_KEY",
}


def data_dir() -> Path:
    env = os.environ.get("FXSIGNALS_DATA_DIR")
    if env:
        return Path(env)
    return Path(__file__).resolve().parent.parent


def settings_path(base: Path | None = None) -> Path:
    return (base or data_dir()) / "settings.json"


def database_path(base: Path | None = None) -> Path:
    return (base or data_dir()) / "logs" / "signals.db"


def apply_env_overrides(settings: SettingsV1) -> SettingsV1:
    """Fill the price feed API key from the environment when the file leaves it empty."""
    if settings.price_feed.api_key:
        return settings
    env_key = os.environ.get(_API_KEY_ENV[settings.price_feed.provider], "").strip()
    if not env_key:
        return settings
    feed = settings.price_feed.model_copy(update={"api_key": env_key})
    return settings.model_copy(update={"price_feed": feed})


def load_settings(path: str | Path | None = None) -> SettingsV1:
    p = Path(path) if path is not None else settings_path()
    if not p.exists():
        return apply_env_overrides(SettingsV1())
    data = json_loads(p.read_text(encoding="utf-8"))
    try:
        settings = SettingsV1.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings file: {p}\n{e}") from e
    return apply_env_overrides(settings)


def json_loads(s: str) -> dict[str, Any]:
    v = json.loads(s)
    if not isinstance(v, dict):
        raise ValueError("Settings JSON must be an object")
    return v


def save_settings(settings: SettingsV1, out_path: str | Path) -> None:
    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.model_dump(), indent=2, sort_keys=False) + "\n", encoding="utf-8")
