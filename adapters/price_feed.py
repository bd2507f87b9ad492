"""Market data for outcome validation: latest quote and recent candles per symbol."""
from __future__ import annotations

import time
from typing import Optional

import pandas as pd
import requests

from core.settings import PriceFeedConfig


class PriceFeedError(RuntimeError):
    pass


# Higher timeframes change less often, so their candles are cached longer.
_CANDLE_TTL_SECONDS: dict[str, float] = {
    "1week": 6 * 3600,
    "1day": 4 * 3600,
    "4h": 2 * 3600,
    "1h": 30 * 60,
}
_DEFAULT_CANDLE_TTL = 15 * 60


def candle_ttl(interval: str) -> float:
    return float(_CANDLE_TTL_SECONDS.get(interval, _DEFAULT_CANDLE_TTL))


def _split_pair(symbol: str) -> tuple[str, str]:
    """EUR/USD or EURUSD -> ("EUR", "USD")."""
    s = (symbol or "").replace("/", "").replace("_", "").upper()
    if len(s) != 6:
        raise PriceFeedError(f"Unsupported symbol: {symbol}")
    return s[:3], s[3:]


def _slash_symbol(symbol: str) -> str:
    base, quote = _split_pair(symbol)
    return f"{base}/{quote}"


class PriceFeed:
    """Base interface. Subclasses implement _fetch_price and _fetch_candles."""

    def __init__(self) -> None:
        self._candle_cache: dict[tuple[str, str, int], tuple[float, pd.DataFrame]] = {}

    def get_price(self, symbol: str) -> float:
        return self._fetch_price(symbol)

    def get_candles(self, symbol: str, interval: str = "5min", count: int = 600) -> pd.DataFrame:
        """Oldest-first frame with time (UTC), open, high, low, close."""
        key = (symbol, interval, count)
        now = time.monotonic()
        cached = self._candle_cache.get(key)
        if cached and (now - cached[0]) < candle_ttl(interval):
            return cached[1]
        try:
            df = self._fetch_candles(symbol, interval, count)
        except PriceFeedError:
            # Rate limits are common on free tiers; stale candles beat none.
            if cached:
                print(f"[price_feed] using stale candles for {symbol} {interval}")
                return cached[1]
            raise
        self._candle_cache[key] = (now, df)
        return df

    def _fetch_price(self, symbol: str) -> float:
        raise NotImplementedError

    def _fetch_candles(self, symbol: str, interval: str, count: int) -> pd.DataFrame:
        raise NotImplementedError


class _HttpFeed(PriceFeed):
    base_url = ""

    def __init__(self, api_key: str, timeout: float = 10.0, spacing_seconds: float = 0.0) -> None:
        super().__init__()
        self.api_key = api_key
        self.timeout = timeout
        self.spacing_seconds = spacing_seconds
        self._last_request = 0.0
        self._session = requests.Session()

    def _get(self, path: str, params: dict) -> dict:
        if self.spacing_seconds > 0:
            wait = self.spacing_seconds - (time.monotonic() - self._last_request)
            if wait > 0:
                time.sleep(wait)
        try:
            r = self._session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
            self._last_request = time.monotonic()
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise PriceFeedError(f"{type(self).__name__} request failed: {e}") from e
        if not isinstance(data, dict):
            raise PriceFeedError(f"{type(self).__name__}: unexpected response")
        return data


class TwelveDataFeed(_HttpFeed):
    base_url = "https://api.twelvedata.com"

    def _check(self, data: dict) -> None:
        if data.get("status") == "error":
            raise PriceFeedError(f"Twelve Data error: {data.get('message') or 'unknown'}")

    def _fetch_price(self, symbol: str) -> float:
        data = self._get("/price", {"symbol": _slash_symbol(symbol), "apikey": self.api_key})
        self._check(data)
        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceFeedError(f"Twelve Data: no price for {symbol}") from e

    def _fetch_candles(self, symbol: str, interval: str, count: int) -> pd.DataFrame:
        data = self._get(
            "/time_series",
            {"symbol": _slash_symbol(symbol), "interval": interval, "outputsize": int(count), "apikey": self.api_key, "timezone": "UTC"},
        )
        self._check(data)
        values = data.get("values")
        if not isinstance(values, list):
            raise PriceFeedError("Twelve Data: invalid time_series response")
        if not values:
            raise PriceFeedError(f"Twelve Data: no candles for {symbol} {interval}")
        df = pd.DataFrame(values)
        df = df.rename(columns={"datetime": "time"})
        df["time"] = pd.to_datetime(df["time"], utc=True, errors="coerce")
        for c in ["open", "high", "low", "close"]:
            df[c] = pd.to_numeric(df[c], errors="coerce")
        # API returns newest first
        return df.dropna(subset=["time"]).sort_values("time").reset_index(drop=True)[["time", "open", "high", "low", "close"]]


class AlphaVantageFeed(_HttpFeed):
    base_url = "https://www.alphavantage.co"

    _INTERVALS = {"1min": "1min", "5min": "5min", "15min": "15min", "30min": "30min", "1h": "60min"}

    def _fetch_price(self, symbol: str) -> float:
        base, quote = _split_pair(symbol)
        data = self._get(
            "/query",
            {"function": "CURRENCY_EXCHANGE_RATE", "from_currency": base, "to_currency": quote, "apikey": self.api_key},
        )
        rate = data.get("Realtime Currency Exchange Rate") or {}
        try:
            return float(rate["5. Exchange Rate"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceFeedError(f"Alpha Vantage: no price for {symbol}") from e

    def _fetch_candles(self, symbol: str, interval: str, count: int) -> pd.DataFrame:
        av_interval = self._INTERVALS.get(interval)
        if av_interval is None:
            raise PriceFeedError(f"Alpha Vantage: unsupported interval {interval}")
        base, quote = _split_pair(symbol)
        data = self._get(
            "/query",
            {
                "function": "FX_INTRADAY",
                "from_symbol": base,
                "to_symbol": quote,
                "interval": av_interval,
                "outputsize": "full" if count > 100 else "compact",
                "apikey": self.api_key,
            },
        )
        series = data.get(f"Time Series FX ({av_interval})")
        if not isinstance(series, dict):
            raise PriceFeedError(str(data.get("Note") or data.get("Error Message") or "Alpha Vantage: invalid FX_INTRADAY response"))
        if not series:
            raise PriceFeedError(f"Alpha Vantage: no candles for {symbol} {interval}")
        rows = [
            {
                "time": ts,
                "open": v.get("1. open"),
                "high": v.get("2. high"),
                "low": v.get("3. low"),
                "close": v.get("4. close"),
            }
            for ts, v in series.items()
        ]
        df = pd.DataFrame(rows)
        df["time"] = pd.to_datetime(df["time"], utc=True, errors="coerce")
        for c in ["open", "high", "low", "close"]:
            df[c] = pd.to_numeric(df[c], errors="coerce")
        df = df.dropna(subset=["time"]).sort_values("time").reset_index(drop=True)
        return df.tail(int(count)).reset_index(drop=True)


def get_price_feed(cfg: PriceFeedConfig) -> Optional[PriceFeed]:
    """Return the configured feed, or None when no API key is available."""
    key = (cfg.api_key or "").strip()
    if not key:
        return None
    if cfg.provider == "alphavantage":
        return AlphaVantageFeed(key, timeout=cfg.timeout_seconds, spacing_seconds=max(cfg.request_spacing_seconds, 1.0))
    return TwelveDataFeed(key, timeout=cfg.timeout_seconds, spacing_seconds=cfg.request_spacing_seconds)
