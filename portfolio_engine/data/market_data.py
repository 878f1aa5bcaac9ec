"""Market data provider implementations."""

import logging
import time
import zlib
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import requests

from .base import (
    DataCache,
    MarketDataProvider,
    records_to_weekly_frame,
    weekly_frame_to_records,
)
from .cache import JsonFileCache
from ..config import get_config

logger = logging.getLogger(__name__)


def _stable_seed(ticker: str) -> int:
    return zlib.crc32(ticker.encode('utf-8')) % 2**32


class MockMarketDataProvider(MarketDataProvider):
    """Mock market data provider for testing and development."""

    def __init__(
        self,
        cache: Optional[DataCache] = None,
        num_weeks: int = 156,
        end_date: Optional[date] = None
    ):
        """
        Initialize mock provider.

        Args:
            cache: Optional cache for generated series
            num_weeks: Number of weekly bars to generate per ticker
            end_date: Last bar date (defaults to the most recent Friday)
        """
        super().__init__(cache)
        self.num_weeks = num_weeks
        if end_date is None:
            today = date.today()
            end_date = today - timedelta(days=(today.weekday() - 4) % 7)
        self.end_date = end_date

    def get_weekly_series(self, ticker: str) -> pd.DataFrame:
        """Generate a deterministic weekly random walk for ticker."""
        cache_key = f"weekly_{ticker}"
        cached = self._cached(cache_key)
        if cached is not None:
            return records_to_weekly_frame(cached)

        rng = np.random.RandomState(_stable_seed(ticker))
        dates = [self.end_date - timedelta(weeks=k) for k in range(self.num_weeks - 1, -1, -1)]

        drift = rng.uniform(0.0005, 0.003)
        vol = rng.uniform(0.015, 0.05)
        returns = rng.normal(drift, vol, len(dates))
        closes = rng.uniform(20, 400) * (1 + returns).cumprod()
        pays_dividend = rng.uniform() < 0.6
        quarterly_div = closes[0] * rng.uniform(0.002, 0.01) if pays_dividend else 0.0

        records = []
        for i, (d, close) in enumerate(zip(dates, closes)):
            records.append({
                'date': d,
                'close': round(float(close), 2),
                'adjusted_close': round(float(close), 2),
                'dividend': round(quarterly_div, 4) if pays_dividend and i % 13 == 12 else 0.0,
            })

        df = records_to_weekly_frame(records)
        self._store(cache_key, weekly_frame_to_records(df))
        return df

    def get_overview(self, ticker: str) -> Dict[str, Any]:
        """Generate a mock OVERVIEW-style fundamentals payload."""
        rng = np.random.RandomState(_stable_seed(ticker) ^ 0x5EED)

        return {
            'Symbol': ticker,
            'Beta': f"{rng.uniform(0.5, 1.8):.3f}",
            'MarketCapitalization': str(int(rng.uniform(1e9, 2e12))),
            'Sector': str(rng.choice(['TECHNOLOGY', 'FINANCIAL SERVICES', 'ENERGY', 'HEALTHCARE'])),
        }

    def health_check(self) -> bool:
        return True


class AlphaVantageMarketDataProvider(MarketDataProvider):
    """Alpha Vantage weekly-adjusted market data provider."""

    SERIES_KEY = 'Weekly Adjusted Time Series'

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.alphavantage.co/query",
        cache: Optional[DataCache] = None,
        requests_per_minute: float = 5
    ):
        """
        Initialize Alpha Vantage provider.

        Args:
            api_key: Alpha Vantage API key
            base_url: Base URL for API
            cache: Optional durable cache keyed by instrument
            requests_per_minute: Free tier allows 5 requests/minute
        """
        super().__init__(cache)
        self.api_key = api_key
        self.base_url = base_url
        self.rate_limit_delay = 60.0 / max(requests_per_minute, 1e-9)
        self._last_request_time = 0.0

    def _rate_limit(self):
        """Enforce rate limiting."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.rate_limit_delay:
            time.sleep(self.rate_limit_delay - elapsed)
        self._last_request_time = time.time()

    def _query(self, params: Dict[str, str]) -> Dict[str, Any]:
        self._rate_limit()
        response = requests.get(self.base_url, params={**params, 'apikey': self.api_key}, timeout=30)
        response.raise_for_status()
        data = response.json()

        # Check for API errors
        if 'Error Message' in data:
            raise ValueError(f"Alpha Vantage error: {data['Error Message']}")
        if 'Note' in data:
            raise ValueError(f"Alpha Vantage rate limit: {data['Note']}")
        if 'Information' in data:
            raise ValueError(f"Alpha Vantage: {data['Information']}")

        return data

    def get_weekly_series(self, ticker: str) -> pd.DataFrame:
        """Get the full weekly adjusted series from Alpha Vantage."""
        cache_key = f"weekly_{ticker}"
        cached = self._cached(cache_key)
        if cached is not None:
            return records_to_weekly_frame(cached)

        try:
            data = self._query({'function': 'TIME_SERIES_WEEKLY_ADJUSTED', 'symbol': ticker})
        except requests.exceptions.RequestException as e:
            raise ValueError(f"Alpha Vantage request failed for {ticker}: {e}") from e

        if self.SERIES_KEY not in data:
            raise ValueError(f"No weekly series in response for {ticker}. Keys: {list(data.keys())}")

        records = []
        for date_str, values in data[self.SERIES_KEY].items():
            records.append({
                'date': datetime.strptime(date_str, '%Y-%m-%d').date(),
                'close': self._safe_float(values.get('4. close')),
                'adjusted_close': self._safe_float(values.get('5. adjusted close')),
                'dividend': self._safe_float(values.get('7. dividend amount')) or 0.0,
            })

        df = records_to_weekly_frame(records)
        self._store(cache_key, weekly_frame_to_records(df))
        return df

    def get_overview(self, ticker: str) -> Dict[str, Any]:
        """Get the OVERVIEW fundamentals payload from Alpha Vantage."""
        cache_key = f"overview_{ticker}"
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        try:
            data = self._query({'function': 'OVERVIEW', 'symbol': ticker})
        except requests.exceptions.RequestException as e:
            raise ValueError(f"Alpha Vantage request failed for {ticker}: {e}") from e

        self._store(cache_key, data)
        return data

    def _safe_float(self, value):
        """Safely convert to float, handling None and 'None' string."""
        if value is None or value == 'None' or value == '':
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            return None

    def health_check(self) -> bool:
        """Check if Alpha Vantage API is accessible."""
        try:
            _ = self.get_weekly_series("IBM")
            return True
        except Exception:
            return False


def get_market_data_provider(cache: Optional[DataCache] = None) -> MarketDataProvider:
    """
    Factory function to get the configured market data provider.

    Args:
        cache: Cache to inject; defaults to a JsonFileCache on the configured
            cache_dir for remote providers

    Returns:
        MarketDataProvider instance
    """
    config = get_config()
    provider_name = config.market_data_provider
    api_key = config.get('data_sources.market_data.api_key')

    if provider_name == 'mock':
        return MockMarketDataProvider(cache=cache)
    elif provider_name == 'alpha_vantage':
        if not api_key or api_key.startswith('${'):
            logger.warning("Alpha Vantage API key not set, falling back to mock provider")
            return MockMarketDataProvider(cache=cache)
        if cache is None:
            cache_dir = config.get('data_sources.market_data.cache_dir')
            cache = JsonFileCache(cache_dir) if cache_dir else None
        return AlphaVantageMarketDataProvider(
            api_key=api_key,
            base_url=config.get('data_sources.market_data.base_url', 'https://www.alphavantage.co/query'),
            cache=cache,
            requests_per_minute=config.get('data_sources.market_data.rate_limit', 5)
        )
    else:
        raise ValueError(f"Unsupported market data provider: {provider_name}")
