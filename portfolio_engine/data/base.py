"""Base classes and interfaces for data providers and caches."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging
import pandas as pd

logger = logging.getLogger(__name__)

WEEKLY_COLUMNS = ['date', 'close', 'adjusted_close', 'dividend']


class DataCache(ABC):
    """Durable key/value store owned by a data provider.

    Keys are instrument-scoped strings (e.g. ``weekly_AAPL``). Entries never
    expire; eviction is the owner's concern. Implementations must be safe to
    share between concurrent requests.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached JSON-compatible value, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under key."""
        pass


class DataProvider(ABC):
    """Base class for all data providers."""

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the provider is accessible."""
        pass


class MarketDataProvider(DataProvider):
    """Abstract interface for weekly market data providers."""

    def __init__(self, cache: Optional[DataCache] = None):
        self.cache = cache

    @abstractmethod
    def get_weekly_series(self, ticker: str) -> pd.DataFrame:
        """
        Get the full weekly price/dividend history for a ticker.

        Args:
            ticker: Stock ticker symbol

        Returns:
            DataFrame with columns: date, close, adjusted_close, dividend
            sorted by date ascending
        """
        pass

    @abstractmethod
    def get_overview(self, ticker: str) -> Dict[str, Any]:
        """
        Get the raw fundamentals snapshot for a stock.

        Returns:
            Provider-native dictionary (may be empty)
        """
        pass

    def get_multiple_weekly_series(self, tickers: List[str]) -> Dict[str, pd.DataFrame]:
        """
        Get weekly series for multiple tickers, skipping any that fail.

        Returns:
            Dictionary mapping ticker to DataFrame, in input order
        """
        result = {}
        for ticker in tickers:
            try:
                series = self.get_weekly_series(ticker)
            except (ValueError, OSError) as e:
                logger.warning("Skipping %s: weekly series unavailable (%s)", ticker, e)
                continue
            if series is not None and not series.empty:
                result[ticker] = series
            else:
                logger.warning("Skipping %s: empty weekly series", ticker)
        return result

    def health_check(self) -> bool:
        """Default health check - can be overridden."""
        try:
            _ = self.get_weekly_series("SPY")
            return True
        except Exception:
            return False

    def _cached(self, key: str) -> Optional[Any]:
        if self.cache is None:
            return None
        return self.cache.get(key)

    def _store(self, key: str, value: Any) -> None:
        if self.cache is not None:
            self.cache.set(key, value)


def records_to_weekly_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Build a normalized weekly DataFrame from a list of bar dicts."""
    if not records:
        return pd.DataFrame(columns=WEEKLY_COLUMNS)

    df = pd.DataFrame(records)
    for column in WEEKLY_COLUMNS:
        if column not in df.columns:
            df[column] = float('nan') if column != 'dividend' else 0.0
    df['date'] = pd.to_datetime(df['date']).dt.date
    for column in ('close', 'adjusted_close', 'dividend'):
        df[column] = pd.to_numeric(df[column], errors='coerce')
    df = df.sort_values('date').reset_index(drop=True)
    return df[WEEKLY_COLUMNS]


def weekly_frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Serialize a weekly DataFrame into JSON-compatible bar dicts."""
    records = []
    for row in df.itertuples(index=False):
        records.append({
            'date': row.date.isoformat(),
            'close': None if pd.isna(row.close) else float(row.close),
            'adjusted_close': None if pd.isna(row.adjusted_close) else float(row.adjusted_close),
            'dividend': 0.0 if pd.isna(row.dividend) else float(row.dividend),
        })
    return records
